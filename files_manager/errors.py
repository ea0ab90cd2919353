"""Error types shared by the API, the stores and the job workers."""


class FilesManagerError(Exception):
    """Base class for errors that are reported to API clients as {"error": message}."""

    status_code = 500
    message = "Internal server error"

    def __init__(self, message: str | None = None):
        if message is not None:
            self.message = message
        super().__init__(self.message)


class Unauthorized(FilesManagerError):
    status_code = 401
    message = "Unauthorized"


class NotFound(FilesManagerError):
    """Resource does not exist, or is not visible to the caller."""

    status_code = 404
    message = "Not found"


class InvalidInput(FilesManagerError):
    status_code = 400
    message = "Invalid input"


class MissingField(InvalidInput):
    def __init__(self, field: str):
        self.field = field
        super().__init__(f"Missing {field}")


class InvalidParent(InvalidInput):
    pass


class ParentNotFound(InvalidParent):
    message = "Parent not found"


class ParentNotFolder(InvalidParent):
    message = "Parent is not a folder"


class DuplicateEmail(InvalidInput):
    message = "Already exist"


class NoContent(InvalidInput):
    message = "A folder doesn't have content"


# Job processing errors. These never reach an HTTP client.


class ProcessingFailure(Exception):
    """Processing a job failed; the job should be delivered again."""


class UnrecoverableJob(ProcessingFailure):
    """Processing a job can never succeed; the job is acknowledged with an error."""


class InvalidJob(UnrecoverableJob):
    """The job payload is missing required fields."""


class FileNotFound(UnrecoverableJob):
    """The file metadata referenced by a job no longer exists."""
