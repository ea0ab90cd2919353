"""Utility functions for deriving fixed-width thumbnails from uploaded images"""

import io

from PIL import Image

from files_manager.models import THUMBNAIL_WIDTHS

ALLOWED_MIME_TYPES = ["image/jpeg", "image/png", "image/gif", "image/webp"]
MAX_IMAGE_SIZE = 8000


class InvalidImage(ValueError):
    """The image can never be thumbnailed: its format is not supported, or it is too large"""


def create_thumbnails(
    image_data: bytes, widths: tuple[int, ...] = THUMBNAIL_WIDTHS, max_size: int = MAX_IMAGE_SIZE
) -> dict[int, bytes]:
    """
    Derive a thumbnail for each width from the image data.
    All thumbnails are created before any is returned, so an error leaves nothing half done.
    Raises InvalidImage for unsupported or oversized images, and ValueError (or a PIL error)
    if the data is not a readable image.
    """
    img = _load_image_from_bytes(image_data, max_height=max_size, max_width=max_size)
    return {width: _resize_to_width(img, width) for width in widths}


def _load_image_from_bytes(image_data: bytes, max_height=MAX_IMAGE_SIZE, max_width=MAX_IMAGE_SIZE) -> Image.Image:
    """Loads an image from raw binary data into a PIL Image object."""
    if not image_data:
        raise ValueError("Cannot create a thumbnail from empty data")
    # Image.open only reads the header, so the checks below run before the pixels are decoded
    img = Image.open(io.BytesIO(image_data))
    width, height = img.size

    if width > max_width or height > max_height:
        raise InvalidImage(f"Image dimensions {width}x{height} exceed maximum allowed size of {max_width}x{max_height}.")

    if img.get_format_mimetype() not in ALLOWED_MIME_TYPES:
        raise InvalidImage(
            f"Unsupported image MIME type '{img.get_format_mimetype()}'. Has to be one of {', '.join(ALLOWED_MIME_TYPES)}."
        )

    # truncated or corrupt data fails here
    img.load()
    return img


def _resize_to_width(img: Image.Image, width: int) -> bytes:
    """Resize the image to the given width, keeping the aspect ratio, and encode it in its original format"""
    if width <= 0:
        raise ValueError(f"Invalid thumbnail width {width}")
    format = img.format
    height = max(1, round(img.height * width / img.width))
    resized = img.resize((width, height), Image.Resampling.LANCZOS)

    # JPEG cannot store transparency or palettes
    if format == "JPEG" and resized.mode not in ("RGB", "L"):
        resized = resized.convert("RGB")

    output_buffer = io.BytesIO()
    resized.save(output_buffer, format=format)
    return output_buffer.getvalue()
