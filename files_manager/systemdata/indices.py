"""
The elasticsearch system indices that hold the users and the file metadata tree.

Both are plain indices named <system_index>_users and <system_index>_files.
create_or_update_indices should be called at startup (the API lifespan does this).
"""

import logging

from elasticsearch import AsyncElasticsearch

ElasticMapping = dict[str, dict]

users_mapping: ElasticMapping = dict(
    email={"type": "keyword"},
    password={"type": "keyword", "index": False},
)

# parent_id is the id of the parent folder, or "0" for items in the root
files_mapping: ElasticMapping = dict(
    user_id={"type": "keyword"},
    name={"type": "keyword"},
    type={"type": "keyword"},
    parent_id={"type": "keyword"},
    is_public={"type": "boolean"},
    storage_key={"type": "keyword", "index": False},
    created={"type": "long"},
)


def users_index_name(system_index: str) -> str:
    return f"{system_index}_users"


def files_index_name(system_index: str) -> str:
    return f"{system_index}_files"


def system_mappings(system_index: str) -> dict[str, ElasticMapping]:
    return {
        users_index_name(system_index): users_mapping,
        files_index_name(system_index): files_mapping,
    }


async def create_or_update_indices(elastic: AsyncElasticsearch, system_index: str) -> None:
    """Create the system indices, or update their mappings if they already exist"""
    for index, mapping in system_mappings(system_index).items():
        if await elastic.indices.exists(index=index):
            await elastic.indices.put_mapping(index=index, properties=mapping)
        else:
            logging.info(f"Creating system index {index}")
            await elastic.indices.create(index=index, mappings={"properties": mapping})


async def delete_indices(elastic: AsyncElasticsearch, system_index: str) -> None:
    """Remove the system indices and everything in them. Only used for tests and resets."""
    for index in system_mappings(system_index):
        await elastic.indices.delete(index=index, ignore_unavailable=True)
