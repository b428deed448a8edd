"""
Azure Cosmos DB session management for document storage.

Uses async Cosmos DB SDK with DefaultAzureCredential for RBAC authentication.
This module provides a unified client for all Cosmos DB operations.

Every document returned by the helpers below carries the ``_etag`` system
property. Writers that must not clobber a concurrent update pass that value
back to ``replace_item``/``delete_item``; a mismatch surfaces as
``PreconditionFailed`` and the caller re-reads and re-applies its change.
"""

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator

from azure.core import MatchConditions
from azure.cosmos import PartitionKey
from azure.cosmos.aio import ContainerProxy, CosmosClient, DatabaseProxy
from azure.cosmos.exceptions import (
    CosmosAccessConditionFailedError,
    CosmosResourceNotFoundError,
)
from azure.identity.aio import DefaultAzureCredential

from core.config import settings

logger = logging.getLogger(__name__)

# Container names
USERS_CONTAINER = "users"
USERNAME_LOOKUP_CONTAINER = "username-lookup"
ROOMS_CONTAINER = "rooms"
BALLOTS_CONTAINER = "ballots"
NOTIFICATIONS_CONTAINER = "notifications"

# Container definitions with partition keys
CONTAINER_DEFINITIONS = [
    {"name": USERS_CONTAINER, "partition_key": "/id"},
    {"name": USERNAME_LOOKUP_CONTAINER, "partition_key": "/id"},
    {"name": ROOMS_CONTAINER, "partition_key": "/id"},
    {"name": BALLOTS_CONTAINER, "partition_key": "/id"},
    {"name": NOTIFICATIONS_CONTAINER, "partition_key": "/id"},
]

# Global client instances (lazy-initialized)
_cosmos_client: CosmosClient | None = None
_database: DatabaseProxy | None = None
_credential: DefaultAzureCredential | None = None


class PreconditionFailed(Exception):
    """The document changed since it was read (ETag mismatch)."""

    def __init__(self, container_name: str, item_id: str):
        super().__init__(f"{container_name}/{item_id} was modified concurrently")
        self.container_name = container_name
        self.item_id = item_id


async def get_cosmos_client() -> CosmosClient:
    """
    Get or create the Cosmos DB client.

    Supports two authentication modes:
    1. Connection string (for local development with Cosmos DB Emulator)
    2. DefaultAzureCredential/RBAC (for Azure deployment)

    The client is singleton and reused across requests.

    Returns:
        CosmosClient: Async Cosmos DB client
    """
    global _cosmos_client, _credential

    if _cosmos_client is None:
        if settings.AZURE_COSMOS_CONNECTION_STRING:
            # Format: AccountEndpoint=https://...;AccountKey=...;
            conn_parts = dict(
                part.split("=", 1) for part in settings.AZURE_COSMOS_CONNECTION_STRING.split(";") if "=" in part
            )
            endpoint = conn_parts.get("AccountEndpoint", "")
            key = conn_parts.get("AccountKey", "")

            if not endpoint or not key:
                raise ValueError("AZURE_COSMOS_CONNECTION_STRING must contain AccountEndpoint and AccountKey")

            # The emulator serves a self-signed certificate
            _cosmos_client = CosmosClient(
                url=endpoint,
                credential=key,
                connection_verify=not settings.AZURE_COSMOS_DISABLE_SSL,
            )
            logger.info(
                f"Initialized Cosmos DB client for {endpoint} (connection string mode, "
                f"SSL verification: {not settings.AZURE_COSMOS_DISABLE_SSL})"
            )
        else:
            if not settings.AZURE_COSMOS_ENDPOINT:
                raise ValueError("Either AZURE_COSMOS_ENDPOINT or AZURE_COSMOS_CONNECTION_STRING must be set")

            _credential = DefaultAzureCredential()
            _cosmos_client = CosmosClient(
                url=settings.AZURE_COSMOS_ENDPOINT,
                credential=_credential,
            )
            logger.info(f"Initialized Cosmos DB client for {settings.AZURE_COSMOS_ENDPOINT} (RBAC mode)")

    return _cosmos_client


async def get_database() -> DatabaseProxy:
    """
    Get the Cosmos DB database proxy.

    Returns:
        DatabaseProxy: Database proxy for the application database
    """
    global _database

    if _database is None:
        client = await get_cosmos_client()
        _database = client.get_database_client(settings.AZURE_COSMOS_DATABASE)
        logger.info(f"Connected to database: {settings.AZURE_COSMOS_DATABASE}")

    return _database


async def get_container(container_name: str) -> ContainerProxy:
    """
    Get a container proxy for the specified container.

    Args:
        container_name: Name of the container (e.g., 'rooms', 'ballots')

    Returns:
        ContainerProxy: Container proxy for CRUD operations
    """
    database = await get_database()
    return database.get_container_client(container_name)


async def ensure_containers() -> None:
    """
    Create the database and every container if they don't exist yet.

    Only used for local development; production containers are provisioned
    by infrastructure code.
    """
    global _database

    client = await get_cosmos_client()
    _database = await client.create_database_if_not_exists(id=settings.AZURE_COSMOS_DATABASE)
    for container_def in CONTAINER_DEFINITIONS:
        await _database.create_container_if_not_exists(
            id=container_def["name"],
            partition_key=PartitionKey(path=container_def["partition_key"]),
        )
        logger.info(f"Container ready: {container_def['name']} (partition: {container_def['partition_key']})")


@asynccontextmanager
async def cosmos_session() -> AsyncGenerator[DatabaseProxy, None]:
    """
    Context manager for Cosmos DB operations.

    Cosmos DB has no multi-document transactions here; atomicity is per
    document, enforced with ETag preconditions.

    Yields:
        DatabaseProxy: Database proxy for operations
    """
    try:
        db = await get_database()
        yield db
    except Exception as e:
        logger.error(f"Cosmos DB operation failed: {e}")
        raise


async def close_cosmos() -> None:
    """
    Close Cosmos DB connections.

    Should be called during application shutdown.
    """
    global _cosmos_client, _database, _credential

    if _cosmos_client is not None:
        await _cosmos_client.close()
        _cosmos_client = None
        _database = None
        logger.info("Closed Cosmos DB client")

    if _credential is not None:
        await _credential.close()
        _credential = None


# ============================================================================
# Utility Functions for Common Operations
# ============================================================================


async def create_item(container_name: str, item: dict[str, Any]) -> dict[str, Any]:
    """
    Create a new item in the specified container.

    Args:
        container_name: Container to create item in
        item: Item data (must include 'id' and partition key field)

    Returns:
        Created item with system properties
    """
    container = await get_container(container_name)
    return await container.create_item(body=item)


async def read_item(
    container_name: str,
    item_id: str,
    partition_key: str,
) -> dict[str, Any] | None:
    """
    Read an item by ID and partition key.

    Returns:
        Item data (including ``_etag``) or None if not found
    """
    container = await get_container(container_name)
    try:
        return await container.read_item(item=item_id, partition_key=partition_key)
    except CosmosResourceNotFoundError:
        return None


async def replace_item(
    container_name: str,
    item: dict[str, Any],
    etag: str | None = None,
) -> dict[str, Any]:
    """
    Replace an existing item, optionally only if it is unchanged.

    Args:
        container_name: Container holding the item
        item: Full replacement body (must include 'id')
        etag: ETag observed when the item was read. When given, the write
            succeeds only if the stored item still has this ETag.

    Returns:
        Replaced item with fresh system properties

    Raises:
        PreconditionFailed: The item was modified after it was read.
    """
    container = await get_container(container_name)
    kwargs: dict[str, Any] = {}
    if etag is not None:
        kwargs["etag"] = etag
        kwargs["match_condition"] = MatchConditions.IfNotModified
    try:
        return await container.replace_item(item=item["id"], body=item, **kwargs)
    except CosmosAccessConditionFailedError as e:
        raise PreconditionFailed(container_name, item["id"]) from e


async def delete_item(
    container_name: str,
    item_id: str,
    partition_key: str,
    etag: str | None = None,
) -> bool:
    """
    Delete an item by ID and partition key.

    Returns:
        True if the item was deleted, False if it no longer existed

    Raises:
        PreconditionFailed: ``etag`` was given and the item has changed.
    """
    container = await get_container(container_name)
    kwargs: dict[str, Any] = {}
    if etag is not None:
        kwargs["etag"] = etag
        kwargs["match_condition"] = MatchConditions.IfNotModified
    try:
        await container.delete_item(item=item_id, partition_key=partition_key, **kwargs)
    except CosmosResourceNotFoundError:
        return False
    except CosmosAccessConditionFailedError as e:
        raise PreconditionFailed(container_name, item_id) from e
    return True


async def query_items(
    container_name: str,
    query: str,
    parameters: list[dict[str, Any]] | None = None,
    partition_key: str | None = None,
    max_items: int | None = None,
) -> list[dict[str, Any]]:
    """
    Query items using SQL-like syntax.

    Args:
        container_name: Container to query
        query: Cosmos DB SQL query string
        parameters: Query parameters for parameterized queries
        partition_key: Optional partition key for scoped queries
        max_items: Maximum number of items to return

    Returns:
        List of matching items

    Example:
        results = await query_items(
            'notifications',
            'SELECT * FROM c WHERE c.user_id = @user_id',
            parameters=[{'name': '@user_id', 'value': user_id}]
        )
    """
    container = await get_container(container_name)

    # Cross-partition is enabled automatically when no partition_key is given
    query_kwargs: dict[str, Any] = {
        "query": query,
    }

    if parameters:
        query_kwargs["parameters"] = parameters

    if partition_key:
        query_kwargs["partition_key"] = partition_key

    if max_items:
        query_kwargs["max_item_count"] = max_items

    items: list[dict[str, Any]] = []
    async for item in container.query_items(**query_kwargs):
        items.append(item)
        if max_items and len(items) >= max_items:
            break

    return items
