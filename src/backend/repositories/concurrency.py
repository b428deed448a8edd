"""
Optimistic read-modify-write for single Cosmos documents.

Cosmos DB guarantees atomicity per document. A guarded update reads the
document (with its ETag), applies an in-memory mutation that re-checks the
invariants, and writes back only if nobody else wrote in between. On a
conflict the whole cycle runs again against the fresh copy, so guards such as
"not already voted" or "not already a member" are always evaluated against the
state that actually gets replaced.
"""

import logging
from typing import Callable, Optional, TypeVar

from core.exceptions import ConcurrencyError
from db.cosmos_session import PreconditionFailed, read_item, replace_item
from models.cosmos_documents import CosmosDocument

logger = logging.getLogger(__name__)

DocumentT = TypeVar("DocumentT", bound=CosmosDocument)


async def optimistic_update(
    container_name: str,
    item_id: str,
    model: type[DocumentT],
    mutate: Callable[[DocumentT], bool],
    max_retries: int,
) -> tuple[Optional[DocumentT], bool]:
    """
    Apply ``mutate`` to a document under an ETag precondition.

    Args:
        container_name: Container holding the document
        item_id: Document id (also its partition key)
        model: Document model to parse into
        mutate: Called with a fresh copy on every attempt. Returns True if it
            changed the document, False for a no-op. Domain errors it raises
            propagate unchanged and nothing is written.
        max_retries: Attempts before giving up

    Returns:
        (document, changed). ``document`` is None if it does not exist.

    Raises:
        ConcurrencyError: Every attempt lost to a concurrent writer.
    """
    for attempt in range(1, max_retries + 1):
        data = await read_item(container_name, item_id, partition_key=item_id)
        if data is None:
            return None, False

        document = model(**data)
        if not mutate(document):
            return document, False

        try:
            saved = await replace_item(container_name, document.to_item(), etag=document.etag)
        except PreconditionFailed:
            logger.info(f"ETag conflict on {container_name}/{item_id} (attempt {attempt}/{max_retries}), retrying")
            continue

        return model(**saved), True

    logger.warning(f"Gave up updating {container_name}/{item_id} after {max_retries} conflicting attempts")
    raise ConcurrencyError("The resource is being modified by another request. Please retry.")
