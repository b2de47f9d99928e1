from __future__ import annotations

from decentralhire.services.repository import BUSINESS_KEY_FIELD, Document, DocumentRepository


async def resolve_by_contract_address(
    repository: DocumentRepository,
    collection: str,
    contract_address: str,
) -> Document | None:
    """Return the projected document for a business key, or None.

    Only the first match is used if the collection ever holds duplicates.
    """
    return await repository.find_one(collection, BUSINESS_KEY_FIELD, contract_address)
