from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query, status as http_status

from decentralhire.projection.resolver import resolve_by_contract_address
from decentralhire.schemas.postings import JobPostingOut
from decentralhire.services.repository import (
    BUSINESS_KEY_FIELD,
    JOB_POSTINGS,
    RepositoryUnavailableError,
    get_repository,
)

router = APIRouter()


@router.get("", response_model=list[JobPostingOut])
async def list_postings(
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    country: str | None = Query(default=None, min_length=1),
    city: str | None = Query(default=None, min_length=1),
    company_address: str | None = Query(default=None, min_length=1),
    is_active: bool | None = Query(default=None),
    is_remote: bool | None = Query(default=None),
    repository=Depends(get_repository),
) -> list[JobPostingOut]:
    filters: dict[str, Any] = {}
    if country is not None:
        filters["country"] = country
    if city is not None:
        filters["city"] = city
    if company_address is not None:
        filters["companyAddressLowerCase"] = company_address.lower()
    if is_active is not None:
        filters["isActive"] = is_active
    if is_remote is not None:
        filters["isRemote"] = is_remote

    try:
        documents = await repository.list_documents(JOB_POSTINGS, filters, limit=limit, offset=offset)
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=http_status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    return [JobPostingOut(id=document.id, **document.data) for document in documents]


@router.get("/{contract_address}", response_model=JobPostingOut)
async def get_posting(contract_address: str, repository=Depends(get_repository)) -> JobPostingOut:
    try:
        document = await resolve_by_contract_address(repository, JOB_POSTINGS, contract_address)
        if document is None:
            # Addresses are case-insensitive on chain; fall back to the lowercase projection.
            document = await repository.find_one(
                JOB_POSTINGS,
                f"{BUSINESS_KEY_FIELD}LowerCase",
                contract_address.lower(),
            )
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=http_status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    if document is None:
        raise HTTPException(status_code=http_status.HTTP_404_NOT_FOUND, detail="job posting not found")
    return JobPostingOut(id=document.id, **document.data)
