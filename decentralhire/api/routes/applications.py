from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query, status as http_status

from decentralhire.projection.resolver import resolve_by_contract_address
from decentralhire.schemas.applications import JobApplicationOut, JobApplicationStatus
from decentralhire.services.repository import (
    BUSINESS_KEY_FIELD,
    JOB_APPLICATIONS,
    RepositoryUnavailableError,
    get_repository,
)

router = APIRouter()


@router.get("", response_model=list[JobApplicationOut])
async def list_applications(
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    applicant_address: str | None = Query(default=None, min_length=1),
    job_posting_address: str | None = Query(default=None, min_length=1),
    application_status: JobApplicationStatus | None = Query(default=None, alias="status"),
    repository=Depends(get_repository),
) -> list[JobApplicationOut]:
    filters: dict[str, Any] = {}
    if applicant_address is not None:
        filters["applicantAddressLowerCase"] = applicant_address.lower()
    if job_posting_address is not None:
        filters["jobPostingAddressLowerCase"] = job_posting_address.lower()
    if application_status is not None:
        filters["status"] = application_status.value

    try:
        documents = await repository.list_documents(JOB_APPLICATIONS, filters, limit=limit, offset=offset)
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=http_status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    return [JobApplicationOut(id=document.id, **document.data) for document in documents]


@router.get("/{contract_address}", response_model=JobApplicationOut)
async def get_application(contract_address: str, repository=Depends(get_repository)) -> JobApplicationOut:
    try:
        document = await resolve_by_contract_address(repository, JOB_APPLICATIONS, contract_address)
        if document is None:
            document = await repository.find_one(
                JOB_APPLICATIONS,
                f"{BUSINESS_KEY_FIELD}LowerCase",
                contract_address.lower(),
            )
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=http_status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    if document is None:
        raise HTTPException(status_code=http_status.HTTP_404_NOT_FOUND, detail="job application not found")
    return JobApplicationOut(id=document.id, **document.data)
