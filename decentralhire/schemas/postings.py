from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

SCHEMA_VERSION = 2


class JobPosting(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    contract_address: str
    company_address: str
    job_title: str | None = None
    country: str | None = None
    city: str | None = None
    is_remote: bool = False
    is_active: bool = True
    contract_address_lower_case: str = ""
    company_address_lower_case: str = ""
    schema_version: int = SCHEMA_VERSION

    def to_document(self) -> dict:
        return self.model_dump(by_alias=True)


class JobPostingOut(JobPosting):
    id: str
