from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class VisitRecord(BaseModel):
    id: int
    ip: str
    visit_time: str
    remark: str = ""


class BatchDeleteRequest(BaseModel):
    ids: List[int] = Field(min_length=1)


class EditVisitorRequest(BaseModel):
    remark: Optional[str] = None

    @field_validator("remark")
    @classmethod
    def normalize_remark(cls, value: Optional[str]) -> str:
        return value or ""


class SaveBlacklistRequest(BaseModel):
    blacklist: List[str]


class ApiResponse(BaseModel):
    """Envelope for every JSON body; camelCase on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    success: bool
    msg: Optional[str] = None

    def to_json(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)


class VerifyIpResponse(ApiResponse):
    allow_access: bool


class RecordVisitorResponse(ApiResponse):
    visitor_ip: Optional[str] = None
    visit_time: Optional[str] = None
    reason: Optional[str] = None


class VisitorDataResponse(ApiResponse):
    total_count: int
    last_visit: str
    ip_list: List[VisitRecord]


class BatchDeleteResponse(ApiResponse):
    deleted: int = 0


class BlacklistResponse(ApiResponse):
    blacklist: List[str]


class SaveBlacklistResponse(ApiResponse):
    failed: List[str] = Field(default_factory=list)
