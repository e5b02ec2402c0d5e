from datetime import datetime
from pydantic import BaseModel, Field, field_validator

from .common import Pagination


class Click(BaseModel):
    """One observed visit against a link"""

    id: int
    ip: str = Field("", examples=["203.0.113.7"])
    user_agent: str = Field("", examples=["Mozilla/5.0 (compatible; Googlebot/2.1)"])
    country: str = Field("", description="Country code, empty when unknown", examples=["US"])
    is_bot: bool = False
    link_id: int
    created_at: datetime


class ClickFilterOptions(BaseModel):
    countries: list[str] = Field(
        default_factory=list,
        description="Distinct country values seen by the server"
    )

    @field_validator("countries", mode="before")
    @classmethod
    def null_as_empty(cls, value):
        return [] if value is None else value


class ClickPage(BaseModel):
    data: list[Click] = Field(default_factory=list)
    pagination: Pagination
    filters: ClickFilterOptions | None = None

    @field_validator("data", mode="before")
    @classmethod
    def null_as_empty(cls, value):
        return [] if value is None else value
