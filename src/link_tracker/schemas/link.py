from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field, HttpUrl, TypeAdapter, field_validator, model_validator

from .common import Pagination

_absolute_url = TypeAdapter(HttpUrl)


class Link(BaseModel):

    id: int = Field(..., description="Server-assigned link id", examples=[42])
    code: str = Field(..., description="Public tracking code", examples=["aZ3k9Q"])
    white_url: str = Field(
        ...,
        description="Destination for normal traffic",
        examples=["https://www.example.com/landing"]
    )
    black_url: str = Field(
        ...,
        description="Destination for traffic flagged as bot",
        examples=["https://bot.example.com/"]
    )
    created_at: datetime = Field(
        ...,
        description="Timestamp when the link was created"
    )


class LinkPage(BaseModel):
    data: list[Link] = Field(default_factory=list)
    pagination: Pagination

    @field_validator("data", mode="before")
    @classmethod
    def null_as_empty(cls, value):
        return [] if value is None else value


class CountryStat(BaseModel):
    country: str = Field("", description="Country code, empty when unknown", examples=["US"])
    count: int = Field(..., ge=0, examples=[60])


class LinkStats(BaseModel):

    total_clicks: int = Field(..., ge=0, description="Total number of clicks", examples=[100])
    bot_clicks: int = Field(..., ge=0, description="Clicks classified as bot", examples=[30])
    country_stats: list[CountryStat] = Field(default_factory=list)

    @field_validator("country_stats", mode="before")
    @classmethod
    def null_as_empty(cls, value):
        return [] if value is None else value

    @model_validator(mode="after")
    def check_bot_clicks(self) -> "LinkStats":
        if self.bot_clicks > self.total_clicks:
            raise ValueError("bot_clicks cannot exceed total_clicks")
        return self

    @property
    def human_clicks(self) -> int:
        return self.total_clicks - self.bot_clicks


class CreateLinkRequest(BaseModel):
    """
    Input of the create-link form.

    Both URLs must be absolute http(s) URLs. The strings are checked but sent
    as typed, so the created link echoes them unchanged.
    """

    model_config = ConfigDict(str_strip_whitespace=True)

    white_url: str = Field(
        ...,
        description="White URL (main traffic)",
        examples=["https://example.com"]
    )
    black_url: str = Field(
        ...,
        description="Black URL (bot traffic)",
        examples=["https://bot-example.com"]
    )

    @field_validator("white_url", "black_url")
    @classmethod
    def check_absolute_url(cls, value: str, info) -> str:
        if not value:
            raise ValueError(f"Please enter the {info.field_name.replace('_url', '')} URL")
        try:
            _absolute_url.validate_python(value)
        except ValueError:
            raise ValueError("Please enter a valid URL") from None
        return value
