from pydantic import BaseModel, ConfigDict, Field


class Pagination(BaseModel):

    model_config = ConfigDict(populate_by_name=True)

    total: int = Field(0, ge=0, description="Total number of rows on the server", examples=[125])
    page: int | None = Field(None, description="Page echoed by the server", examples=[1])
    page_size: int | None = Field(
        None,
        alias="pageSize",
        description="Page size echoed by the server",
        examples=[10]
    )
