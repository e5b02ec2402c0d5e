from typing import Generic, Literal, TypeVar, Union

from pydantic import BaseModel, Field

T = TypeVar("T")


class Ok(BaseModel, Generic[T]):
    """Successful endpoint call carrying its typed payload"""

    ok: Literal[True] = True
    value: T


class Err(BaseModel):
    """Failed endpoint call"""

    ok: Literal[False] = False
    reason: str = Field(..., examples=["Failed to fetch links"])
    status_code: int | None = Field(None, examples=[500])


Result = Union[Ok, Err]
