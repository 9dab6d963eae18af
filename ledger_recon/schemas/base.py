"""Shared schema types for the reconciliation API."""

from typing import Annotated, Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field

T = TypeVar("T")

# Scores and split shares are both fractions of one.
Fraction = Annotated[float, Field(ge=0, le=1)]


class BaseResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)


class ListResponse(BaseModel, Generic[T]):  # noqa: UP046
    """Items plus their count. Reconciliation lists are returned whole, never paged."""

    items: list[T]
    total: int
