from __future__ import annotations

from enum import Enum

from pydantic import BaseModel


class SortOption(str, Enum):
    DATE_DESC = "date-desc"
    DATE_ASC = "date-asc"
    AMOUNT_DESC = "amount-desc"
    AMOUNT_ASC = "amount-asc"
    NAME = "name"


class ListQuery(BaseModel):
    """Search / equality filter / sort options shared by every table view."""

    search: str | None = None
    filter_value: str | None = None
    sort: SortOption | None = None


class DeleteResponse(BaseModel):
    id: str
    deleted: bool = True
