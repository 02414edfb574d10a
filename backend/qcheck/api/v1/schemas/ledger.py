from typing import Literal

from pydantic import BaseModel, Field


class LedgerEntryModel(BaseModel):
    count: int
    timestamps: list[str] = Field(default_factory=list)


class LedgerResponse(BaseModel):
    ownerKind: Literal["author", "reviewer"]
    ownerId: str
    # category -> question id -> entry
    entries: dict[str, dict[str, LedgerEntryModel]] = Field(default_factory=dict)
