from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

OutcomeStatus = Literal["updated", "unchanged", "planned", "failed"]


class ItemOutcome(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    record_id: str = Field(..., alias="recordId")
    record_name: Optional[str] = Field(None, alias="recordName")
    filename: str
    status: OutcomeStatus
    asset_id: Optional[str] = Field(None, alias="assetId")
    error_code: Optional[str] = Field(None, alias="errorCode")
    error: Optional[str] = None
    # Set when the entry could not be fetched and an empty baseline was used.
    degraded: bool = False
    skipped_images: int = Field(0, alias="skippedImages")


class ReconciliationReport(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    items: list[ItemOutcome] = Field(default_factory=list)
    unmatched: list[str] = Field(default_factory=list)

    @property
    def succeeded(self) -> list[ItemOutcome]:
        return [i for i in self.items if i.status != "failed"]

    @property
    def failed(self) -> list[ItemOutcome]:
        return [i for i in self.items if i.status == "failed"]

    @property
    def degraded(self) -> list[ItemOutcome]:
        return [i for i in self.items if i.degraded]

    def count(self, status: OutcomeStatus) -> int:
        return sum(1 for i in self.items if i.status == status)
