from __future__ import annotations

import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

RateTable = dict[str, dict[str, float]]


class PriceSnapshot(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    prices: dict[str, float]
    captured_at: datetime.datetime = Field(
        default_factory=lambda: datetime.datetime.now(datetime.UTC)
    )


class PriceResponse(BaseModel):
    data: dict[str, Any]


class ErrorResponse(BaseModel):
    error: str


class HealthResponse(BaseModel):
    status: str = "ok"
    supported_symbols: int = 0
    snapshots: int = 0
