from __future__ import annotations

from typing import Any, Literal, Protocol

from pydantic import BaseModel, ConfigDict, Field


class MinibarConsumptionParams(BaseModel):
    hotel_id: str
    room_number: str
    item_name: str
    quantity: int
    price: float | None = None
    timestamp: str


class MinibarConsumptionRequest(BaseModel):
    method: Literal['Hotel.addMinibarConsumption'] = 'Hotel.addMinibarConsumption'
    params: MinibarConsumptionParams


class RoomStatusRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    room_number: str = Field(serialization_alias='roomNumber')
    status: str


class PMSResponse(BaseModel):
    """Envelope returned by the PMS; anything beyond result/error is kept verbatim."""

    model_config = ConfigDict(extra='allow')

    result: Any = None
    error: Any = None


class PMSClient(Protocol):
    def add_minibar_consumption(self, request: MinibarConsumptionRequest) -> PMSResponse: ...

    def update_room_status(self, *, hotel_id: str, request: RoomStatusRequest) -> PMSResponse: ...
