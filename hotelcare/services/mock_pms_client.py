from __future__ import annotations

import logging

from hotelcare.services.pms_client import MinibarConsumptionRequest, PMSResponse, RoomStatusRequest

logger = logging.getLogger(__name__)


class MockPMSClient:
    """Accepts every call and keeps it in memory; for local runs without Previo credentials."""

    def __init__(self) -> None:
        self.sent: list[tuple[str, dict]] = []

    def add_minibar_consumption(self, request: MinibarConsumptionRequest) -> PMSResponse:
        payload = request.model_dump(mode='json')
        self.sent.append(('minibar', payload))
        logger.info('Mock PMS accepted minibar consumption %s', payload['params'])
        return PMSResponse(result={'accepted': True, 'item_name': request.params.item_name})

    def update_room_status(self, *, hotel_id: str, request: RoomStatusRequest) -> PMSResponse:
        payload = request.model_dump(mode='json', by_alias=True)
        self.sent.append(('room_status', {'hotel_id': hotel_id, **payload}))
        logger.info('Mock PMS accepted room status %s for hotel %s', payload, hotel_id)
        return PMSResponse(result={'accepted': True, 'roomNumber': request.room_number, 'status': request.status})
