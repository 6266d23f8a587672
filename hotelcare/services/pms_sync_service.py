from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from functools import partial, reduce

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from sqlalchemy.orm import Session

from hotelcare.errors import ConfigurationError, InvalidInput, PMSRequestError
from hotelcare.models import RoomStatus, SyncStatus, SyncType
from hotelcare.services.audit_service import SyncAttempt, record_sync_attempt
from hotelcare.services.pms_client import (
    MinibarConsumptionParams,
    MinibarConsumptionRequest,
    PMSClient,
    PMSResponse,
    RoomStatusRequest,
)

logger = logging.getLogger(__name__)

PMS_ROOM_STATUS = {
    RoomStatus.CLEAN.value: 'clean',
    RoomStatus.DIRTY.value: 'dirty',
    RoomStatus.IN_PROGRESS.value: 'dirty',
}
# Anything unmapped goes to the PMS as dirty.
FALLBACK_PMS_STATUS = 'dirty'

MINIBAR_PAYLOAD_ERROR = 'Hotel ID, room number, and items array are required'
STATUS_PAYLOAD_ERROR = 'Hotel ID, room number, and status are required'


class FailureKind(str, Enum):
    INVALID_INPUT = 'invalid_input'
    CONFIGURATION = 'configuration'
    UNEXPECTED = 'unexpected'
    PMS = 'pms'


class _SyncPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True, coerce_numbers_to_str=True, str_strip_whitespace=True)

    hotel_id: str = Field(alias='hotelId', min_length=1)
    room_number: str = Field(alias='roomNumber', min_length=1)


class MinibarSyncItem(BaseModel):
    item_name: str = Field(min_length=1)
    quantity: int = Field(ge=1)
    price: float | None = None
    recorded_at: str | None = None


class MinibarSyncPayload(_SyncPayload):
    items: list[MinibarSyncItem]


class RoomStatusSyncPayload(_SyncPayload):
    status: str
    assignment_id: str | None = Field(default=None, alias='assignmentId')


@dataclass(frozen=True)
class MinibarTally:
    updated: int = 0
    errors: tuple[str, ...] = ()

    def with_success(self) -> MinibarTally:
        return replace(self, updated=self.updated + 1)

    def with_error(self, message: str) -> MinibarTally:
        return replace(self, errors=self.errors + (message,))


@dataclass(frozen=True)
class SyncResult:
    sync_type: SyncType
    status: SyncStatus
    message: str
    total: int = 0
    updated: int = 0
    errors: tuple[str, ...] = ()
    data: dict = field(default_factory=dict)
    failure: FailureKind | None = None

    @property
    def success(self) -> bool:
        return self.status != SyncStatus.FAILED

    @property
    def http_status(self) -> int:
        if self.failure == FailureKind.INVALID_INPUT:
            return 400
        if self.failure in (FailureKind.CONFIGURATION, FailureKind.UNEXPECTED):
            return 500
        if self.status == SyncStatus.FAILED:
            return 502
        return 200

    def to_response(self) -> dict:
        body: dict = {'success': self.success, 'status': self.status.value, 'message': self.message}
        if self.sync_type == SyncType.MINIBAR:
            body['results'] = {'total': self.total, 'updated': self.updated, 'errors': list(self.errors)}
        else:
            body['data'] = self.data
        if self.failure in (FailureKind.INVALID_INPUT, FailureKind.CONFIGURATION, FailureKind.UNEXPECTED):
            body['error'] = self.message
        return body


def _now() -> datetime:
    return datetime.now(tz=timezone.utc)


def aggregate_status(updated: int, errors: tuple[str, ...]) -> SyncStatus:
    if not errors:
        return SyncStatus.SUCCESS
    if updated > 0:
        return SyncStatus.PARTIAL
    return SyncStatus.FAILED


def map_room_status(status) -> str:
    if isinstance(status, Enum):
        status = status.value
    key = str(status).strip().lower() if status is not None else ''
    return PMS_ROOM_STATUS.get(key, FALLBACK_PMS_STATUS)


def _parse(model: type[BaseModel], raw_payload, message: str):
    try:
        return model.model_validate(raw_payload)
    except ValidationError as exc:
        raise InvalidInput(message) from exc


def _raw_field(raw_payload, key: str) -> str | None:
    # Malformed requests still record hotel and room when present.
    if not isinstance(raw_payload, dict):
        return None
    value = raw_payload.get(key)
    if value is None or isinstance(value, (dict, list)):
        return None
    return str(value)


def _fail(
    db: Session,
    *,
    sync_type: SyncType,
    raw_payload,
    exc: Exception,
    initiated_by: int | None,
) -> SyncResult:
    if isinstance(exc, InvalidInput):
        failure = FailureKind.INVALID_INPUT
        logger.warning('Rejected %s sync request: %s', sync_type.value, exc)
    elif isinstance(exc, ConfigurationError):
        failure = FailureKind.CONFIGURATION
        logger.error('PMS %s sync not attempted: %s', sync_type.value, exc)
    else:
        failure = FailureKind.UNEXPECTED
        logger.exception('PMS %s sync failed unexpectedly', sync_type.value)

    db.rollback()
    message = str(exc) or exc.__class__.__name__
    hotel_id = _raw_field(raw_payload, 'hotelId')
    room_number = _raw_field(raw_payload, 'roomNumber')
    record_sync_attempt(
        db,
        SyncAttempt(
            sync_type=sync_type,
            status=SyncStatus.FAILED,
            hotel_id=hotel_id,
            room_number=room_number,
            data={'room_number': room_number, 'error': message},
            errors=(message,),
            initiated_by=initiated_by,
        ),
    )
    return SyncResult(sync_type=sync_type, status=SyncStatus.FAILED, message=message, errors=(message,), failure=failure)


def _push_minibar_item(
    client: PMSClient,
    payload: MinibarSyncPayload,
    now: datetime,
    tally: MinibarTally,
    item: MinibarSyncItem,
) -> MinibarTally:
    request = MinibarConsumptionRequest(
        params=MinibarConsumptionParams(
            hotel_id=payload.hotel_id,
            room_number=payload.room_number,
            item_name=item.item_name,
            quantity=item.quantity,
            price=item.price,
            timestamp=item.recorded_at or now.isoformat(),
        )
    )
    try:
        response = client.add_minibar_consumption(request)
    except ConfigurationError:
        raise
    except PMSRequestError as exc:
        logger.warning('Error updating minibar item %s for room %s: %s', item.item_name, payload.room_number, exc)
        return tally.with_error(f'Item {item.item_name}: {exc}')
    except Exception as exc:
        logger.exception('Unexpected error updating minibar item %s for room %s', item.item_name, payload.room_number)
        return tally.with_error(f'Item {item.item_name}: {str(exc) or exc.__class__.__name__}')
    logger.debug('Item %s updated in PMS: %s', item.item_name, response.result)
    return tally.with_success()


def sync_minibar(
    db: Session,
    *,
    client_factory: Callable[[], PMSClient],
    raw_payload,
    initiated_by: int | None = None,
    now: datetime | None = None,
) -> SyncResult:
    """Push each consumed item to the PMS, one call per item, in order.

    One failed item never stops the rest; the aggregate lands in pms_sync_history.
    """
    try:
        payload = _parse(MinibarSyncPayload, raw_payload, MINIBAR_PAYLOAD_ERROR)
        client = client_factory()
        logger.info(
            'Updating minibar for room %s in PMS for hotel %s (%d items)',
            payload.room_number,
            payload.hotel_id,
            len(payload.items),
        )
        tally = reduce(partial(_push_minibar_item, client, payload, now or _now()), payload.items, MinibarTally())
    except Exception as exc:
        return _fail(db, sync_type=SyncType.MINIBAR, raw_payload=raw_payload, exc=exc, initiated_by=initiated_by)

    total = len(payload.items)
    status = aggregate_status(tally.updated, tally.errors)
    record_sync_attempt(
        db,
        SyncAttempt(
            sync_type=SyncType.MINIBAR,
            status=status,
            hotel_id=payload.hotel_id,
            room_number=payload.room_number,
            data={
                'room_number': payload.room_number,
                'total_items': total,
                'updated': tally.updated,
                'items': [item.model_dump() for item in payload.items],
                'errors': list(tally.errors),
            },
            errors=tally.errors,
            initiated_by=initiated_by,
        ),
    )
    logger.info(
        'Minibar sync for room %s completed: status=%s updated=%d/%d',
        payload.room_number,
        status.value,
        tally.updated,
        total,
    )

    if status == SyncStatus.SUCCESS:
        message = f'Minibar updated in PMS for room {payload.room_number}'
    elif status == SyncStatus.PARTIAL:
        message = f'Minibar partially updated in PMS for room {payload.room_number} ({tally.updated}/{total} items)'
    else:
        message = f'Minibar update failed in PMS for room {payload.room_number}'
    return SyncResult(
        sync_type=SyncType.MINIBAR,
        status=status,
        message=message,
        total=total,
        updated=tally.updated,
        errors=tally.errors,
        failure=FailureKind.PMS if status == SyncStatus.FAILED else None,
    )


def _send_room_status(client: PMSClient, payload: RoomStatusSyncPayload, pms_status: str) -> tuple[PMSResponse | None, str | None]:
    request = RoomStatusRequest(room_number=payload.room_number, status=pms_status)
    try:
        return client.update_room_status(hotel_id=payload.hotel_id, request=request), None
    except PMSRequestError as exc:
        logger.warning('Room status update failed for room %s: %s', payload.room_number, exc)
        return None, str(exc)


def sync_room_status(
    db: Session,
    *,
    client_factory: Callable[[], PMSClient],
    raw_payload,
    initiated_by: int | None = None,
) -> SyncResult:
    try:
        payload = _parse(RoomStatusSyncPayload, raw_payload, STATUS_PAYLOAD_ERROR)
        client = client_factory()
        pms_status = map_room_status(payload.status)
        logger.info('Updating room status in PMS - room %s: %s -> %s', payload.room_number, payload.status, pms_status)
        response, error = _send_room_status(client, payload, pms_status)
    except Exception as exc:
        return _fail(db, sync_type=SyncType.STATUS_UPDATE, raw_payload=raw_payload, exc=exc, initiated_by=initiated_by)

    data = {
        'roomNumber': payload.room_number,
        'status': pms_status,
        'internalStatus': payload.status,
        'assignmentId': payload.assignment_id,
    }
    status = SyncStatus.FAILED if error else SyncStatus.SUCCESS
    record_sync_attempt(
        db,
        SyncAttempt(
            sync_type=SyncType.STATUS_UPDATE,
            status=status,
            hotel_id=payload.hotel_id,
            room_number=payload.room_number,
            data={
                **data,
                'request': {'roomNumber': payload.room_number, 'status': pms_status},
                'response': response.model_dump(mode='json') if response else None,
            },
            errors=(error,) if error else (),
            initiated_by=initiated_by,
        ),
    )

    if error:
        return SyncResult(
            sync_type=SyncType.STATUS_UPDATE,
            status=status,
            message=f'Room status update failed for room {payload.room_number}',
            total=1,
            errors=(error,),
            data=data,
            failure=FailureKind.PMS,
        )
    return SyncResult(
        sync_type=SyncType.STATUS_UPDATE,
        status=status,
        message='Room status updated in PMS',
        total=1,
        updated=1,
        data=data,
    )
