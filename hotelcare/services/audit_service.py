from __future__ import annotations

import logging
from dataclasses import dataclass, field

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from hotelcare.models import AuditLog, PMSSyncHistory, SyncStatus, SyncType

logger = logging.getLogger(__name__)

PMS_DIRECTION = 'to_pms'


@dataclass(frozen=True)
class SyncAttempt:
    sync_type: SyncType
    status: SyncStatus
    hotel_id: str | None
    room_number: str | None
    data: dict = field(default_factory=dict)
    errors: tuple[str, ...] = ()
    initiated_by: int | None = None

    @property
    def error_message(self) -> str | None:
        return '; '.join(self.errors) if self.errors else None


def log_audit(
    db: Session,
    *,
    actor_principal_id: int | None,
    action: str,
    ip: str | None,
    metadata: dict | None = None,
) -> None:
    db.add(
        AuditLog(
            actor_principal_id=actor_principal_id,
            action=action,
            ip=ip,
            meta=metadata or {},
        )
    )


def record_sync_attempt(db: Session, attempt: SyncAttempt) -> None:
    """Append one sync history row and commit it.

    Never raises: a broken audit write is logged and the sync outcome stands.
    """
    try:
        db.add(
            PMSSyncHistory(
                sync_type=attempt.sync_type,
                direction=PMS_DIRECTION,
                hotel_id=attempt.hotel_id,
                room_number=attempt.room_number,
                data=attempt.data,
                errors=list(attempt.errors),
                error_message=attempt.error_message,
                sync_status=attempt.status,
                changed_by=attempt.initiated_by,
            )
        )
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception(
            'Failed to record %s sync attempt (status=%s) for hotel %s',
            attempt.sync_type.value,
            attempt.status.value,
            attempt.hotel_id,
        )


def list_sync_history(db: Session, *, hotel_id: str | None = None, limit: int = 50) -> list[dict]:
    stmt = select(PMSSyncHistory)
    if hotel_id:
        stmt = stmt.where(PMSSyncHistory.hotel_id == hotel_id)
    rows = db.execute(stmt.order_by(PMSSyncHistory.id.desc()).limit(max(1, min(limit, 500)))).scalars().all()
    return [
        {
            'id': row.id,
            'sync_type': row.sync_type.value,
            'direction': row.direction,
            'hotel_id': row.hotel_id,
            'room_number': row.room_number,
            'sync_status': row.sync_status.value,
            'errors': row.errors or [],
            'error_message': row.error_message,
            'data': row.data or {},
            'changed_by': row.changed_by,
            'created_at': row.created_at.isoformat() if row.created_at else None,
        }
        for row in rows
    ]
