from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.orm import Session

from hotelcare.auth import STAFF_ROLES, Principal, assert_hotel_scope, is_admin_role, require_role
from hotelcare.db import get_db
from hotelcare.dependencies import get_client_ip
from hotelcare.errors import InvalidInput
from hotelcare.models import Room
from hotelcare.services.audit_service import log_audit
from hotelcare.services.usage_service import (
    StaffUsageOutcome,
    current_day_window,
    list_daily_usage,
    record_staff_usage,
)

router = APIRouter(prefix='/staff', tags=['staff'])


class StaffUsageIn(BaseModel):
    room_id: int
    minibar_item_id: int
    quantity: int


@router.post('/minibar-usage')
def staff_record_minibar_usage(
    body: StaffUsageIn,
    request: Request,
    principal: Principal = Depends(require_role(*STAFF_ROLES)),
    db: Session = Depends(get_db),
):
    room = db.execute(select(Room).where(Room.id == body.room_id)).scalar_one_or_none()
    if not room:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail='Room not found')
    assert_hotel_scope(principal, room.hotel)

    try:
        outcome, usage = record_staff_usage(
            db,
            room_id=room.id,
            minibar_item_id=body.minibar_item_id,
            quantity=body.quantity,
            principal_id=principal.id,
            organization_slug=principal.organization_slug,
        )
    except InvalidInput as exc:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    if outcome == StaffUsageOutcome.ALREADY_RECORDED:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f'This item was already recorded for Room {room.room_number} today (by {usage.source.value}).',
        )

    log_audit(
        db,
        actor_principal_id=principal.id,
        action='STAFF_MINIBAR_USAGE_RECORDED',
        ip=get_client_ip(request),
        metadata={
            'usage_id': usage.id,
            'room_id': room.id,
            'minibar_item_id': body.minibar_item_id,
            'quantity': body.quantity,
            'outcome': outcome.value,
        },
    )
    db.commit()
    return {
        'outcome': outcome.value,
        'usage_id': usage.id,
        'room_number': room.room_number,
        'source': usage.source.value,
        'quantity_used': usage.quantity_used,
    }


@router.get('/minibar-usage')
def staff_daily_minibar_usage(
    day: date | None = Query(default=None),
    hotel: str | None = Query(default=None),
    principal: Principal = Depends(require_role(*STAFF_ROLES)),
    db: Session = Depends(get_db),
):
    if not is_admin_role(principal.role) and principal.assigned_hotel:
        hotel = hotel or principal.assigned_hotel
    assert_hotel_scope(principal, hotel)

    report = list_daily_usage(db, day=day or current_day_window().day, hotel=hotel)
    return {
        'day': report.day.isoformat(),
        'summary': {
            'total_revenue': float(report.total_revenue),
            'total_items': report.total_items,
            'rooms_with_usage': report.rooms_with_usage,
        },
        'records': [
            {
                'id': line.id,
                'room_number': line.room_number,
                'hotel': line.hotel,
                'item_name': line.item_name,
                'quantity_used': line.quantity_used,
                'item_price': float(line.item_price),
                'total_price': float(line.total_price),
                'usage_date': line.usage_date.isoformat(),
                'source': line.source.value,
                'recorded_by_name': line.recorded_by_name or 'Unknown',
            }
            for line in report.lines
        ],
    }
