from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from hotelcare.errors import InvalidToken
from hotelcare.models import Room


def resolve_room(db: Session, token: str | None) -> Room:
    token = (token or '').strip()
    if not token:
        raise InvalidToken('Invalid QR code')
    room = db.execute(select(Room).where(Room.minibar_qr_token == token)).scalar_one_or_none()
    if not room:
        raise InvalidToken('Invalid QR code')
    return room
