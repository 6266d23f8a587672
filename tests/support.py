from __future__ import annotations

import itertools
import os
import secrets
import tempfile
from datetime import datetime, timedelta, timezone
from decimal import Decimal

from sqlalchemy import create_engine, select
from sqlalchemy.orm import Session, sessionmaker

from hotelcare.db import configure_sqlite_engine
from hotelcare.errors import PMSRequestError
from hotelcare.models import Base, MinibarItem, Principal, PrincipalRole, Room, RoomMinibarUsage, UsageSource, WebSession
from hotelcare.services.pms_client import PMSResponse

NOW = datetime(2026, 10, 17, 12, 0, tzinfo=timezone.utc)

# File-backed so the catalog can read on several connections at once.
_DB_DIR = tempfile.TemporaryDirectory(prefix='hotelcare-tests-')
_DB_COUNTER = itertools.count()


def make_session_factory() -> sessionmaker:
    path = os.path.join(_DB_DIR.name, f'test-{next(_DB_COUNTER)}.db')
    engine = configure_sqlite_engine(
        create_engine(f'sqlite:///{path}', connect_args={'check_same_thread': False})
    )
    Base.metadata.create_all(engine)
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


def add_room(db: Session, *, room_number: str = 'R1', hotel: str = 'hotel-a', token: str | None = 'tok-r1') -> Room:
    room = Room(room_number=room_number, hotel=hotel, organization_slug='rdhotels', minibar_qr_token=token)
    db.add(room)
    db.flush()
    return room


def add_item(
    db: Session,
    *,
    name: str = 'Soda',
    category: str = 'drinks',
    price: str = '3.50',
    active: bool = True,
) -> MinibarItem:
    item = MinibarItem(name=name, category=category, price=Decimal(price), is_active=active, translations={})
    db.add(item)
    db.flush()
    return item


def add_principal(
    db: Session,
    *,
    username: str = 'maid1',
    role: PrincipalRole = PrincipalRole.HOUSEKEEPING,
    assigned_hotel: str | None = 'hotel-a',
) -> Principal:
    principal = Principal(
        username=username,
        full_name=username.title(),
        role=role,
        organization_slug='rdhotels',
        assigned_hotel=assigned_hotel,
        active=True,
    )
    db.add(principal)
    db.flush()
    return principal


def add_web_session(
    db: Session,
    principal: Principal,
    *,
    expires_in: timedelta = timedelta(hours=12),
    revoked: bool = False,
) -> str:
    token = secrets.token_urlsafe(48)
    now = datetime.now(timezone.utc)
    db.add(
        WebSession(
            session_token=token,
            principal_id=principal.id,
            ip='127.0.0.1',
            user_agent='tests',
            expires_at=now + expires_in,
            revoked_at=now if revoked else None,
        )
    )
    db.flush()
    return token


def add_usage(
    db: Session,
    *,
    room: Room,
    item: MinibarItem,
    quantity: int = 1,
    source: UsageSource = UsageSource.STAFF,
    at: datetime = NOW,
    cleared: bool = False,
    recorded_by: int | None = None,
) -> RoomMinibarUsage:
    usage = RoomMinibarUsage(
        room_id=room.id,
        minibar_item_id=item.id,
        quantity_used=quantity,
        source=source,
        recorded_by=recorded_by,
        organization_slug='rdhotels',
        usage_date=at,
        charge_day=at.date(),
        is_cleared=cleared,
    )
    db.add(usage)
    db.flush()
    return usage


def usage_rows(db: Session) -> list[RoomMinibarUsage]:
    return db.execute(select(RoomMinibarUsage).order_by(RoomMinibarUsage.id.asc())).scalars().all()


class FakePMSClient:
    def __init__(self, *, failing_items: set[str] | None = None, status_error: str | None = None) -> None:
        self.failing_items = failing_items or set()
        self.status_error = status_error
        self.minibar_requests = []
        self.status_requests = []

    def add_minibar_consumption(self, request):
        self.minibar_requests.append(request)
        if request.params.item_name in self.failing_items:
            raise PMSRequestError('Previo API error: 503 Service Unavailable', status_code=503)
        return PMSResponse(result={'ok': True})

    def update_room_status(self, *, hotel_id, request):
        self.status_requests.append((hotel_id, request))
        if self.status_error:
            raise PMSRequestError(self.status_error)
        return PMSResponse(result={'roomNumber': request.room_number, 'status': request.status})
