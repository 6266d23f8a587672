from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timezone, tzinfo
from decimal import Decimal
from enum import Enum
from zoneinfo import ZoneInfo

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from hotelcare.config import settings
from hotelcare.errors import InvalidInput
from hotelcare.models import MinibarItem, Principal, Room, RoomMinibarUsage, UsageSource

logger = logging.getLogger(__name__)

MIN_QUANTITY = 1
MAX_QUANTITY = 50
END_OF_DAY = time(23, 59, 59, 999000)

ITEMS_REQUIRED_ERROR = 'roomToken and items array are required'
ITEM_SHAPE_ERROR = f'Each item must have minibar_item_id and quantity ({MIN_QUANTITY}-{MAX_QUANTITY})'


@dataclass(frozen=True)
class DayWindow:
    """One local calendar day expressed as inclusive UTC bounds."""

    day: date
    start: datetime
    end: datetime


@dataclass(frozen=True)
class GuestLineItem:
    minibar_item_id: int
    quantity: int


@dataclass(frozen=True)
class IngestResult:
    inserted_count: int
    skipped_count: int
    room_number: str


class StaffUsageOutcome(str, Enum):
    CREATED = 'created'
    OVERRODE_GUEST = 'overrode_guest'
    ALREADY_RECORDED = 'already_recorded'


@dataclass(frozen=True)
class DailyUsageLine:
    id: int
    room_number: str
    hotel: str
    item_name: str
    quantity_used: int
    item_price: Decimal
    total_price: Decimal
    usage_date: datetime
    source: UsageSource
    recorded_by_name: str | None


@dataclass(frozen=True)
class DailyUsageReport:
    day: date
    lines: list[DailyUsageLine]
    total_revenue: Decimal
    total_items: int
    rooms_with_usage: int


def _now() -> datetime:
    return datetime.now(tz=timezone.utc)


def hotel_timezone() -> tzinfo:
    name = settings.hotel_timezone.strip()
    if name.upper() == 'UTC':
        return timezone.utc
    return ZoneInfo(name)


def day_window(day: date, tz: tzinfo | None = None) -> DayWindow:
    tz = tz or hotel_timezone()
    start = datetime.combine(day, time.min, tzinfo=tz)
    end = datetime.combine(day, END_OF_DAY, tzinfo=tz)
    return DayWindow(day=day, start=start.astimezone(timezone.utc), end=end.astimezone(timezone.utc))


def current_day_window(now: datetime | None = None, tz: tzinfo | None = None) -> DayWindow:
    """The window both the guest catalog and guest ingestion charge against."""
    tz = tz or hotel_timezone()
    now = now or _now()
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return day_window(now.astimezone(tz).date(), tz)


def _parse_item_id(value) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if value > 0 else None
    if isinstance(value, str) and value.strip().isdigit():
        parsed = int(value.strip())
        return parsed if parsed > 0 else None
    return None


def validate_quantity(value) -> int:
    # Out-of-range quantities are rejected, never clamped.
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidInput(ITEM_SHAPE_ERROR)
    if value < MIN_QUANTITY or value > MAX_QUANTITY:
        raise InvalidInput(ITEM_SHAPE_ERROR)
    return value


def parse_guest_items(raw_items) -> list[GuestLineItem]:
    if not isinstance(raw_items, list) or not raw_items:
        raise InvalidInput(ITEMS_REQUIRED_ERROR)

    parsed: list[GuestLineItem] = []
    for raw in raw_items:
        if not isinstance(raw, dict):
            raise InvalidInput(ITEM_SHAPE_ERROR)
        item_id = _parse_item_id(raw.get('minibar_item_id'))
        if item_id is None:
            raise InvalidInput(ITEM_SHAPE_ERROR)
        parsed.append(GuestLineItem(minibar_item_id=item_id, quantity=validate_quantity(raw.get('quantity'))))
    return parsed


def _ensure_active_items(db: Session, item_ids: set[int]) -> None:
    found = set(
        db.execute(
            select(MinibarItem.id).where(MinibarItem.id.in_(item_ids), MinibarItem.is_active.is_(True))
        ).scalars().all()
    )
    if found != item_ids:
        raise InvalidInput(ITEM_SHAPE_ERROR)


def find_active_usage(
    db: Session,
    *,
    room_id: int,
    minibar_item_id: int,
    window: DayWindow,
) -> RoomMinibarUsage | None:
    return db.execute(
        select(RoomMinibarUsage)
        .where(
            RoomMinibarUsage.room_id == room_id,
            RoomMinibarUsage.minibar_item_id == minibar_item_id,
            RoomMinibarUsage.is_cleared.is_(False),
            RoomMinibarUsage.usage_date >= window.start,
            RoomMinibarUsage.usage_date <= window.end,
        )
        .order_by(RoomMinibarUsage.id.asc())
        .limit(1)
    ).scalars().first()


def list_active_usage(db: Session, *, room_id: int, window: DayWindow) -> list[RoomMinibarUsage]:
    return db.execute(
        select(RoomMinibarUsage)
        .where(
            RoomMinibarUsage.room_id == room_id,
            RoomMinibarUsage.is_cleared.is_(False),
            RoomMinibarUsage.usage_date >= window.start,
            RoomMinibarUsage.usage_date <= window.end,
        )
        .order_by(RoomMinibarUsage.id.asc())
    ).scalars().all()


def _insert_usage(db: Session, usage: RoomMinibarUsage) -> bool:
    """Insert inside a savepoint; False when the active-charge index already holds a row."""
    try:
        with db.begin_nested():
            db.add(usage)
            db.flush()
    except IntegrityError:
        logger.info(
            'Concurrent usage row for room_id=%s item_id=%s day=%s, skipping',
            usage.room_id,
            usage.minibar_item_id,
            usage.charge_day,
        )
        return False
    return True


def ingest_guest_usage(
    db: Session,
    *,
    room: Room,
    raw_items,
    now: datetime | None = None,
) -> IngestResult:
    items = parse_guest_items(raw_items)
    _ensure_active_items(db, {item.minibar_item_id for item in items})

    now = now or _now()
    window = current_day_window(now)
    organization_slug = room.organization_slug or settings.default_organization_slug

    inserted: list[int] = []
    skipped: list[int] = []
    for item in items:
        # Staff walked the room or the guest already reported it today.
        if find_active_usage(db, room_id=room.id, minibar_item_id=item.minibar_item_id, window=window):
            skipped.append(item.minibar_item_id)
            continue

        usage = RoomMinibarUsage(
            room_id=room.id,
            minibar_item_id=item.minibar_item_id,
            quantity_used=item.quantity,
            source=UsageSource.GUEST,
            recorded_by=None,
            organization_slug=organization_slug,
            usage_date=now,
            charge_day=window.day,
            is_cleared=False,
        )
        if _insert_usage(db, usage):
            inserted.append(item.minibar_item_id)
        else:
            skipped.append(item.minibar_item_id)

    logger.info(
        'Guest minibar submission for room %s: inserted=%s skipped=%s',
        room.room_number,
        inserted,
        skipped,
    )
    return IngestResult(inserted_count=len(inserted), skipped_count=len(skipped), room_number=room.room_number)


def record_staff_usage(
    db: Session,
    *,
    room_id: int,
    minibar_item_id: int,
    quantity,
    principal_id: int,
    organization_slug: str | None = None,
    now: datetime | None = None,
) -> tuple[StaffUsageOutcome, RoomMinibarUsage]:
    quantity = validate_quantity(quantity)
    room = db.execute(select(Room).where(Room.id == room_id)).scalar_one_or_none()
    if not room:
        raise InvalidInput('Room not found')
    _ensure_active_items(db, {minibar_item_id})

    now = now or _now()
    window = current_day_window(now)

    existing = find_active_usage(db, room_id=room_id, minibar_item_id=minibar_item_id, window=window)
    if existing is None:
        usage = RoomMinibarUsage(
            room_id=room_id,
            minibar_item_id=minibar_item_id,
            quantity_used=quantity,
            source=UsageSource.STAFF,
            recorded_by=principal_id,
            organization_slug=organization_slug or room.organization_slug or settings.default_organization_slug,
            usage_date=now,
            charge_day=window.day,
            is_cleared=False,
        )
        if _insert_usage(db, usage):
            return StaffUsageOutcome.CREATED, usage
        existing = find_active_usage(db, room_id=room_id, minibar_item_id=minibar_item_id, window=window)
        if existing is None:
            raise RuntimeError('Usage row vanished after a uniqueness conflict')

    if existing.source == UsageSource.GUEST:
        # Staff confirmation replaces the guest self-report.
        existing.quantity_used = quantity
        existing.recorded_by = principal_id
        existing.source = UsageSource.STAFF
        db.flush()
        logger.info('Staff %s confirmed guest usage row %s', principal_id, existing.id)
        return StaffUsageOutcome.OVERRODE_GUEST, existing

    return StaffUsageOutcome.ALREADY_RECORDED, existing


def _usage_rows_for_day(db: Session, *, day: date, hotel: str | None):
    window = day_window(day)
    stmt = (
        select(RoomMinibarUsage, Room, MinibarItem, Principal.full_name)
        .join(Room, Room.id == RoomMinibarUsage.room_id)
        .join(MinibarItem, MinibarItem.id == RoomMinibarUsage.minibar_item_id)
        .outerjoin(Principal, Principal.id == RoomMinibarUsage.recorded_by)
        .where(
            RoomMinibarUsage.is_cleared.is_(False),
            RoomMinibarUsage.usage_date >= window.start,
            RoomMinibarUsage.usage_date <= window.end,
        )
    )
    if hotel:
        stmt = stmt.where(Room.hotel == hotel)
    return db.execute(stmt.order_by(RoomMinibarUsage.usage_date.desc(), RoomMinibarUsage.id.desc())).all()


def list_daily_usage(db: Session, *, day: date, hotel: str | None = None) -> DailyUsageReport:
    lines: list[DailyUsageLine] = []
    for usage, room, item, recorded_by_name in _usage_rows_for_day(db, day=day, hotel=hotel):
        price = Decimal(item.price or 0)
        lines.append(
            DailyUsageLine(
                id=usage.id,
                room_number=room.room_number,
                hotel=room.hotel,
                item_name=item.name,
                quantity_used=usage.quantity_used,
                item_price=price,
                total_price=price * usage.quantity_used,
                usage_date=usage.usage_date,
                source=usage.source,
                recorded_by_name=recorded_by_name,
            )
        )

    return DailyUsageReport(
        day=day,
        lines=lines,
        total_revenue=sum((line.total_price for line in lines), Decimal('0')),
        total_items=sum(line.quantity_used for line in lines),
        rooms_with_usage=len({(line.hotel, line.room_number) for line in lines}),
    )


def consumption_by_room(db: Session, *, hotel: str, day: date) -> dict[str, list[dict]]:
    """Group a hotel's active usage for one day into per-room PMS minibar payloads."""
    by_room: dict[str, list[dict]] = {}
    for usage, room, item, _recorded_by_name in reversed(_usage_rows_for_day(db, day=day, hotel=hotel)):
        recorded_at = usage.usage_date
        if recorded_at.tzinfo is None:
            recorded_at = recorded_at.replace(tzinfo=timezone.utc)
        by_room.setdefault(room.room_number, []).append(
            {
                'item_name': item.name,
                'quantity': usage.quantity_used,
                'price': float(item.price) if item.price is not None else None,
                'recorded_at': recorded_at.isoformat(),
            }
        )
    return by_room
