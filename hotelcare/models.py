from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from enum import Enum

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    Enum as SQLEnum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    func,
    text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

# SQLite only autoincrements INTEGER PRIMARY KEY.
BigIntId = BigInteger().with_variant(Integer(), 'sqlite')


class Base(DeclarativeBase):
    pass


class PrincipalRole(str, Enum):
    ADMIN = 'ADMIN'
    MANAGER = 'MANAGER'
    HOUSEKEEPING = 'HOUSEKEEPING'
    RECEPTION = 'RECEPTION'


class UsageSource(str, Enum):
    STAFF = 'staff'
    GUEST = 'guest'


class SyncType(str, Enum):
    MINIBAR = 'minibar'
    STATUS_UPDATE = 'status_update'


class SyncStatus(str, Enum):
    SUCCESS = 'success'
    PARTIAL = 'partial'
    FAILED = 'failed'


class RoomStatus(str, Enum):
    CLEAN = 'clean'
    DIRTY = 'dirty'
    IN_PROGRESS = 'in_progress'
    MAINTENANCE = 'maintenance'
    INSPECTED = 'inspected'
    OUT_OF_ORDER = 'out_of_order'


class Room(Base):
    __tablename__ = 'rooms'

    id: Mapped[int] = mapped_column(BigIntId, primary_key=True)
    room_number: Mapped[str] = mapped_column(Text, nullable=False)
    hotel: Mapped[str] = mapped_column(Text, nullable=False)
    organization_slug: Mapped[str | None] = mapped_column(Text)
    minibar_qr_token: Mapped[str | None] = mapped_column(String(128), unique=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())


class HotelConfiguration(Base):
    __tablename__ = 'hotel_configurations'

    id: Mapped[int] = mapped_column(BigIntId, primary_key=True)
    hotel_id: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    hotel_name: Mapped[str] = mapped_column(Text, nullable=False)
    custom_logo_url: Mapped[str | None] = mapped_column(Text)
    minibar_logo_url: Mapped[str | None] = mapped_column(Text)
    custom_primary_color: Mapped[str | None] = mapped_column(Text)


class MinibarItem(Base):
    __tablename__ = 'minibar_items'

    id: Mapped[int] = mapped_column(BigIntId, primary_key=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    category: Mapped[str] = mapped_column(Text, nullable=False, default='other', server_default='other')
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, default=Decimal('0'), server_default='0')
    image_url: Mapped[str | None] = mapped_column(Text)
    is_promoted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default='false')
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default='true')
    translations: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict, server_default='{}')


class MinibarCategoryOrder(Base):
    __tablename__ = 'minibar_category_order'

    category: Mapped[str] = mapped_column(Text, primary_key=True)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default='0')


class GuestRecommendation(Base):
    __tablename__ = 'guest_recommendations'

    id: Mapped[int] = mapped_column(BigIntId, primary_key=True)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    category: Mapped[str | None] = mapped_column(Text)
    link_url: Mapped[str | None] = mapped_column(Text)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default='0')
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default='true')


class Principal(Base):
    __tablename__ = 'principals'

    id: Mapped[int] = mapped_column(BigIntId, primary_key=True)
    username: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    full_name: Mapped[str | None] = mapped_column(Text)
    role: Mapped[PrincipalRole] = mapped_column(SQLEnum(PrincipalRole, name='principal_role'), nullable=False)
    organization_slug: Mapped[str | None] = mapped_column(Text)
    assigned_hotel: Mapped[str | None] = mapped_column(Text)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default='true')
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())


class WebSession(Base):
    __tablename__ = 'web_sessions'

    id: Mapped[int] = mapped_column(BigIntId, primary_key=True)
    session_token: Mapped[str] = mapped_column(String(128), nullable=False, unique=True)
    principal_id: Mapped[int] = mapped_column(BigInteger, ForeignKey('principals.id'), nullable=False)
    ip: Mapped[str | None] = mapped_column(String(64))
    user_agent: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
    last_seen_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    revoked_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))


class RoomMinibarUsage(Base):
    __tablename__ = 'room_minibar_usage'
    __table_args__ = (
        CheckConstraint('quantity_used >= 1', name='room_minibar_usage_quantity_positive'),
        # One effective charge per room, item and day while the row is still active.
        Index(
            'room_minibar_usage_active_charge_key',
            'room_id',
            'minibar_item_id',
            'charge_day',
            unique=True,
            postgresql_where=text('NOT is_cleared'),
            sqlite_where=text('is_cleared = 0'),
        ),
    )

    id: Mapped[int] = mapped_column(BigIntId, primary_key=True)
    room_id: Mapped[int] = mapped_column(BigInteger, ForeignKey('rooms.id', ondelete='CASCADE'), nullable=False)
    minibar_item_id: Mapped[int] = mapped_column(BigInteger, ForeignKey('minibar_items.id'), nullable=False)
    quantity_used: Mapped[int] = mapped_column(Integer, nullable=False)
    source: Mapped[UsageSource] = mapped_column(
        SQLEnum(UsageSource, name='usage_source', values_callable=lambda e: [m.value for m in e]),
        nullable=False,
    )
    recorded_by: Mapped[int | None] = mapped_column(BigInteger, ForeignKey('principals.id'))
    organization_slug: Mapped[str | None] = mapped_column(Text)
    usage_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    charge_day: Mapped[date] = mapped_column(Date, nullable=False)
    is_cleared: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default='false')
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())


class PMSSyncHistory(Base):
    __tablename__ = 'pms_sync_history'

    id: Mapped[int] = mapped_column(BigIntId, primary_key=True)
    sync_type: Mapped[SyncType] = mapped_column(
        SQLEnum(SyncType, name='pms_sync_type', values_callable=lambda e: [m.value for m in e]),
        nullable=False,
    )
    direction: Mapped[str] = mapped_column(Text, nullable=False, default='to_pms', server_default='to_pms')
    hotel_id: Mapped[str | None] = mapped_column(Text)
    room_number: Mapped[str | None] = mapped_column(Text)
    data: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict, server_default='{}')
    errors: Mapped[list] = mapped_column(JSON, nullable=False, default=list, server_default='[]')
    error_message: Mapped[str | None] = mapped_column(Text)
    sync_status: Mapped[SyncStatus] = mapped_column(
        SQLEnum(SyncStatus, name='pms_sync_status', values_callable=lambda e: [m.value for m in e]),
        nullable=False,
    )
    changed_by: Mapped[int | None] = mapped_column(BigInteger, ForeignKey('principals.id'))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())


class AuditLog(Base):
    __tablename__ = 'audit_log'

    id: Mapped[int] = mapped_column(BigIntId, primary_key=True)
    actor_principal_id: Mapped[int | None] = mapped_column(BigInteger, ForeignKey('principals.id'))
    action: Mapped[str] = mapped_column(Text, nullable=False)
    ip: Mapped[str | None] = mapped_column(String(64))
    meta: Mapped[dict] = mapped_column('metadata', JSON, nullable=False, default=dict, server_default='{}')
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
