from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import or_, select
from sqlalchemy.orm import Session, sessionmaker

from hotelcare.models import GuestRecommendation, HotelConfiguration, MinibarCategoryOrder, MinibarItem, Room
from hotelcare.services.usage_service import current_day_window, list_active_usage

CATALOG_READERS = 4


@dataclass(frozen=True)
class GuestCatalog:
    room: dict
    branding: dict
    items: list[dict]
    category_order: list[dict]
    recommendations: list[dict]
    existing_usage: list[dict]

    def as_response(self) -> dict:
        return {
            'room': self.room,
            'branding': self.branding,
            'items': self.items,
            'categoryOrder': self.category_order,
            'recommendations': self.recommendations,
            'existingUsage': self.existing_usage,
        }


def _branding(db: Session, hotel: str) -> dict:
    config = db.execute(
        select(HotelConfiguration)
        .where(or_(HotelConfiguration.hotel_id == hotel, HotelConfiguration.hotel_name == hotel))
        .order_by(HotelConfiguration.id.asc())
        .limit(1)
    ).scalars().first()
    if not config:
        return {'hotel_name': hotel}
    return {
        'hotel_name': config.hotel_name,
        'custom_logo_url': config.custom_logo_url,
        'minibar_logo_url': config.minibar_logo_url,
        'custom_primary_color': config.custom_primary_color,
    }


def _active_items(db: Session) -> list[dict]:
    rows = db.execute(
        select(MinibarItem)
        .where(MinibarItem.is_active.is_(True))
        .order_by(MinibarItem.category.asc(), MinibarItem.name.asc())
    ).scalars().all()
    return [
        {
            'id': item.id,
            'name': item.name,
            'category': item.category,
            'price': float(item.price),
            'image_url': item.image_url,
            'is_promoted': item.is_promoted,
            'translations': item.translations or {},
        }
        for item in rows
    ]


def _category_order(db: Session) -> list[dict]:
    rows = db.execute(select(MinibarCategoryOrder).order_by(MinibarCategoryOrder.sort_order.asc())).scalars().all()
    return [{'category': row.category, 'sort_order': row.sort_order} for row in rows]


def _recommendations(db: Session) -> list[dict]:
    rows = db.execute(
        select(GuestRecommendation)
        .where(GuestRecommendation.is_active.is_(True))
        .order_by(GuestRecommendation.sort_order.asc(), GuestRecommendation.id.asc())
    ).scalars().all()
    return [
        {
            'id': row.id,
            'title': row.title,
            'description': row.description,
            'category': row.category,
            'link_url': row.link_url,
            'sort_order': row.sort_order,
        }
        for row in rows
    ]


def _read(session_factory: sessionmaker, reader, *args):
    with session_factory() as session:
        return reader(session, *args)


def assemble_catalog(
    db: Session,
    *,
    room: Room,
    now: datetime | None = None,
    session_factory: sessionmaker | None = None,
) -> GuestCatalog:
    """Build the guest minibar page for one room.

    Branding, items, category order and recommendations do not depend on each
    other and are read in parallel, each on its own session. Today's usage stays
    on the request session.
    """
    window = current_day_window(now)
    session_factory = session_factory or sessionmaker(bind=db.get_bind(), autoflush=False, expire_on_commit=False)

    with ThreadPoolExecutor(max_workers=CATALOG_READERS, thread_name_prefix='catalog') as executor:
        branding = executor.submit(_read, session_factory, _branding, room.hotel)
        items = executor.submit(_read, session_factory, _active_items)
        category_order = executor.submit(_read, session_factory, _category_order)
        recommendations = executor.submit(_read, session_factory, _recommendations)

        existing_usage = [
            {
                'minibar_item_id': usage.minibar_item_id,
                'source': usage.source.value,
                'quantity_used': usage.quantity_used,
            }
            for usage in list_active_usage(db, room_id=room.id, window=window)
        ]

        return GuestCatalog(
            room={'id': room.id, 'room_number': room.room_number, 'hotel': room.hotel},
            branding=branding.result(),
            items=items.result(),
            category_order=category_order.result(),
            recommendations=recommendations.result(),
            existing_usage=existing_usage,
        )
