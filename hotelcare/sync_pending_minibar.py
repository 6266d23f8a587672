from __future__ import annotations

import argparse
from collections.abc import Callable
from datetime import date

from hotelcare.config import settings
from hotelcare.db import SessionLocal
from hotelcare.logging_config import setup_logging
from hotelcare.models import SyncStatus
from hotelcare.services.pms_client import PMSClient
from hotelcare.services.pms_sync_service import SyncResult, sync_minibar
from hotelcare.services.provider_factory import build_pms_client
from hotelcare.services.usage_service import consumption_by_room, current_day_window


def push_hotel_minibar(
    *,
    hotel: str,
    day: date,
    room_numbers: set[str] | None = None,
    client_factory: Callable[[], PMSClient] = build_pms_client,
    session_factory=SessionLocal,
) -> dict[str, SyncResult]:
    """Push one day of active minibar usage to the PMS, one sync per room."""
    results: dict[str, SyncResult] = {}
    with session_factory() as db:
        by_room = consumption_by_room(db, hotel=hotel, day=day)
        for room_number, items in sorted(by_room.items()):
            if room_numbers and room_number not in room_numbers:
                continue
            results[room_number] = sync_minibar(
                db,
                client_factory=client_factory,
                raw_payload={'hotelId': hotel, 'roomNumber': room_number, 'items': items},
            )
    return results


def main() -> None:
    parser = argparse.ArgumentParser(description='Push active minibar usage for one hotel and day to the PMS.')
    parser.add_argument('--hotel', required=True, help='Hotel identifier as stored on rooms.hotel.')
    parser.add_argument(
        '--date',
        type=date.fromisoformat,
        default=None,
        help='Calendar day in the hotel timezone (YYYY-MM-DD). Defaults to today.',
    )
    parser.add_argument(
        '--room',
        action='append',
        default=None,
        help='Only push this room number. Repeat for several rooms.',
    )
    args = parser.parse_args()

    setup_logging(settings.log_level)
    day = args.date or current_day_window().day
    results = push_hotel_minibar(hotel=args.hotel, day=day, room_numbers=set(args.room) if args.room else None)

    counts = {status: 0 for status in SyncStatus}
    for result in results.values():
        counts[result.status] += 1
    print(
        f'PMS minibar push complete for {args.hotel} on {day.isoformat()}: '
        f'rooms={len(results)}, success={counts[SyncStatus.SUCCESS]}, '
        f'partial={counts[SyncStatus.PARTIAL]}, failed={counts[SyncStatus.FAILED]}'
    )


if __name__ == '__main__':
    main()
