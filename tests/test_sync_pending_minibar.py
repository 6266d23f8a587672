from __future__ import annotations

import unittest
from datetime import timedelta

from sqlalchemy import select

from support import NOW, FakePMSClient, add_item, add_room, add_usage, make_session_factory

from hotelcare.models import PMSSyncHistory, SyncStatus, UsageSource
from hotelcare.sync_pending_minibar import push_hotel_minibar


class PushHotelMinibarTests(unittest.TestCase):
    def setUp(self) -> None:
        self.session_factory = make_session_factory()
        with self.session_factory() as db:
            room_one = add_room(db, room_number='101', token='tok-101')
            room_two = add_room(db, room_number='102', token='tok-102')
            elsewhere = add_room(db, room_number='201', hotel='hotel-b', token='tok-201')
            soda = add_item(db, name='Soda', price='3.50')
            chips = add_item(db, name='Chips', category='snacks', price='2.00')
            add_usage(db, room=room_one, item=soda, quantity=2)
            add_usage(db, room=room_one, item=chips, quantity=1, source=UsageSource.GUEST, at=NOW + timedelta(hours=1))
            add_usage(db, room=room_two, item=chips, quantity=3)
            add_usage(db, room=room_two, item=soda, quantity=1, cleared=True)
            add_usage(db, room=room_two, item=soda, quantity=1, at=NOW - timedelta(days=1))
            add_usage(db, room=elsewhere, item=soda, quantity=4)
            db.commit()

    def test_pushes_each_room_of_the_hotel(self) -> None:
        client = FakePMSClient(failing_items={'Chips'})

        results = push_hotel_minibar(
            hotel='hotel-a',
            day=NOW.date(),
            client_factory=lambda: client,
            session_factory=self.session_factory,
        )

        self.assertEqual(sorted(results), ['101', '102'])
        self.assertEqual(results['101'].status, SyncStatus.PARTIAL)
        self.assertEqual(results['102'].status, SyncStatus.FAILED)
        sent = [(request.params.room_number, request.params.item_name, request.params.quantity) for request in client.minibar_requests]
        self.assertEqual(sent, [('101', 'Soda', 2), ('101', 'Chips', 1), ('102', 'Chips', 3)])
        self.assertEqual(client.minibar_requests[0].params.price, 3.5)
        self.assertEqual(client.minibar_requests[0].params.timestamp, NOW.isoformat())

        with self.session_factory() as db:
            history = db.execute(select(PMSSyncHistory)).scalars().all()
        self.assertEqual(len(history), 2)
        self.assertTrue(all(row.hotel_id == 'hotel-a' for row in history))

    def test_room_filter_limits_the_push(self) -> None:
        client = FakePMSClient()

        results = push_hotel_minibar(
            hotel='hotel-a',
            day=NOW.date(),
            room_numbers={'102'},
            client_factory=lambda: client,
            session_factory=self.session_factory,
        )

        self.assertEqual(list(results), ['102'])
        self.assertEqual(results['102'].status, SyncStatus.SUCCESS)
        self.assertEqual(len(client.minibar_requests), 1)

    def test_quiet_day_pushes_nothing(self) -> None:
        client = FakePMSClient()

        results = push_hotel_minibar(
            hotel='hotel-a',
            day=NOW.date() + timedelta(days=3),
            client_factory=lambda: client,
            session_factory=self.session_factory,
        )

        self.assertEqual(results, {})
        self.assertEqual(client.minibar_requests, [])


if __name__ == '__main__':
    unittest.main()
