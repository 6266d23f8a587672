from __future__ import annotations

import threading
import unittest
from datetime import timedelta

from support import NOW, add_item, add_room, add_usage, make_session_factory

from hotelcare.errors import InvalidToken
from hotelcare.models import GuestRecommendation, HotelConfiguration, MinibarCategoryOrder, UsageSource
from hotelcare.services.catalog_service import assemble_catalog
from hotelcare.services.room_token_service import resolve_room


class RoomTokenTests(unittest.TestCase):
    def setUp(self) -> None:
        self.db = make_session_factory()()
        self.room = add_room(self.db, token='tok-r1')
        add_room(self.db, room_number='R2', token=None)
        self.db.commit()

    def tearDown(self) -> None:
        self.db.close()

    def test_resolves_room_by_token(self) -> None:
        self.assertEqual(resolve_room(self.db, 'tok-r1').id, self.room.id)
        self.assertEqual(resolve_room(self.db, '  tok-r1 ').id, self.room.id)

    def test_unknown_or_blank_token_is_invalid(self) -> None:
        for token in ('stale-token', '', '   ', None):
            with self.subTest(token=token):
                with self.assertRaises(InvalidToken):
                    resolve_room(self.db, token)


class CatalogAssemblyTests(unittest.TestCase):
    def setUp(self) -> None:
        self.session_factory = make_session_factory()
        self.db = self.session_factory()
        self.room = add_room(self.db)
        self.other_room = add_room(self.db, room_number='R2', token='tok-r2')
        self.water = add_item(self.db, name='Water', category='drinks', price='1.00')
        self.cola = add_item(self.db, name='Cola', category='drinks', price='2.50')
        self.nuts = add_item(self.db, name='Nuts', category='snacks', price='4.00')
        add_item(self.db, name='Old Beer', category='drinks', active=False)
        self.db.add_all(
            [
                MinibarCategoryOrder(category='snacks', sort_order=1),
                MinibarCategoryOrder(category='drinks', sort_order=2),
                GuestRecommendation(title='Spa', sort_order=2, is_active=True),
                GuestRecommendation(title='Rooftop bar', sort_order=1, is_active=True),
                GuestRecommendation(title='Closed museum', sort_order=0, is_active=False),
            ]
        )
        self.db.commit()

    def tearDown(self) -> None:
        self.db.close()

    def test_branding_falls_back_to_hotel_name(self) -> None:
        catalog = assemble_catalog(self.db, room=self.room, now=NOW)
        self.assertEqual(catalog.branding, {'hotel_name': 'hotel-a'})

    def test_branding_matches_hotel_id_or_name(self) -> None:
        self.db.add(
            HotelConfiguration(
                hotel_id='hotel-a',
                hotel_name='Hotel Alpha',
                custom_logo_url='https://cdn.example/logo.png',
                custom_primary_color='#112233',
            )
        )
        self.db.commit()

        catalog = assemble_catalog(self.db, room=self.room, now=NOW)

        self.assertEqual(catalog.branding['hotel_name'], 'Hotel Alpha')
        self.assertEqual(catalog.branding['custom_primary_color'], '#112233')
        self.assertIsNone(catalog.branding['minibar_logo_url'])

    def test_items_order_and_recommendations(self) -> None:
        catalog = assemble_catalog(self.db, room=self.room, now=NOW)

        self.assertEqual([item['name'] for item in catalog.items], ['Cola', 'Water', 'Nuts'])
        self.assertEqual(catalog.items[0]['price'], 2.5)
        self.assertEqual([row['category'] for row in catalog.category_order], ['snacks', 'drinks'])
        self.assertEqual([row['title'] for row in catalog.recommendations], ['Rooftop bar', 'Spa'])

    def test_existing_usage_is_today_active_and_room_scoped(self) -> None:
        add_usage(self.db, room=self.room, item=self.water, quantity=2, source=UsageSource.STAFF)
        add_usage(self.db, room=self.room, item=self.cola, quantity=1, source=UsageSource.GUEST)
        add_usage(self.db, room=self.room, item=self.nuts, cleared=True)
        add_usage(self.db, room=self.room, item=self.nuts, at=NOW - timedelta(days=1))
        add_usage(self.db, room=self.other_room, item=self.nuts)
        self.db.commit()

        response = assemble_catalog(self.db, room=self.room, now=NOW).as_response()

        self.assertEqual(
            response['existingUsage'],
            [
                {'minibar_item_id': self.water.id, 'source': 'staff', 'quantity_used': 2},
                {'minibar_item_id': self.cola.id, 'source': 'guest', 'quantity_used': 1},
            ],
        )
        self.assertEqual(response['room'], {'id': self.room.id, 'room_number': 'R1', 'hotel': 'hotel-a'})
        self.assertEqual(
            set(response),
            {'room', 'branding', 'items', 'categoryOrder', 'recommendations', 'existingUsage'},
        )

    def test_independent_reads_overlap_on_separate_sessions(self) -> None:
        # All four readers must be in flight at once to get past the barrier.
        barrier = threading.Barrier(4, timeout=5)
        opened = []

        def reader_session():
            barrier.wait()
            opened.append(threading.current_thread().name)
            return self.session_factory()

        catalog = assemble_catalog(self.db, room=self.room, now=NOW, session_factory=reader_session)

        self.assertEqual(len(opened), 4)
        self.assertTrue(all(name.startswith('catalog') for name in opened))
        self.assertEqual([item['name'] for item in catalog.items], ['Cola', 'Water', 'Nuts'])
        self.assertEqual(catalog.branding, {'hotel_name': 'hotel-a'})
        self.assertEqual([row['title'] for row in catalog.recommendations], ['Rooftop bar', 'Spa'])


if __name__ == '__main__':
    unittest.main()
