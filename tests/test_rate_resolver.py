"""
Тесты разрешения тарифа по уровням: номер, здание, глобальный.
"""

from decimal import Decimal

import pytest

from rental_platform.pricing.application import GlobalRateTier, RateResolver
from rental_platform.pricing.domain import Rate, RoomRateOverride
from rental_platform.pricing.infrastructure import (
    InMemoryRateRepository,
    InMemoryRoomRateOverrideRepository,
)
from rental_platform.shared_kernel import StayType, generate_id


class TestRateResolver:
    """Тесты для RateResolver."""

    @pytest.fixture
    def rates(self):
        return InMemoryRateRepository()

    @pytest.fixture
    def overrides(self):
        return InMemoryRoomRateOverrideRepository()

    @pytest.fixture
    def resolver(self, rates, overrides):
        return RateResolver.default(rates, overrides)

    @pytest.fixture
    def ids(self):
        return {
            "room_type_id": generate_id(),
            "room_id": generate_id(),
            "property_id": generate_id(),
        }

    def _global_rate(self, rates, room_type_id, price="350000"):
        return rates.upsert(
            Rate(
                room_type_id=room_type_id,
                stay_type=StayType.DAILY,
                price=Decimal(price),
                tax_percentage=Decimal("11"),
                service_fee=Decimal("25000"),
            )
        )

    def _property_rate(self, rates, room_type_id, property_id, price="400000"):
        return rates.upsert(
            Rate(
                room_type_id=room_type_id,
                property_id=property_id,
                stay_type=StayType.DAILY,
                price=Decimal(price),
            )
        )

    def test_tier_order(self, resolver):
        assert [tier.name for tier in resolver.tiers] == [
            "room_override",
            "property_rate",
            "global_rate",
        ]

    def test_global_rate_used_when_nothing_more_specific(self, resolver, rates, ids):
        expected = self._global_rate(rates, ids["room_type_id"])

        rate = resolver.resolve(
            ids["room_type_id"],
            StayType.DAILY,
            room_id=ids["room_id"],
            property_id=ids["property_id"],
        )

        assert rate.id == expected.id
        assert rate.is_global

    def test_property_rate_beats_global(self, resolver, rates, ids):
        self._global_rate(rates, ids["room_type_id"])
        expected = self._property_rate(rates, ids["room_type_id"], ids["property_id"])

        rate = resolver.resolve(
            ids["room_type_id"], StayType.DAILY, property_id=ids["property_id"]
        )

        assert rate.id == expected.id
        assert rate.price == Decimal("400000")

    def test_other_property_falls_through_to_global(self, resolver, rates, ids):
        self._global_rate(rates, ids["room_type_id"])
        self._property_rate(rates, ids["room_type_id"], generate_id())

        rate = resolver.resolve(
            ids["room_type_id"], StayType.DAILY, property_id=ids["property_id"]
        )

        assert rate.price == Decimal("350000")

    def test_room_override_beats_everything(self, resolver, rates, overrides, ids):
        self._global_rate(rates, ids["room_type_id"])
        self._property_rate(rates, ids["room_type_id"], ids["property_id"])
        override = overrides.upsert(
            RoomRateOverride(
                room_id=ids["room_id"], stay_type=StayType.DAILY, price=Decimal("300000")
            )
        )

        rate = resolver.resolve(
            ids["room_type_id"],
            StayType.DAILY,
            room_id=ids["room_id"],
            property_id=ids["property_id"],
        )

        assert rate.price == Decimal("300000")
        assert rate.override_id == override.id
        assert rate.min_stay == 1
        assert rate.deposit_percentage == 0
        assert rate.tax_percentage == 0
        assert rate.service_fee == 0
        assert not rate.is_global

    def test_override_for_other_stay_type_ignored(self, resolver, rates, overrides, ids):
        self._global_rate(rates, ids["room_type_id"])
        overrides.upsert(
            RoomRateOverride(
                room_id=ids["room_id"], stay_type=StayType.WEEKLY, price=Decimal("1")
            )
        )

        rate = resolver.resolve(ids["room_type_id"], StayType.DAILY, room_id=ids["room_id"])

        assert rate.price == Decimal("350000")

    def test_inactive_override_falls_through(self, resolver, rates, overrides, ids):
        self._property_rate(rates, ids["room_type_id"], ids["property_id"])
        overrides.upsert(
            RoomRateOverride(
                room_id=ids["room_id"],
                stay_type=StayType.DAILY,
                price=Decimal("1"),
                is_active=False,
            )
        )

        rate = resolver.resolve(
            ids["room_type_id"],
            StayType.DAILY,
            room_id=ids["room_id"],
            property_id=ids["property_id"],
        )

        assert rate.price == Decimal("400000")

    def test_inactive_rate_is_skipped(self, resolver, rates, ids):
        rates.upsert(
            Rate(
                room_type_id=ids["room_type_id"],
                stay_type=StayType.DAILY,
                price=Decimal("350000"),
                is_active=False,
            )
        )

        assert resolver.resolve(ids["room_type_id"], StayType.DAILY) is None

    def test_missing_rate_returns_none(self, resolver, rates, ids):
        rates.upsert(
            Rate(
                room_type_id=ids["room_type_id"],
                stay_type=StayType.WEEKLY,
                price=Decimal("2000000"),
            )
        )

        assert resolver.resolve(ids["room_type_id"], StayType.DAILY) is None

    def test_custom_tier_chain(self, rates, overrides, ids):
        self._global_rate(rates, ids["room_type_id"])
        overrides.upsert(
            RoomRateOverride(
                room_id=ids["room_id"], stay_type=StayType.DAILY, price=Decimal("1")
            )
        )
        resolver = RateResolver([GlobalRateTier(rates)])

        rate = resolver.resolve(ids["room_type_id"], StayType.DAILY, room_id=ids["room_id"])

        assert rate.price == Decimal("350000")
