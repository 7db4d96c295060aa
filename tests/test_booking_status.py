"""
Тесты машины состояний бронирования, смены статусов и запросов.
"""

from datetime import timedelta
from decimal import Decimal

import pytest

from conftest import CHECK_IN, make_request
from rental_platform.booking.domain import (
    ALLOWED_TRANSITIONS,
    Booking,
    derive_payment_status,
)
from rental_platform.notifications.domain import NotificationType
from rental_platform.shared_kernel import (
    BookingStatus,
    BusinessRuleValidationException,
    DateRange,
    InvalidStatusTransitionError,
    NotFoundError,
    PaymentStatus,
    RoomStatus,
    StayType,
    generate_id,
    now,
)


def make_booking(status=BookingStatus.PENDING, **values):
    data = {
        "guest_id": generate_id(),
        "room_id": generate_id(),
        "property_id": generate_id(),
        "period": DateRange(check_in=CHECK_IN, check_out=CHECK_IN + timedelta(days=2)),
        "stay_type": StayType.DAILY,
        "status": status,
        "total_amount": Decimal("1000"),
    }
    data.update(values)
    return Booking(**data)


@pytest.fixture
def confirmed_booking(orchestrator, room):
    return orchestrator.create_reservation(
        make_request(room.id, payment_method_type="pay_at_property")
    ).booking


class TestBookingDomain:
    """Тесты агрегата бронирования."""

    @pytest.mark.parametrize("current", list(BookingStatus))
    @pytest.mark.parametrize("target", list(BookingStatus))
    def test_transition_matrix(self, current, target):
        booking = make_booking(current)
        allowed = target in ALLOWED_TRANSITIONS[current]

        assert booking.can_transition_to(target) == allowed
        if allowed:
            booking.transition_to(target)
            assert booking.status == target
        else:
            with pytest.raises(InvalidStatusTransitionError):
                booking.transition_to(target)
            assert booking.status == current

    def test_terminal_statuses_have_no_exits(self):
        for status in (BookingStatus.CHECKED_OUT, BookingStatus.CANCELLED, BookingStatus.NO_SHOW):
            assert ALLOWED_TRANSITIONS[status] == frozenset()
            assert status.is_terminal

    @pytest.mark.parametrize(
        "paid, expected",
        [
            ("0", PaymentStatus.UNPAID),
            ("1", PaymentStatus.PARTIAL),
            ("999", PaymentStatus.PARTIAL),
            ("1000", PaymentStatus.PAID),
            ("1200", PaymentStatus.PAID),
        ],
    )
    def test_payment_status_is_derived(self, paid, expected):
        assert derive_payment_status(Decimal(paid), Decimal("1000")) == expected

    def test_apply_payment(self):
        booking = make_booking()

        booking.apply_payment(Decimal("400"))

        assert booking.paid_amount == Decimal("400")
        assert booking.payment_status == PaymentStatus.PARTIAL
        assert booking.status == BookingStatus.CONFIRMED

    @pytest.mark.parametrize("amount", ["0", "-1"])
    def test_apply_payment_rejects_non_positive(self, amount):
        with pytest.raises(BusinessRuleValidationException):
            make_booking().apply_payment(Decimal(amount))

    def test_refund_cannot_exceed_paid(self):
        booking = make_booking(paid_amount=Decimal("300"))

        with pytest.raises(BusinessRuleValidationException):
            booking.apply_refund(Decimal("301"))

    def test_cancel_records_reason(self):
        booking = make_booking()

        booking.cancel("Tamu batal")

        assert booking.status == BookingStatus.CANCELLED
        assert booking.cancellation_reason == "Tamu batal"
        assert booking.cancelled_at is not None


class TestBookingStatusService:
    """Смена статусов на ресепшене."""

    def test_check_in_stores_guest_identity(self, statuses, uow, confirmed_booking, notifier):
        booking = statuses.check_in(confirmed_booking.id, id_type="KTP", id_number="3171234567890001")

        assert booking.status == BookingStatus.CHECKED_IN
        assert booking.checked_in_at is not None
        guest = uow.guests.get_by_id(booking.guest_id)
        assert guest.id_type == "KTP"
        assert guest.id_number == "3171234567890001"
        event = notifier.events[-1]
        assert event.type == NotificationType.CHECK_IN
        assert "101" in event.message

    def test_check_out_frees_room(self, statuses, uow, room, confirmed_booking, notifier):
        statuses.check_in(confirmed_booking.id)
        occupied = uow.rooms.get_by_id(room.id)
        occupied.status = RoomStatus.OCCUPIED
        uow.rooms.update(occupied)

        booking = statuses.check_out(confirmed_booking.id)

        assert booking.status == BookingStatus.CHECKED_OUT
        assert booking.checked_out_at is not None
        assert uow.rooms.get_by_id(room.id).status == RoomStatus.AVAILABLE
        assert notifier.events[-1].type == NotificationType.CHECK_OUT

    def test_pending_booking_cannot_check_in(self, statuses, orchestrator, room):
        pending = orchestrator.create_reservation(make_request(room.id)).booking

        with pytest.raises(InvalidStatusTransitionError):
            statuses.check_in(pending.id)

    def test_checked_out_is_final(self, statuses, confirmed_booking):
        statuses.check_in(confirmed_booking.id)
        statuses.check_out(confirmed_booking.id)

        with pytest.raises(InvalidStatusTransitionError):
            statuses.cancel(confirmed_booking.id)

    def test_cancel_releases_dates(self, statuses, orchestrator, uow, room, confirmed_booking):
        booking = statuses.cancel(confirmed_booking.id, "Double booking")

        assert booking.cancellation_reason == "Double booking"
        assert uow.bookings.room_is_free(room.id, booking.check_in, booking.check_out)
        orchestrator.create_reservation(make_request(room.id))

    def test_admin_notes_and_no_show(self, statuses, confirmed_booking):
        booking = statuses.update_status(
            {
                "booking_id": confirmed_booking.id,
                "status": "no_show",
                "admin_notes": "Tidak datang",
            }
        )

        assert booking.status == BookingStatus.NO_SHOW
        assert booking.admin_notes == "Tidak datang"

    def test_unknown_booking(self, statuses):
        with pytest.raises(NotFoundError):
            statuses.cancel(generate_id())


class TestBookingQueries:
    """Запросы к бронированиям."""

    def test_get_by_id_and_code(self, queries, confirmed_booking):
        by_id = queries.get_booking(confirmed_booking.id)
        by_code = queries.get_by_code(confirmed_booking.booking_code)

        assert by_id.id == by_code.id == confirmed_booking.id
        with pytest.raises(NotFoundError):
            queries.get_by_code("BK-00000000-000000")

    def test_list_filters_and_search(self, queries, orchestrator, rooms):
        orchestrator.create_reservation(make_request(rooms[0].id))
        request = make_request(rooms[1].id, payment_method_type="pay_at_property")
        request["guest"] = {
            "full_name": "Dewi Lestari",
            "email": "dewi@example.com",
            "phone": "+62 811 222 333",
        }
        confirmed = orchestrator.create_reservation(request).booking

        assert queries.list_bookings().total == 2
        assert queries.list_bookings(status=BookingStatus.CONFIRMED).items[0].id == confirmed.id
        assert queries.list_bookings(payment_status=PaymentStatus.PAID).total == 0
        assert queries.list_bookings(search="dewi").items[0].id == confirmed.id
        assert queries.list_bookings(search=confirmed.booking_code.lower()).total == 1
        assert queries.list_bookings(property_id=generate_id()).total == 0

    def test_pagination(self, queries, orchestrator, room):
        for week in range(5):
            orchestrator.create_reservation(
                make_request(room.id, check_in=CHECK_IN + timedelta(days=7 * week))
            )

        page = queries.list_bookings(page=2, per_page=2)

        assert page.total == 5
        assert page.page == 2
        assert len(page.items) == 2
        assert queries.list_bookings(per_page=1000).per_page == 100

    def test_stale_pending(self, queries, orchestrator, rooms):
        pending = orchestrator.create_reservation(make_request(rooms[0].id)).booking
        orchestrator.create_reservation(
            make_request(rooms[1].id, payment_method_type="pay_at_property")
        )

        assert queries.stale_pending() == []
        stale = queries.stale_pending(at=now() + timedelta(hours=25))
        assert [b.id for b in stale] == [pending.id]
        assert queries.stale_pending(
            at=now() + timedelta(hours=2), timeout=timedelta(hours=1)
        )[0].id == pending.id

    def test_stale_pending_accepts_naive_time(self, queries, orchestrator, room):
        pending = orchestrator.create_reservation(make_request(room.id)).booking
        naive = (now() + timedelta(hours=25)).replace(tzinfo=None)

        stale = queries.stale_pending(at=naive)

        assert [b.id for b in stale] == [pending.id]
        assert queries.stale_pending(at=naive - timedelta(hours=2)) == []
