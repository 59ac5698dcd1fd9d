import json
import re
from datetime import date, datetime, timedelta, timezone

import pytest

from conftest import TENANT, OTHER_TENANT, booking_body
from rentdesk.errors import ValidationFailed, ExternalDependencyFailure, NotFound, AccessDenied
from rentdesk.models.common import utcnow, as_utc
from rentdesk.models.core import AuditLog, Booking, BookingStatus, PaymentStatus
from rentdesk.services.booking import BookingService, compute_total_days
from rentdesk.services.gateways import BookingCalendar


def test_compute_total_days_rounds_up_and_floors_at_one():
    start = utcnow()
    assert compute_total_days(start, None) == 1
    assert compute_total_days(start, start + timedelta(hours=1)) == 1
    assert compute_total_days(start, start + timedelta(days=3)) == 3
    assert compute_total_days(start, start + timedelta(days=3, minutes=1)) == 4


def test_create_booking_totals_and_number(bookings, notifier):
    body = booking_body(items=[
        {"equipment_id": "eq-1", "equipment_name": "Mini excavator", "quantity": 2, "daily_rate": 100},
        {"equipment_name": "Safety kit", "quantity": 1, "daily_rate": 5.5},
    ])
    out = bookings.create_booking(body, TENANT)
    b = out["booking"]

    year = utcnow().year
    assert b.booking_number == f"FOG-{year}-00001"
    assert re.fullmatch(r"FOG-\d{4}-\d{5}", b.booking_number)
    assert b.status == BookingStatus.PENDING
    assert b.payment_status == PaymentStatus.PENDING
    assert [i.item_total for i in out["items"]] == [600, 16.5]
    assert b.total_amount == pytest.approx(616.5)
    assert all(i.total_days == 3 for i in out["items"])
    assert len(out["confirmation_token"]) == 64
    assert notifier.names() == ["booking_created"]


def test_booking_numbers_increment_per_tenant(bookings):
    first = bookings.create_booking(booking_body(), TENANT)["booking"].booking_number
    second = bookings.create_booking(booking_body(), TENANT)["booking"].booking_number
    foreign = bookings.create_booking(booking_body(), OTHER_TENANT)["booking"].booking_number
    assert first.endswith("-00001")
    assert second.endswith("-00002")
    assert foreign.endswith("-00001")


def test_expires_in_24_hours(bookings):
    before = utcnow()
    b = bookings.create_booking(booking_body(), TENANT)["booking"]
    delta = b.expires_at - before
    assert timedelta(hours=23, minutes=59) < delta <= timedelta(hours=24, seconds=5)


def test_create_writes_audit_entry(bookings, db):
    b = bookings.create_booking(booking_body(), TENANT)["booking"]
    entry = db.query(AuditLog).filter(AuditLog.entity_id == b.id).one()
    assert entry.action == "booking_created"
    assert entry.actor_user_id == "online"
    assert json.loads(entry.meta)["booking_number"] == b.booking_number


def test_end_before_start_is_rejected(bookings, db, notifier):
    start = utcnow() + timedelta(days=2)
    with pytest.raises(ValidationFailed, match="End date must be after start date"):
        bookings.create_booking(booking_body(start_date=start, end_date=start), TENANT)
    assert db.query(Booking).count() == 0
    assert notifier.events == []


def test_invalid_input_lists_every_problem(bookings):
    with pytest.raises(ValidationFailed) as e:
        bookings.create_booking(booking_body(customer_name="A", customer_email="nope", items=[]), TENANT)
    msg = str(e.value)
    assert msg.startswith("Validation failed:")
    assert "customer_name" in msg and "customer_email" in msg and "items" in msg


def test_unavailable_equipment_blocks_creation(bookings, equipment, db):
    equipment.busy["eq-1"] = ["FOG-2026-00042"]
    with pytest.raises(ExternalDependencyFailure, match="Mini excavator is not available"):
        bookings.create_booking(booking_body(), TENANT)
    assert db.query(Booking).count() == 0


def test_items_without_equipment_skip_availability(bookings, equipment):
    body = booking_body(items=[{"equipment_name": "Consultation", "daily_rate": 0}])
    bookings.create_booking(body, TENANT)
    assert equipment.calls == []


def test_check_availability_keeps_input_order(bookings, equipment):
    equipment.busy["eq-2"] = ["FOG-2026-00007"]
    start = utcnow() + timedelta(days=1)
    out = bookings.check_availability(
        {"equipment_ids": ["eq-3", "eq-2", "eq-1"], "start_date": start, "end_date": start + timedelta(days=1)},
        TENANT,
    )
    assert [r["equipment_id"] for r in out] == ["eq-3", "eq-2", "eq-1"]
    assert [r["available"] for r in out] == [True, False, True]
    assert out[1]["conflicting_bookings"] == ["FOG-2026-00007"]


def test_time_slots_service_hourly_rental_two_hourly(bookings):
    day = (utcnow() + timedelta(days=5)).date()
    service = bookings.get_time_slots({"date": day, "type": "SERVICE"}, TENANT)
    rental = bookings.get_time_slots({"date": day, "type": "RENTAL"}, TENANT)
    assert len(service) == 10
    assert (service[0]["start_time"], service[-1]["end_time"]) == ("08:00", "18:00")
    assert len(rental) == 5
    assert [s["start_time"] for s in rental] == ["08:00", "10:00", "12:00", "14:00", "16:00"]


def test_time_slots_share_daily_capacity(db, equipment, notifier):
    svc = BookingService(db, equipment, notifier, daily_capacity=2)
    start = (utcnow() + timedelta(days=4)).replace(hour=9, minute=0, second=0, microsecond=0)
    svc.create_booking(booking_body(start_date=start, end_date=None), TENANT)
    slots = svc.get_time_slots({"date": start.date(), "type": "SERVICE"}, TENANT)
    assert all(s["booked"] == 1 and s["available"] for s in slots)

    svc.create_booking(booking_body(start_date=start, end_date=None), TENANT)
    slots = svc.get_time_slots({"date": start.date(), "type": "SERVICE"}, TENANT)
    assert all(s["booked"] == 2 and not s["available"] and s["capacity"] == 2 for s in slots)

    other = svc.get_time_slots({"date": start.date(), "type": "SERVICE"}, OTHER_TENANT)
    assert all(s["booked"] == 0 for s in other)


def test_time_slots_reject_unknown_type(bookings):
    with pytest.raises(ValidationFailed):
        bookings.get_time_slots({"date": date.today(), "type": "PARTY"}, TENANT)


def test_lookup_by_number_is_tenant_checked(bookings):
    b = bookings.create_booking(booking_body(), TENANT)["booking"]
    out = bookings.get_booking_by_number(b.booking_number, TENANT)
    assert out["booking"].id == b.id and len(out["items"]) == 1
    with pytest.raises(AccessDenied):
        bookings.get_booking_by_number(b.booking_number, OTHER_TENANT)
    with pytest.raises(NotFound, match="Booking not found"):
        bookings.get_booking_by_number("FOG-1999-00001", TENANT)


def test_list_bookings_filters_by_status(bookings, db):
    a = bookings.create_booking(booking_body(), TENANT)["booking"]
    bookings.create_booking(booking_body(), TENANT)
    bookings.create_booking(booking_body(), OTHER_TENANT)
    a.status = BookingStatus.CANCELLED
    db.commit()

    assert len(bookings.list_bookings(TENANT)) == 2
    assert [b.id for b in bookings.list_bookings(TENANT, BookingStatus.CANCELLED)] == [a.id]


def test_expire_sweep_only_touches_overdue_pending(bookings, db):
    overdue = bookings.create_booking(booking_body(), TENANT)["booking"]
    fresh = bookings.create_booking(booking_body(), OTHER_TENANT)["booking"]
    confirmed = bookings.create_booking(booking_body(), TENANT)["booking"]
    overdue.expires_at = utcnow() - timedelta(minutes=1)
    confirmed.expires_at = utcnow() - timedelta(minutes=1)
    confirmed.status = BookingStatus.CONFIRMED
    db.commit()

    assert bookings.expire_pending_bookings() == 1
    for row in (overdue, fresh, confirmed):
        db.refresh(row)
    assert overdue.status == BookingStatus.EXPIRED
    assert fresh.status == BookingStatus.PENDING
    assert confirmed.status == BookingStatus.CONFIRMED

    entry = db.query(AuditLog).filter(AuditLog.action == "booking_expired").one()
    assert entry.actor_user_id == "system" and entry.tenant_id == TENANT

    # second run finds nothing
    assert bookings.expire_pending_bookings() == 0


def test_calendar_reports_overlapping_bookings(bookings, db):
    start = utcnow() + timedelta(days=10)
    b = bookings.create_booking(booking_body(start_date=start, end_date=start + timedelta(days=2)), TENANT)["booking"]
    cal = BookingCalendar(db)

    hit = cal.check_availability(TENANT, "eq-1", start + timedelta(days=1), start + timedelta(days=5))
    assert not hit.available and hit.conflicting_bookings == [b.booking_number]

    miss = cal.check_availability(TENANT, "eq-1", start + timedelta(days=3), start + timedelta(days=4))
    assert miss.available

    assert cal.check_availability(OTHER_TENANT, "eq-1", start, start + timedelta(days=1)).available

    b.status = BookingStatus.CANCELLED
    db.commit()
    assert cal.check_availability(TENANT, "eq-1", start, start + timedelta(days=1)).available


def test_as_utc_converts_offsets():
    est = timezone(timedelta(hours=-5))
    assert as_utc(datetime(2030, 3, 1, 21, 0, tzinfo=est)) == datetime(2030, 3, 2, 2, 0, tzinfo=timezone.utc)
    assert as_utc(datetime(2030, 3, 1, 21, 0)).tzinfo is timezone.utc
    assert as_utc(None) is None


def test_offset_start_counts_on_its_utc_day(bookings, db):
    # 21:00 at -05:00 is 02:00 UTC the next day
    start = datetime(2030, 3, 1, 21, 0, tzinfo=timezone(timedelta(hours=-5)))
    b = bookings.create_booking(booking_body(start_date=start, end_date=None), TENANT)["booking"]
    db.expire_all()
    stored = db.get(Booking, b.id)
    assert as_utc(stored.start_date) == datetime(2030, 3, 2, 2, 0, tzinfo=timezone.utc)

    next_day = bookings.get_time_slots({"date": date(2030, 3, 2), "type": "SERVICE"}, TENANT)
    same_day = bookings.get_time_slots({"date": date(2030, 3, 1), "type": "SERVICE"}, TENANT)
    assert next_day[0]["booked"] == 1
    assert same_day[0]["booked"] == 0


def test_offset_dates_overlap_in_utc(bookings, db):
    cet = timezone(timedelta(hours=1))
    start = datetime(2030, 5, 10, 0, 30, tzinfo=cet)  # 23:30 UTC on 05-09
    b = bookings.create_booking(booking_body(start_date=start, end_date=start + timedelta(hours=2)), TENANT)["booking"]
    cal = BookingCalendar(db)
    utc_start = datetime(2030, 5, 9, 23, 0, tzinfo=timezone.utc)
    hit = cal.check_availability(TENANT, "eq-1", utc_start, utc_start + timedelta(minutes=45))
    assert hit.conflicting_bookings == [b.booking_number]


def test_zero_expiration_hours_is_honoured(db, equipment, notifier):
    svc = BookingService(db, equipment, notifier, expiration_hours=0)
    before = utcnow()
    b = svc.create_booking(booking_body(), TENANT)["booking"]
    assert b.expires_at - before < timedelta(seconds=5)
