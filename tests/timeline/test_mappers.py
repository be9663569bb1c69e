"""Tests for row -> timeline event mappers."""

from __future__ import annotations

import uuid
from datetime import UTC, date, datetime, time, timedelta, timezone
from decimal import Decimal

import pytest

from logos.timeline.mappers import (
    MAPPERS,
    event_key,
    format_amount,
    map_activity,
    map_calendar_event,
    map_communication_log,
    map_donation,
    map_milestone,
    map_task,
    map_touchpoint,
    to_timestamp,
)
from logos.timeline.models import EventSource

pytestmark = pytest.mark.unit


class TestToTimestamp:
    def test_date_becomes_utc_midnight(self):
        assert to_timestamp(date(2024, 11, 15)) == datetime(2024, 11, 15, tzinfo=UTC)

    def test_date_plus_time_of_day(self):
        assert to_timestamp(date(2024, 11, 15), time(14, 30)) == datetime(
            2024, 11, 15, 14, 30, tzinfo=UTC
        )

    def test_iso_strings_from_notifications(self):
        assert to_timestamp("2024-11-15", "14:30:00") == datetime(
            2024, 11, 15, 14, 30, tzinfo=UTC
        )
        assert to_timestamp("2024-11-15T10:00:00+02:00") == datetime(
            2024, 11, 15, 8, 0, tzinfo=UTC
        )

    def test_aware_datetime_is_converted_to_utc(self):
        value = datetime(2024, 11, 15, 9, 0, tzinfo=timezone(timedelta(hours=-5)))
        assert to_timestamp(value) == datetime(2024, 11, 15, 14, 0, tzinfo=UTC)

    def test_missing_timestamp_raises_type_error(self):
        with pytest.raises(TypeError):
            to_timestamp(None)


def test_format_amount_drops_zero_cents():
    assert format_amount(2500) == "2,500"
    assert format_amount(Decimal("1234.50")) == "1,234.5"
    assert format_amount("99.99") == "99.99"


def test_every_source_has_a_mapper():
    assert set(MAPPERS) == set(EventSource)


class TestMapActivity:
    def test_maps_query_row(self):
        row_id = uuid.uuid4()
        client_id = uuid.uuid4()
        event = map_activity(
            {
                "id": row_id,
                "type": "Call",
                "title": "Follow-up call with Dr. Morrison",
                "notes": "Loved the draft priorities.",
                "activity_date": date(2024, 11, 15),
                "activity_time": time(14, 30),
                "client_id": client_id,
                "project_id": None,
                "status": "Completed",
                "created_by_id": None,
                "created_by_name": "Alex Rivera",
            }
        )

        assert event.id == f"activity-{row_id}"
        assert event.event_id == str(row_id)
        assert event.source == "activity"
        assert event.event_type == "call"
        assert event.timestamp == datetime(2024, 11, 15, 14, 30, tzinfo=UTC)
        assert event.client_id == str(client_id)
        assert event.description == "Loved the draft priorities."
        assert event.created_by_name == "Alex Rivera"
        assert (event.color, event.icon) == ("#3b82f6", "phone")

    def test_mapping_is_deterministic(self):
        row = {"id": "a1", "type": "Note", "title": "x", "activity_date": "2024-11-20"}
        assert map_activity(row) == map_activity(row)
        assert map_activity(row).id == event_key(EventSource.ACTIVITY, "a1")

    def test_unknown_type_uses_source_default_style(self):
        event = map_activity(
            {"id": 1, "type": "Webinar", "title": "t", "activity_date": "2024-11-20"}
        )
        assert event.event_type == "webinar"
        assert (event.color, event.icon) == ("#6b7280", "activity")

    def test_missing_date_raises(self):
        with pytest.raises(TypeError):
            map_activity({"id": 1, "type": "Call", "title": "t"})


def test_touchpoint_title_falls_back_to_type_and_direction():
    event = map_touchpoint(
        {
            "id": 3,
            "touchpoint_type": "phone",
            "direction": "outbound",
            "subject": None,
            "touchpoint_date": datetime(2024, 11, 1, 9, tzinfo=UTC),
            "recorded_by": "tm1",
            "recorded_by_name": "Sam",
            "sentiment": "positive",
        }
    )
    assert event.title == "phone - outbound"
    assert event.created_by == "tm1"
    assert event.created_by_name == "Sam"
    assert event.sentiment == "positive"
    assert (event.color, event.icon) == ("#8b5cf6", "handshake")


@pytest.mark.parametrize(
    ("status", "event_type", "icon"),
    [("Done", "task_completed", "check-circle"), ("In Progress", "task_created", "circle")],
)
def test_task_event_type_follows_status(status, event_type, icon):
    event = map_task(
        {
            "id": 5,
            "description": "Collect partner letters",
            "status": status,
            "priority": "High",
            "due_date": date(2024, 12, 2),
            "project_id": "p2",
            "team_member_id": "tm3",
            "assigned_to_name": "Jordan",
        }
    )
    assert event.title == "Collect partner letters"
    assert event.event_type == event_type
    assert event.icon == icon
    assert event.priority == "High"
    assert event.created_by == "tm3"
    assert event.timestamp == datetime(2024, 12, 2, tzinfo=UTC)


def test_donation_title_and_amount():
    event = map_donation(
        {
            "id": 9,
            "amount": Decimal("2500.00"),
            "donation_date": date(2024, 11, 25),
            "client_id": "c",
        }
    )
    assert event.title == "Donation: $2,500"
    assert event.amount == 2500.0
    assert event.icon == "dollar-sign"


def test_milestone_communication_and_calendar_mappers():
    milestone = map_milestone(
        {"id": 1, "name": "Board approval", "type": "Approval", "due_date": "2024-12-10"}
    )
    assert milestone.id == "milestone-1"
    assert milestone.event_type == "approval"

    log = map_communication_log(
        {"id": 2, "type": "email", "direction": "inbound", "sent_at": "2024-11-02T08:00:00Z"}
    )
    assert log.title == "email - inbound"
    assert log.icon == "mail"

    meeting = map_calendar_event(
        {"id": 3, "title": "Site visit", "start_time": "2024-11-03T15:00:00Z", "location": "HQ"}
    )
    assert meeting.id == "calendar-3"
    assert meeting.location == "HQ"
