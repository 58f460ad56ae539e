"""
Unit tests for the notification aggregator and reminder planner

Both are pure: every test passes an explicit `now`.
"""
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

from swap.services.notifications import aggregate_notifications, plan_session_reminders

NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


def iso(dt: datetime) -> str:
    return dt.isoformat().replace("+00:00", "Z")


class TestRequestCount:
    def test_counts_only_pending(self):
        inbox = [{"status": "PENDING"}, {"status": "PENDING"}, {"status": "DECLINED"}]
        assert aggregate_notifications(inbox, [], NOW)["requests"] == 2

    def test_accepts_objects(self):
        inbox = [SimpleNamespace(status="PENDING"), SimpleNamespace(status="ACCEPTED")]
        assert aggregate_notifications(inbox, [], NOW)["requests"] == 1


class TestUpcomingSessions:
    """Undone sessions that are unscheduled or start within 24 hours"""

    def test_unscheduled_session_included(self):
        sessions = [{"status": "scheduled", "startAt": None}]
        assert aggregate_notifications([], sessions, NOW)["sessions"] == 1

    def test_session_30_hours_out_excluded(self):
        sessions = [{"status": "scheduled", "startAt": iso(NOW + timedelta(hours=30))}]
        assert aggregate_notifications([], sessions, NOW)["sessions"] == 0

    def test_session_within_window_included(self):
        sessions = [
            {"status": "scheduled", "startAt": iso(NOW + timedelta(hours=2))},
            {"status": "scheduled", "start_at": NOW + timedelta(hours=24)},
        ]
        assert aggregate_notifications([], sessions, NOW)["sessions"] == 2

    def test_done_and_past_sessions_excluded(self):
        sessions = [
            {"status": "done", "startAt": None},
            {"status": "done", "startAt": iso(NOW + timedelta(hours=1))},
            {"status": "scheduled", "startAt": iso(NOW - timedelta(hours=1))},
        ]
        assert aggregate_notifications([], sessions, NOW)["sessions"] == 0

    def test_unparseable_start_time_excluded(self):
        sessions = [{"status": "scheduled", "startAt": "not-a-date"}]
        assert aggregate_notifications([], sessions, NOW)["sessions"] == 0

    def test_window_is_configurable(self):
        sessions = [{"status": "scheduled", "startAt": iso(NOW + timedelta(hours=30))}]
        assert aggregate_notifications([], sessions, NOW, window_hours=48)["sessions"] == 1


class TestTotality:
    """Never raises; bad input counts as empty"""

    def test_missing_inputs(self):
        assert aggregate_notifications(None, None, NOW) == {
            "requests": 0,
            "sessions": 0,
            "chat": 0,
            "total": 0,
        }

    def test_malformed_inputs(self):
        result = aggregate_notifications("oops", {"status": "PENDING"}, "yesterday")
        assert result["requests"] == 0
        assert result["sessions"] == 0

    def test_malformed_items_skipped(self):
        inbox = [None, 42, {"status": "PENDING"}]
        sessions = [None, "x", {"status": "scheduled"}]
        result = aggregate_notifications(inbox, sessions, NOW)
        assert result["requests"] == 1
        # Only the readable session counts; it has no startAt so it is unscheduled
        assert result["sessions"] == 1

    def test_chat_always_zero_and_total_sums(self):
        inbox = [{"status": "PENDING"}]
        sessions = [{"status": "scheduled"}]
        result = aggregate_notifications(inbox, sessions, NOW)
        assert result["chat"] == 0
        assert result["total"] == 2


class TestReminders:
    def test_reminder_fires_ten_minutes_before(self):
        start = NOW + timedelta(hours=1)
        sessions = [{"id": "s1", "status": "scheduled", "courseCode": "CS101", "startAt": iso(start)}]

        reminders = plan_session_reminders(sessions, NOW, lead_minutes=10)

        assert len(reminders) == 1
        assert reminders[0]["sessionId"] == "s1"
        assert reminders[0]["fireAt"] == (start - timedelta(minutes=10)).isoformat()
        assert reminders[0]["message"] == "CS101 starts in 10 minutes"

    def test_skips_unschedulable_reminders(self):
        sessions = [
            {"id": "past", "status": "scheduled", "startAt": iso(NOW + timedelta(minutes=5))},
            {"id": "far", "status": "scheduled", "startAt": iso(NOW + timedelta(hours=30))},
            {"id": "done", "status": "done", "startAt": iso(NOW + timedelta(hours=1))},
            {"id": "unscheduled", "status": "scheduled", "startAt": None},
        ]
        assert plan_session_reminders(sessions, NOW, lead_minutes=10) == []

    def test_sorted_by_fire_time(self):
        sessions = [
            {"id": "later", "status": "scheduled", "startAt": iso(NOW + timedelta(hours=5))},
            {"id": "sooner", "status": "scheduled", "startAt": iso(NOW + timedelta(hours=2))},
        ]
        ids = [r["sessionId"] for r in plan_session_reminders(sessions, NOW, lead_minutes=10)]
        assert ids == ["sooner", "later"]

    def test_garbage_input(self):
        assert plan_session_reminders(None, NOW) == []
