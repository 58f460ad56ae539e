"""
Notification Aggregator

Pure, total projections over the latest request/session snapshots a client
fetched. Nothing here touches the database or raises: missing or malformed
inputs count as empty collections, and items that cannot be read are skipped.

Items may be ORM objects, pydantic models or plain dicts with either
camelCase (API payload) or snake_case keys.
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable, List, Optional

from swap import config

logger = logging.getLogger(__name__)

_MISSING = object()


def _field(item: Any, *names: str) -> Any:
    for name in names:
        if isinstance(item, dict):
            value = item.get(name, _MISSING)
        else:
            value = getattr(item, name, _MISSING)
        if value is not _MISSING:
            return value
    return None


def _as_list(items: Any) -> List[Any]:
    if items is None or isinstance(items, (str, bytes, dict)):
        return []
    try:
        return list(items)
    except TypeError:
        return []


def _status(item: Any) -> Optional[str]:
    value = _field(item, "status")
    if value is None:
        return None
    # str-valued enums compare by value
    return str(getattr(value, "value", value))


def _to_utc(value: Any) -> Optional[datetime]:
    """Parse a datetime or ISO string; None when absent or unreadable"""
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value.strip():
        text = value.strip()
        if text[-1] in "Zz":
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def _now(now: Any) -> datetime:
    parsed = _to_utc(now)
    return parsed if parsed is not None else datetime.now(timezone.utc)


def count_pending_requests(inbox_requests: Any) -> int:
    return sum(1 for r in _as_list(inbox_requests) if _status(r) == "PENDING")


def needs_attention(session: Any, now: datetime, window: timedelta) -> bool:
    """
    An undone session needs attention if it has no start time yet, or if it
    starts after now and no later than now + window. Items without a status
    or with a start time that cannot be parsed never count.
    """
    status = _status(session)
    if status is None or status == "done":
        return False

    raw_start = _field(session, "startAt", "start_at")
    if raw_start is None or raw_start == "":
        return True

    start = _to_utc(raw_start)
    if start is None:
        return False
    return now < start <= now + window


def count_upcoming_sessions(sessions: Any, now: Any = None, window_hours: Optional[int] = None) -> int:
    current = _now(now)
    window = timedelta(hours=config.UPCOMING_WINDOW_HOURS if window_hours is None else window_hours)
    return sum(1 for s in _as_list(sessions) if needs_attention(s, current, window))


def aggregate_notifications(
    inbox_requests: Any,
    sessions: Any,
    now: Any = None,
    window_hours: Optional[int] = None,
) -> Dict[str, int]:
    """
    Badge counts for the client navigation.

    Returns:
        Dict with:
            - requests: PENDING requests in the inbox
            - sessions: undone sessions that are unscheduled or start within the window
            - chat: always 0 (unread tracking does not exist)
            - total: sum of the above
    """
    try:
        requests = count_pending_requests(inbox_requests)
        upcoming = count_upcoming_sessions(sessions, now, window_hours)
    except Exception as e:
        # Last-resort guard; the helpers above already tolerate bad items
        logger.warning(f"Notification aggregation fell back to zero: {e}")
        requests, upcoming = 0, 0

    chat = 0
    return {
        "requests": requests,
        "sessions": upcoming,
        "chat": chat,
        "total": requests + upcoming + chat,
    }


def plan_session_reminders(
    sessions: Iterable[Any],
    now: Any = None,
    lead_minutes: Optional[int] = None,
    horizon_hours: Optional[int] = None,
) -> List[Dict[str, Any]]:
    """
    Best-effort reminders for sessions starting soon.

    One reminder per undone session with a start time, firing lead_minutes
    before the start, kept only if it fires after now and within the horizon.
    Sorted by fire time.
    """
    current = _now(now)
    lead = timedelta(minutes=config.REMINDER_LEAD_MINUTES if lead_minutes is None else lead_minutes)
    horizon = current + timedelta(hours=config.UPCOMING_WINDOW_HOURS if horizon_hours is None else horizon_hours)

    reminders = []
    for session in _as_list(sessions):
        if _status(session) == "done":
            continue
        start = _to_utc(_field(session, "startAt", "start_at"))
        if start is None:
            continue
        fire_at = start - lead
        if fire_at <= current or fire_at > horizon:
            continue

        course_code = _field(session, "courseCode", "course_code") or "Session"
        session_id = _field(session, "id")
        reminders.append({
            "sessionId": str(session_id) if session_id is not None else None,
            "courseCode": course_code,
            "startAt": start.isoformat(),
            "fireAt": fire_at.isoformat(),
            "message": f"{course_code} starts in {int(lead.total_seconds() // 60)} minutes",
        })

    reminders.sort(key=lambda r: r["fireAt"])
    return reminders
