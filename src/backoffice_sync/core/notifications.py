"""Per-feed "last seen" watermarks and the unread counts derived from them.

The tracker never touches items or drafts; it only reads ``created_at`` from
whatever records it is handed and owns the ``lastSeen:<feed>`` keys of the
durable store.
"""

from __future__ import annotations

import datetime
import logging
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional

from .kv_store import KeyValueStore
from .models import format_timestamp, parse_timestamp, utcnow

logger = logging.getLogger(__name__)

LAST_SEEN_PREFIX = "lastSeen:"


def last_seen_key(feed: str) -> str:
    return f"{LAST_SEEN_PREFIX}{feed}"


def created_at_of(record: Any) -> Any:
    """Read the creation timestamp of an OrderedItem or a raw mapping."""
    if isinstance(record, Mapping):
        value = record.get("created_at")
        return value if value is not None else record.get("createdAt")
    return getattr(record, "created_at", None)


def _to_millis(dt: datetime.datetime) -> datetime.datetime:
    """Drop sub-millisecond precision; markers are stored at millisecond resolution."""
    return dt.replace(microsecond=dt.microsecond - dt.microsecond % 1000)


def latest_timestamp(records: Iterable[Any], now: datetime.datetime) -> str:
    """Newest parseable creation time in *records*, or *now* when there is none."""
    latest: Optional[datetime.datetime] = None
    for record in records:
        parsed = parse_timestamp(created_at_of(record))
        if parsed is None:
            continue
        if latest is None or parsed > latest:
            latest = parsed
    return format_timestamp(latest or now)


class NotificationTrackerState:
    """Session-scoped unread tracker.

    Construct one per operator session, call :meth:`open` to load (and seed)
    the markers of every known feed, and :meth:`close` on teardown. Until the
    tracker is open, counts are zero and ``mark_seen`` does nothing.
    """

    def __init__(
        self,
        store: KeyValueStore,
        feeds: Optional[Iterable[str]] = None,
        clock: Optional[Callable[[], datetime.datetime]] = None,
    ):
        self.store = store
        self.feeds: List[str] = list(feeds or [])
        self._clock = clock or utcnow
        self._markers: Dict[str, str] = {}
        self._open = False
        self.active_feed: Optional[str] = None

    @property
    def is_open(self) -> bool:
        return self._open

    def open(self) -> "NotificationTrackerState":
        for feed in self.feeds:
            self.get_last_seen(feed)
        self._open = True
        logger.debug("Notification tracker opened for feeds: %s", ", ".join(self.feeds))
        return self

    def close(self) -> None:
        self._markers.clear()
        self._open = False
        self.active_feed = None

    def __enter__(self):
        return self.open()

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def get_last_seen(self, feed: str) -> str:
        """Return the stored marker, initializing it to now on first use."""
        cached = self._markers.get(feed)
        if cached is not None:
            return cached

        key = last_seen_key(feed)
        stored = self.store.get(key)
        if not stored:
            stored = format_timestamp(self._clock())
            self.store.set(key, stored)
            logger.info("Initialized last-seen marker for feed '%s' to %s", feed, stored)
        self._markers[feed] = stored
        return stored

    def mark_seen(self, feed: str, records: Iterable[Any]) -> Optional[str]:
        """Move the marker of *feed* to the newest record and persist it."""
        if not self._open:
            return None
        timestamp = latest_timestamp(records, self._clock())
        self.store.set(last_seen_key(feed), timestamp)
        self._markers[feed] = timestamp
        logger.debug("Marked feed '%s' as seen up to %s", feed, timestamp)
        return timestamp

    def activate(self, feed: str, records: Iterable[Any]) -> Optional[str]:
        """Select *feed* and record a read receipt for what is loaded now."""
        self.active_feed = feed
        return self.mark_seen(feed, records)

    def unread_count(self, feed: str, records: Iterable[Any]) -> int:
        """Count records created strictly after the marker of *feed*.

        Both sides are compared at millisecond precision, the resolution the
        marker is stored in, so a record never outranks its own read receipt.
        """
        if not self._open:
            return 0
        marker = parse_timestamp(self.get_last_seen(feed))
        if marker is None:
            logger.warning("Unreadable last-seen marker for feed '%s'; reporting no unread items", feed)
            return 0
        marker = _to_millis(marker)

        count = 0
        for record in records:
            created = parse_timestamp(created_at_of(record))
            if created is not None and _to_millis(created) > marker:
                count += 1
        return count

    def unread_counts(self, records_by_feed: Mapping[str, Iterable[Any]]) -> Dict[str, int]:
        return {feed: self.unread_count(feed, records) for feed, records in records_by_feed.items()}


__all__ = [
    "LAST_SEEN_PREFIX",
    "last_seen_key",
    "created_at_of",
    "latest_timestamp",
    "NotificationTrackerState",
]
