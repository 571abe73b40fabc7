"""Do-not-disturb window evaluation.

Pure functions; callers pass the current time explicitly.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from matching_api.domain.notifications.models import NotificationPreferences
from matching_api.settings import settings

logger = logging.getLogger(__name__)


def parse_hhmm(value: Optional[str]) -> Optional[int]:
	"""Return the minute offset of an `HH:MM` string, or None when unset or malformed."""
	if not value:
		return None
	parts = value.strip().split(":")
	if len(parts) < 2:
		return None
	try:
		hours, minutes = int(parts[0]), int(parts[1])
	except ValueError:
		return None
	if not (0 <= hours <= 23 and 0 <= minutes <= 59):
		return None
	return hours * 60 + minutes


def resolve_zone(name: Optional[str]) -> ZoneInfo:
	try:
		return ZoneInfo(name or settings.default_timezone)
	except (ZoneInfoNotFoundError, ValueError):
		logger.warning("quiet_hours_unknown_timezone", extra={"timezone": name})
		return ZoneInfo(settings.default_timezone)


def is_quiet(prefs: NotificationPreferences, now_utc: datetime) -> bool:
	quiet_start = parse_hhmm(prefs.quiet_hours_start)
	quiet_end = parse_hhmm(prefs.quiet_hours_end)
	if quiet_start is None or quiet_end is None:
		return False
	if now_utc.tzinfo is None:
		now_utc = now_utc.replace(tzinfo=timezone.utc)
	local = now_utc.astimezone(resolve_zone(prefs.timezone))
	current = local.hour * 60 + local.minute
	if quiet_start <= quiet_end:
		return quiet_start <= current <= quiet_end
	# Window wraps midnight, e.g. 22:00 -> 08:00.
	return current >= quiet_start or current <= quiet_end
