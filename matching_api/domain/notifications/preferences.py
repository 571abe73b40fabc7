"""Notification preference reads and partial updates."""

from __future__ import annotations

import logging
from typing import Any, Mapping

import asyncpg

from matching_api.domain.identity import policy
from matching_api.domain.notifications.models import NotificationPreferences
from matching_api.infra.postgres import get_pool
from matching_api.settings import settings

logger = logging.getLogger(__name__)

_STORE_ERRORS = (asyncpg.PostgresError, asyncpg.InterfaceError, OSError)

TOGGLE_FIELDS = (
	"sms_enabled",
	"new_matches",
	"profile_views",
	"messages",
	"activity_reminders",
)

UPDATABLE_FIELDS = TOGGLE_FIELDS + (
	"quiet_hours_start",
	"quiet_hours_end",
	"timezone",
)

_SELECT = "SELECT * FROM notification_preferences WHERE user_id = $1"


def default_preferences(user_id: str) -> NotificationPreferences:
	return NotificationPreferences(user_id=user_id, timezone=settings.default_timezone)


async def _ensure_row(conn: asyncpg.Connection, user_id: str) -> asyncpg.Record:
	row = await conn.fetchrow(_SELECT, user_id)
	if row is not None:
		return row
	defaults = default_preferences(user_id)
	row = await conn.fetchrow(
		"""
		INSERT INTO notification_preferences (
			user_id, sms_enabled, new_matches, profile_views, messages,
			activity_reminders, quiet_hours_start, quiet_hours_end, timezone
		)
		VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9)
		ON CONFLICT (user_id) DO NOTHING
		RETURNING *
		""",
		user_id,
		defaults.sms_enabled,
		defaults.new_matches,
		defaults.profile_views,
		defaults.messages,
		defaults.activity_reminders,
		defaults.quiet_hours_start,
		defaults.quiet_hours_end,
		defaults.timezone,
	)
	if row is None:
		# Lost a creation race; the winner's row is there now.
		row = await conn.fetchrow(_SELECT, user_id)
	logger.info("notification_prefs_defaults_created", extra={"pref_user_id": user_id})
	return row


async def get_preferences(user_id: str) -> NotificationPreferences:
	"""Load preferences, creating the default record on first access."""
	try:
		pool = await get_pool()
		async with pool.acquire() as conn:
			row = await _ensure_row(conn, user_id)
	except _STORE_ERRORS as exc:
		raise policy.PersistenceError("preferences_read_failed", "Failed to load notification preferences") from exc
	return NotificationPreferences.from_record(row)


async def update_preferences(user_id: str, patch: Mapping[str, Any]) -> bool:
	"""Apply a partial patch; returns False instead of raising when the store fails."""
	# Toggle columns are NOT NULL; a null toggle leaves the stored value alone.
	updates = {
		key: value
		for key, value in patch.items()
		if key in UPDATABLE_FIELDS and not (value is None and key in TOGGLE_FIELDS)
	}
	assignments = [f"{column} = ${index}" for index, column in enumerate(updates, start=2)]
	assignments.append("updated_at = NOW()")
	try:
		pool = await get_pool()
		async with pool.acquire() as conn:
			async with conn.transaction():
				await _ensure_row(conn, user_id)
				await conn.execute(
					f"UPDATE notification_preferences SET {', '.join(assignments)} WHERE user_id = $1",
					user_id,
					*updates.values(),
				)
	except _STORE_ERRORS:
		logger.error("notification_prefs_update_failed", extra={"pref_user_id": user_id}, exc_info=True)
		return False
	logger.info("notification_prefs_updated", extra={"pref_user_id": user_id, "fields": ",".join(sorted(updates)) or "none"})
	return True
