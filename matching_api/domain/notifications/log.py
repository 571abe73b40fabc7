"""Append-only record of notification dispatch attempts."""

from __future__ import annotations

import json
import logging

import asyncpg

from matching_api.domain.identity import policy
from matching_api.domain.notifications.models import NotificationLogEntry
from matching_api.infra.postgres import get_pool
from matching_api.infra.sms import mask_number

logger = logging.getLogger(__name__)

_STORE_ERRORS = (asyncpg.PostgresError, asyncpg.InterfaceError, OSError)

HISTORY_MAX = 200


async def append(entry: NotificationLogEntry) -> None:
	pool = await get_pool()
	async with pool.acquire() as conn:
		await conn.execute(
			"""
			INSERT INTO notifications (user_id, type, phone_number, message_body, status, data)
			VALUES ($1, $2, $3, $4, $5, $6::jsonb)
			""",
			entry.user_id,
			entry.kind.value,
			entry.phone_number,
			entry.message_body,
			entry.status.value,
			json.dumps(entry.data) if entry.data is not None else None,
		)


def trace_demo(entry: NotificationLogEntry) -> None:
	"""Demo identities are only traced locally, never persisted."""
	logger.info(
		"demo_notification",
		extra={"kind": entry.kind.value, "to_masked": mask_number(entry.phone_number), "status": entry.status.value},
	)


async def history(user_id: str, limit: int = 50) -> list[NotificationLogEntry]:
	limit = max(1, min(limit, HISTORY_MAX))
	try:
		pool = await get_pool()
		async with pool.acquire() as conn:
			rows = await conn.fetch(
				"""
				SELECT id, user_id, type, phone_number, message_body, status, sent_at, data
				FROM notifications
				WHERE user_id = $1
				ORDER BY sent_at DESC
				LIMIT $2
				""",
				user_id,
				limit,
			)
	except _STORE_ERRORS as exc:
		raise policy.PersistenceError("history_read_failed", "Failed to load notification history") from exc
	return [NotificationLogEntry.from_record(row) for row in rows]
