"""Identity reconciliation: one phone number maps to one identity.

Both the login path and the profile-completion path run their lookups and
writes in a single transaction, serialised per phone number with a
transaction-scoped advisory lock. The `users.phone_number` unique constraint
backs this up for writers that bypass the lock.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Mapping, Optional

import asyncpg

from matching_api.domain.identity import models, policy
from matching_api.infra.postgres import get_pool
from matching_api.infra.sms import mask_number
from matching_api.obs import metrics as obs_metrics
from matching_api.settings import settings

logger = logging.getLogger(__name__)

_STORE_ERRORS = (asyncpg.PostgresError, asyncpg.InterfaceError, OSError)

_USER_COLUMNS = "id, phone_number, profile_completed, created_at"


async def _lock_phone(conn: asyncpg.Connection, phone: str) -> None:
	await conn.execute("SELECT pg_advisory_xact_lock(hashtext($1))", phone)


async def _fetch_by_id(conn: asyncpg.Connection, user_id: str) -> Optional[models.RealIdentity]:
	row = await conn.fetchrow(f"SELECT {_USER_COLUMNS} FROM users WHERE id = $1", user_id)
	return models.RealIdentity.from_record(row) if row else None


async def _fetch_by_phone(conn: asyncpg.Connection, phone: str) -> Optional[models.RealIdentity]:
	row = await conn.fetchrow(f"SELECT {_USER_COLUMNS} FROM users WHERE phone_number = $1", phone)
	return models.RealIdentity.from_record(row) if row else None


def identity_for_user_id(user_id: str) -> Optional[models.DemoIdentity]:
	"""Return the demo identity for the configured demo id, else None."""
	if user_id == settings.demo_user_id:
		return models.DemoIdentity(id=user_id, phone_number=settings.demo_phone_number)
	return None


async def get_identity(user_id: str) -> Optional[models.Identity]:
	demo = identity_for_user_id(user_id)
	if demo is not None:
		return demo
	try:
		pool = await get_pool()
		async with pool.acquire() as conn:
			return await _fetch_by_id(conn, user_id)
	except _STORE_ERRORS as exc:
		raise policy.PersistenceError("identity_read_failed", "Failed to load user") from exc


async def find_by_phone(phone: str) -> Optional[models.Identity]:
	if phone == settings.demo_phone_number:
		return models.DemoIdentity(id=settings.demo_user_id, phone_number=phone)
	try:
		pool = await get_pool()
		async with pool.acquire() as conn:
			return await _fetch_by_phone(conn, phone)
	except _STORE_ERRORS as exc:
		raise policy.PersistenceError("identity_read_failed", "Failed to load user") from exc


async def resolve_login(phone: str, candidate_id: str) -> models.RealIdentity:
	"""Return the identity owning `phone`, creating it with `candidate_id` if none does."""
	try:
		pool = await get_pool()
		async with pool.acquire() as conn:
			async with conn.transaction():
				await _lock_phone(conn, phone)
				existing = await _fetch_by_phone(conn, phone)
				if existing is not None:
					obs_metrics.inc_identity_resolved("login", "returning")
					return existing
				row = await conn.fetchrow(
					f"""
					INSERT INTO users (id, phone_number, profile_completed)
					VALUES ($1, $2, FALSE)
					ON CONFLICT (phone_number) DO NOTHING
					RETURNING {_USER_COLUMNS}
					""",
					candidate_id,
					phone,
				)
				if row is None:
					winner = await _fetch_by_phone(conn, phone)
					if winner is None:
						raise policy.PersistenceError("identity_write_failed", "User creation failed", stage="user")
					obs_metrics.inc_identity_resolved("login", "returning")
					return winner
	except _STORE_ERRORS as exc:
		logger.error("identity_login_write_failed", extra={"phone_masked": mask_number(phone)}, exc_info=True)
		raise policy.PersistenceError("identity_write_failed", f"User creation failed: {exc}", stage="user") from exc
	obs_metrics.inc_identity_resolved("login", "created")
	return models.RealIdentity.from_record(row)


async def complete_profile(
	user_id: str,
	phone: Optional[str],
	questionnaire: Mapping[str, Any],
	photo_url: Optional[str] = None,
) -> str:
	"""Create or update the identity and upsert its profile; returns the effective id.

	When the phone already belongs to another identity and `user_id` is unknown,
	the existing identity wins and the caller's id is discarded.
	"""
	stage = "user"
	try:
		pool = await get_pool()
		async with pool.acquire() as conn:
			async with conn.transaction():
				if phone:
					await _lock_phone(conn, phone)
				by_id = await _fetch_by_id(conn, user_id)
				by_phone = await _fetch_by_phone(conn, phone) if phone else None

				effective_id = user_id
				if by_phone is not None and by_id is None:
					effective_id = by_phone.id
					logger.info("identity_dedup_by_phone", extra={"requested_id": user_id, "effective_id": effective_id})

				if by_id is None and by_phone is None:
					await conn.execute(
						"""
						INSERT INTO users (id, phone_number, profile_completed)
						VALUES ($1, $2, TRUE)
						""",
						user_id,
						phone,
					)
					outcome = "created"
				else:
					await conn.execute(
						"UPDATE users SET profile_completed = TRUE WHERE id = $1",
						effective_id,
					)
					outcome = "updated"

				stage = "profile"
				await conn.execute(
					"""
					INSERT INTO profiles (user_id, photo_url, questionnaire_data, ai_analysis, updated_at)
					VALUES ($1, $2, $3::jsonb, NULL, NOW())
					ON CONFLICT (user_id)
					DO UPDATE SET photo_url = EXCLUDED.photo_url,
						questionnaire_data = EXCLUDED.questionnaire_data,
						ai_analysis = NULL,
						updated_at = EXCLUDED.updated_at
					""",
					effective_id,
					photo_url,
					json.dumps(dict(questionnaire)),
				)
	except _STORE_ERRORS as exc:
		reason = "profile_write_failed" if stage == "profile" else "identity_write_failed"
		label = "Profile creation failed" if stage == "profile" else "User creation failed"
		logger.error("profile_completion_failed", extra={"stage": stage, "requested_id": user_id}, exc_info=True)
		raise policy.PersistenceError(reason, f"{label}: {exc}", stage=stage) from exc
	obs_metrics.inc_identity_resolved("profile", outcome)
	return effective_id
