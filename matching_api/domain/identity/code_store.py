"""Redis-backed storage for pending one-time codes, one entry per phone."""

from __future__ import annotations

import math
from datetime import datetime
from typing import Optional

from matching_api.domain.identity import models
from matching_api.infra.redis import redis_client

OTP_KEY_TEMPLATE = "otp:phone:{phone}"
OTP_KEY_PATTERN = "otp:phone:*"
# Keys outlive their expiry so a late verification reports expiry rather than a missing code.
EXPIRED_GRACE_SECONDS = 300


def _otp_key(phone: str) -> str:
	return OTP_KEY_TEMPLATE.format(phone=phone)


async def put(entry: models.PendingCode, *, now: datetime) -> None:
	"""Store `entry`, replacing any earlier code for the same phone."""
	ttl = max(1, math.ceil((entry.expires_at - now).total_seconds())) + EXPIRED_GRACE_SECONDS
	await redis_client.set(_otp_key(entry.phone), entry.to_json(), ex=ttl)


async def get(phone: str) -> Optional[models.PendingCode]:
	data = await redis_client.get(_otp_key(phone))
	if not data:
		return None
	if isinstance(data, bytes):
		data = data.decode("utf-8")
	return models.PendingCode.from_json(phone, data)


async def delete(phone: str) -> None:
	await redis_client.delete(_otp_key(phone))


async def consume(phone: str) -> bool:
	"""Delete the entry; False when another caller removed it first."""
	return bool(await redis_client.delete(_otp_key(phone)))


async def list_pending() -> list[models.PendingCode]:
	entries: list[models.PendingCode] = []
	async for key in redis_client.scan_iter(match=OTP_KEY_PATTERN):
		if isinstance(key, bytes):
			key = key.decode("utf-8")
		entry = await get(key.split(":", 2)[2])
		if entry:
			entries.append(entry)
	return sorted(entries, key=lambda item: item.phone)
