"""Policy guards, rate limits, and the error taxonomy for the core flows."""

from __future__ import annotations

import re
import time

from matching_api.infra.redis import redis_client
from matching_api.settings import settings

OTP_MIN = 100000
OTP_MAX = 999999
OTP_LENGTH = 6
NON_DIGITS = re.compile(r"\D")
HHMM_REGEX = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")


class CoreError(ValueError):
	"""Base for expected failures; `reason` is a stable machine-readable code."""

	status_code = 400

	def __init__(self, reason: str, message: str | None = None):
		super().__init__(message or reason)
		self.reason = reason
		self.message = message or reason


class ValidationError(CoreError):
	"""Raised when input is missing or malformed."""


class NotFound(CoreError):
	"""Raised when the addressed record does not exist."""


class Expired(CoreError):
	"""Raised when a one-time code is past its expiry."""


class Mismatch(CoreError):
	"""Raised when a supplied code differs from the pending one."""


class RateLimited(CoreError):
	"""Raised when a rate limit bucket is exhausted."""

	status_code = 429


class TransportError(CoreError):
	"""Raised when the SMS provider rejected a message or was unreachable."""

	status_code = 500


class PersistenceError(CoreError):
	"""Raised when a Record Store read or write failed.

	`stage` names the write that failed (`user` or `profile`) so callers can
	tell an identity failure from a profile failure.
	"""

	status_code = 500

	def __init__(self, reason: str, message: str | None = None, *, stage: str | None = None):
		super().__init__(reason, message)
		self.stage = stage


def normalise_phone(raw: str | None) -> str:
	"""Strip formatting and prefix the default country code when absent.

	Only a leading country code digit is recognised, so numbers outside the
	default region are not rewritten correctly.
	"""
	digits = NON_DIGITS.sub("", raw or "")
	if not digits:
		raise ValidationError("phone_invalid", "Phone number is required")
	country = settings.default_country_code
	if not digits.startswith(country):
		digits = f"{country}{digits}"
	return f"+{digits}"


def guard_code(code: str | None) -> str:
	clean = (code or "").strip()
	if not clean:
		raise ValidationError("code_required", "Verification code is required")
	return clean


def guard_hhmm(value: str) -> str:
	if not HHMM_REGEX.fullmatch(value):
		raise ValidationError("quiet_hours_invalid", "Quiet hours must use HH:MM")
	return value


async def _bucketed_limit(key: str, ttl: int, limit: int, reason: str) -> None:
	async with redis_client.pipeline(transaction=True) as pipe:
		pipe.incr(key)
		pipe.expire(key, ttl)
		count, _ = await pipe.execute()
	if int(count) > limit:
		raise RateLimited(reason, "Too many verification codes requested, try again later")


async def enforce_otp_send_rate(e164: str, *, now: float | None = None) -> None:
	now = now or time.time()
	bucket = time.strftime("%Y%m%d%H", time.gmtime(now))
	await _bucketed_limit(f"rl:otp:send:{e164}:{bucket}", 3600, settings.otp_send_per_hour, "otp_send_rate")
