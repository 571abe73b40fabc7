"""Phone number sign-in backed by SMS one-time codes.

Per phone number: NONE -> PENDING on issue; PENDING -> CONSUMED on a correct
code (entry removed); PENDING -> EXPIRED when verified after the TTL (entry
removed); a wrong code or a re-issue leaves the phone PENDING. Consumed and
expired entries cannot be revived, a new issue is required.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from matching_api.domain.identity import code_store, models, policy, reconcile, sessions, sms
from matching_api.infra.sms import mask_number
from matching_api.obs import metrics as obs_metrics
from matching_api.settings import settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class IssueResult:
	phone: str
	sid: Optional[str] = None


def _now() -> datetime:
	return datetime.now(timezone.utc)


async def issue(phone_number: str, *, now: Optional[datetime] = None) -> IssueResult:
	"""Normalise the number, store a fresh code replacing any prior one, and text it."""
	normalized = policy.normalise_phone(phone_number)
	current = now or _now()
	try:
		await policy.enforce_otp_send_rate(normalized, now=current.timestamp())
	except policy.RateLimited:
		obs_metrics.inc_otp_request("rate_limited")
		raise
	code = sms.generate_otp()
	entry = models.PendingCode(
		phone=normalized,
		code=code,
		expires_at=current + timedelta(seconds=settings.otp_ttl_seconds),
	)
	await code_store.put(entry, now=current)
	try:
		sid = await sms.send_sms_code(normalized, code, settings.otp_ttl_seconds)
	except policy.TransportError:
		obs_metrics.inc_otp_request("transport_failed")
		raise
	obs_metrics.inc_otp_request("ok")
	logger.info("otp_issued", extra={"phone_masked": mask_number(normalized), "sid": sid})
	return IssueResult(phone=normalized, sid=sid)


async def check_code(phone_number: str, code: str, *, now: Optional[datetime] = None) -> str:
	"""Validate and consume the pending code; returns the normalised phone."""
	normalized = policy.normalise_phone(phone_number)
	supplied = policy.guard_code(code)
	current = now or _now()
	pending = await code_store.get(normalized)
	if pending is None:
		obs_metrics.inc_otp_verify("not_found")
		raise policy.NotFound("code_not_found", "No verification code found. Please request a new code.")
	if pending.is_expired(current):
		await code_store.delete(normalized)
		obs_metrics.inc_otp_verify("expired")
		raise policy.Expired("code_expired", "Verification code has expired. Please request a new code.")
	if pending.code != supplied:
		obs_metrics.inc_otp_verify("mismatch")
		raise policy.Mismatch("code_mismatch", "Invalid verification code.")
	# A concurrent verify may have consumed the entry between the read and here.
	if not await code_store.consume(normalized):
		obs_metrics.inc_otp_verify("not_found")
		raise policy.NotFound("code_not_found", "No verification code found. Please request a new code.")
	obs_metrics.inc_otp_verify("ok")
	return normalized


async def verify(phone_number: str, code: str, *, now: Optional[datetime] = None) -> models.Session:
	"""Consume the code, resolve the identity for the phone and mint a session."""
	current = now or _now()
	normalized = await check_code(phone_number, code, now=current)
	identity = await reconcile.resolve_login(normalized, sessions.new_identity_id())
	session = sessions.issue_session(identity, now_ms=int(current.timestamp() * 1000))
	logger.info("otp_verified", extra={"phone_masked": mask_number(normalized), "identity_id": identity.id})
	return session
