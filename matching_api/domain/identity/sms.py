"""Verification code generation and delivery."""

from __future__ import annotations

import logging
import random

from matching_api.domain.identity import policy
from matching_api.infra import sms as sms_transport

logger = logging.getLogger(__name__)
_RNG = random.SystemRandom()

VERIFY_TEMPLATE = "Your Matching verification code is: {code}. Valid for {minutes} minutes. ☕"


def generate_otp() -> str:
	"""Generate a 6-digit numeric OTP in 100000..999999 using a cryptographically safe RNG."""
	return str(_RNG.randint(policy.OTP_MIN, policy.OTP_MAX))


def render_code_message(code: str, ttl_seconds: int) -> str:
	return VERIFY_TEMPLATE.format(code=code, minutes=max(1, ttl_seconds // 60))


async def send_sms_code(e164: str, code: str, ttl_seconds: int) -> str | None:
	"""Deliver the code; raises TransportError when the provider does not accept it."""
	receipt = await sms_transport.get_transport().send(e164, render_code_message(code, ttl_seconds))
	if not receipt.accepted:
		logger.warning(
			"otp_sms_rejected",
			extra={"to_masked": sms_transport.mask_number(e164), "error": receipt.error},
		)
		raise policy.TransportError("sms_rejected", receipt.error or "Failed to send SMS")
	return receipt.sid
