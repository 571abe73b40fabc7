"""Outbound SMS transports.

`LogTransport` is the development stub: it logs the event without disclosing
PII and always accepts. `TwilioTransport` posts to the Twilio Messages API.
Both report provider rejections and network failures through the returned
receipt instead of raising.
"""

from __future__ import annotations

import hashlib
import logging
import secrets
import time
from dataclasses import dataclass
from typing import Optional, Protocol

import httpx

from matching_api.obs import metrics as obs_metrics
from matching_api.settings import settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class SendReceipt:
	accepted: bool
	sid: Optional[str] = None
	error: Optional[str] = None


class SmsTransport(Protocol):
	async def send(self, to: str, body: str) -> SendReceipt:
		...


def mask_number(e164: str) -> str:
	if len(e164) <= 4:
		return e164
	return f"{e164[:-4]}XXXX"


def hash_number(e164: str) -> str:
	return hashlib.sha256(e164.encode("utf-8")).hexdigest()[:12]


class LogTransport:
	"""Stub transport that only writes a structured log line."""

	async def send(self, to: str, body: str) -> SendReceipt:
		sid = f"SM{secrets.token_hex(16)}"
		logger.info(
			"sms_stub_send",
			extra={"to_masked": mask_number(to), "hash": hash_number(to), "sid": sid, "chars": len(body)},
		)
		obs_metrics.inc_sms_transport("log", "accepted")
		return SendReceipt(accepted=True, sid=sid)


@dataclass
class TwilioTransport:
	"""Transport backed by the Twilio REST API."""

	account_sid: str
	auth_token: str
	from_number: str
	base_url: str = "https://api.twilio.com"
	timeout: float = 10.0
	http: Optional[httpx.AsyncClient] = None

	def _messages_url(self) -> str:
		return f"{self.base_url.rstrip('/')}/2010-04-01/Accounts/{self.account_sid}/Messages.json"

	async def _post(self, client: httpx.AsyncClient, to: str, body: str) -> httpx.Response:
		return await client.post(
			self._messages_url(),
			auth=(self.account_sid, self.auth_token),
			data={"From": self.from_number, "To": to, "Body": body},
			timeout=self.timeout,
		)

	async def send(self, to: str, body: str) -> SendReceipt:
		start = time.perf_counter()
		try:
			if self.http is not None:
				response = await self._post(self.http, to, body)
			else:
				async with httpx.AsyncClient() as client:
					response = await self._post(client, to, body)
		except httpx.TimeoutException:
			logger.warning("sms_transport_timeout", extra={"to_masked": mask_number(to)})
			obs_metrics.inc_sms_transport("twilio", "timeout")
			return SendReceipt(accepted=False, error="sms_timeout")
		except httpx.HTTPError as exc:
			logger.warning("sms_transport_unreachable", extra={"to_masked": mask_number(to), "error": str(exc)})
			obs_metrics.inc_sms_transport("twilio", "unreachable")
			return SendReceipt(accepted=False, error="sms_unreachable")
		finally:
			obs_metrics.observe_sms_latency(time.perf_counter() - start)

		try:
			payload = response.json()
		except ValueError:
			payload = {}
		if response.is_error or payload.get("error_code"):
			message = payload.get("message") or f"status_{response.status_code}"
			logger.warning(
				"sms_transport_rejected",
				extra={"to_masked": mask_number(to), "status": response.status_code, "error": message},
			)
			obs_metrics.inc_sms_transport("twilio", "rejected")
			return SendReceipt(accepted=False, error=str(message))
		obs_metrics.inc_sms_transport("twilio", "accepted")
		return SendReceipt(accepted=True, sid=payload.get("sid"))


def build_transport() -> SmsTransport:
	backend = settings.sms_backend.lower()
	if backend == "twilio":
		if not (settings.twilio_account_sid and settings.twilio_auth_token and settings.twilio_from_number):
			raise RuntimeError("twilio_not_configured")
		return TwilioTransport(
			account_sid=settings.twilio_account_sid,
			auth_token=settings.twilio_auth_token,
			from_number=settings.twilio_from_number,
			base_url=settings.twilio_base_url,
			timeout=settings.sms_timeout_seconds,
		)
	return LogTransport()


_transport: Optional[SmsTransport] = None


def get_transport() -> SmsTransport:
	global _transport
	if _transport is None:
		_transport = build_transport()
	return _transport


def set_transport(transport: Optional[SmsTransport]) -> None:
	global _transport
	_transport = transport
