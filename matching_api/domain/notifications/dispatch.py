"""Outbound notification pipeline: gate, resolve phone, send, log.

Each event is independent; nothing here holds state between calls, so
dispatches for different users can run concurrently. A transport timeout
is recorded as a failed attempt and is not retried here.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Optional

from matching_api.domain.identity import models as identity_models
from matching_api.domain.identity import policy, reconcile
from matching_api.domain.notifications import log as notification_log
from matching_api.domain.notifications import preferences, quiet_hours, templates
from matching_api.domain.notifications.models import (
	DeliveryStatus,
	DispatchResult,
	GateDecision,
	NotificationEvent,
	NotificationKind,
	NotificationLogEntry,
)
from matching_api.infra import sms as sms_transport
from matching_api.obs import metrics as obs_metrics
from matching_api.settings import settings

logger = logging.getLogger(__name__)


def _now() -> datetime:
	return datetime.now(timezone.utc)


async def should_send(user_id: str, kind: NotificationKind, *, now: Optional[datetime] = None) -> GateDecision:
	"""Fail closed: any gate that does not pass suppresses the send."""
	if reconcile.identity_for_user_id(user_id) is not None:
		return GateDecision(allowed=True)
	try:
		prefs = await preferences.get_preferences(user_id)
	except policy.PersistenceError:
		logger.warning("notification_gate_prefs_unavailable", extra={"kind": kind.value}, exc_info=True)
		return GateDecision(allowed=False, reason="preferences_unavailable")
	if not prefs.sms_enabled:
		return GateDecision(allowed=False, reason="sms_disabled")
	if not prefs.allows(kind):
		return GateDecision(allowed=False, reason="kind_disabled")
	if quiet_hours.is_quiet(prefs, now or _now()):
		return GateDecision(allowed=False, reason="quiet_hours")
	return GateDecision(allowed=True)


async def _resolve_identity(user_id: str, identity: Optional[identity_models.Identity]) -> Optional[identity_models.Identity]:
	if identity is not None:
		return identity
	return await reconcile.get_identity(user_id)


def _log_data(event: NotificationEvent) -> Optional[dict[str, Any]]:
	data = {key: value for key, value in (event.data or {}).items() if value is not None}
	if not data:
		return None
	if isinstance(data.get("message_preview"), str):
		data["message_preview"] = templates.truncate_preview(data["message_preview"])
	return data


async def _record(entry: NotificationLogEntry, identity: identity_models.Identity) -> None:
	if isinstance(identity, identity_models.DemoIdentity):
		notification_log.trace_demo(entry)
		return
	try:
		await notification_log.append(entry)
	except Exception:
		logger.error(
			"notification_log_write_failed",
			extra={"kind": entry.kind.value, "status": entry.status.value},
			exc_info=True,
		)


async def _send(to: str, body: str) -> sms_transport.SendReceipt:
	try:
		return await asyncio.wait_for(
			sms_transport.get_transport().send(to, body),
			timeout=settings.sms_timeout_seconds,
		)
	except asyncio.TimeoutError:
		return sms_transport.SendReceipt(accepted=False, error="sms_timeout")


async def dispatch(
	event: NotificationEvent,
	*,
	identity: Optional[identity_models.Identity] = None,
	now: Optional[datetime] = None,
) -> DispatchResult:
	decision = await should_send(event.user_id, event.kind, now=now)
	if not decision.allowed:
		obs_metrics.inc_notification(event.kind.value, DeliveryStatus.SKIPPED.value)
		logger.info("notification_suppressed", extra={"kind": event.kind.value, "reason": decision.reason})
		if settings.notifications_log_suppressed:
			resolved = await _resolve_identity(event.user_id, identity)
			if resolved is not None and resolved.phone_number:
				await _record(
					NotificationLogEntry(
						user_id=event.user_id,
						kind=event.kind,
						phone_number=resolved.phone_number,
						message_body=templates.render(event.kind, event.data),
						status=DeliveryStatus.SKIPPED,
						data={**(_log_data(event) or {}), "skip_reason": decision.reason},
					),
					resolved,
				)
		return DispatchResult(sent=False, status=DeliveryStatus.SKIPPED, reason=decision.reason)

	resolved = await _resolve_identity(event.user_id, identity)
	if resolved is None or not resolved.phone_number:
		logger.error("notification_recipient_missing", extra={"kind": event.kind.value})
		obs_metrics.inc_notification(event.kind.value, DeliveryStatus.FAILED.value)
		return DispatchResult(sent=False, status=DeliveryStatus.FAILED, reason="recipient_not_found")

	body = templates.render(event.kind, event.data)
	receipt = await _send(resolved.phone_number, body)
	status = DeliveryStatus.SENT if receipt.accepted else DeliveryStatus.FAILED
	await _record(
		NotificationLogEntry(
			user_id=event.user_id,
			kind=event.kind,
			phone_number=resolved.phone_number,
			message_body=body,
			status=status,
			data=_log_data(event),
		),
		resolved,
	)
	obs_metrics.inc_notification(event.kind.value, status.value)
	if not receipt.accepted:
		logger.warning(
			"notification_send_failed",
			extra={"kind": event.kind.value, "to_masked": sms_transport.mask_number(resolved.phone_number), "error": receipt.error},
		)
		return DispatchResult(sent=False, status=status, reason="transport_failed", error=receipt.error)
	return DispatchResult(sent=True, status=status, sid=receipt.sid)


async def send_match_notification(user_id: str, match_name: Optional[str] = None, **kwargs: Any) -> DispatchResult:
	event = NotificationEvent(user_id=user_id, kind=NotificationKind.MATCH_FOUND, data={"match_name": match_name})
	return await dispatch(event, **kwargs)


async def send_profile_view_notification(user_id: str, viewer_name: Optional[str] = None, **kwargs: Any) -> DispatchResult:
	event = NotificationEvent(user_id=user_id, kind=NotificationKind.PROFILE_VIEWED, data={"viewer_name": viewer_name})
	return await dispatch(event, **kwargs)


async def send_message_notification(
	user_id: str,
	sender_name: Optional[str] = None,
	message_preview: Optional[str] = None,
	**kwargs: Any,
) -> DispatchResult:
	event = NotificationEvent(
		user_id=user_id,
		kind=NotificationKind.MESSAGE_RECEIVED,
		data={"sender_name": sender_name, "message_preview": message_preview},
	)
	return await dispatch(event, **kwargs)


async def send_activity_reminder(user_id: str, **kwargs: Any) -> DispatchResult:
	return await dispatch(NotificationEvent(user_id=user_id, kind=NotificationKind.REMINDER), **kwargs)

