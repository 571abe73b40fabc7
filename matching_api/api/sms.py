"""SMS notification endpoints.

Each endpoint resolves the recipient identity from the phone number and runs
the event through the dispatch pipeline, so preferences and quiet hours apply.
"""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, status
from fastapi.responses import JSONResponse

from matching_api.domain.identity import models as identity_models
from matching_api.domain.identity import policy, reconcile
from matching_api.domain.notifications import dispatch, schemas
from matching_api.domain.notifications.models import DeliveryStatus, DispatchResult

router = APIRouter(prefix="/api/sms", tags=["sms"])

_SUCCESS_MESSAGES = {
	"match": "Match notification sent successfully!",
	"profile-view": "Profile view notification sent successfully!",
	"message": "Message notification sent successfully!",
	"reminder": "Activity reminder sent successfully!",
}


async def _recipient(phone_number: str) -> identity_models.Identity:
	identity = await reconcile.find_by_phone(policy.normalise_phone(phone_number))
	if identity is None:
		raise HTTPException(status.HTTP_404_NOT_FOUND, detail="recipient_not_found")
	return identity


def _respond(result: DispatchResult, endpoint: str) -> JSONResponse:
	if result.sent:
		return JSONResponse(
			content={
				"success": True,
				"messageSid": result.sid,
				"status": result.status.value,
				"message": _SUCCESS_MESSAGES[endpoint],
			}
		)
	if result.status is DeliveryStatus.SKIPPED:
		return JSONResponse(content={"success": False, "status": result.status.value, "reason": result.reason})
	if result.reason == "recipient_not_found":
		raise HTTPException(status.HTTP_404_NOT_FOUND, detail="recipient_not_found")
	raise policy.TransportError("sms_rejected", result.error or "Failed to send notification")


@router.post("/match")
async def send_match(payload: schemas.MatchSmsRequest) -> JSONResponse:
	if not payload.phone_number or not payload.match_name:
		raise policy.ValidationError("fields_required", "Phone number and match name are required")
	identity = await _recipient(payload.phone_number)
	result = await dispatch.send_match_notification(identity.id, payload.match_name, identity=identity)
	return _respond(result, "match")


@router.post("/profile-view")
async def send_profile_view(payload: schemas.ProfileViewSmsRequest) -> JSONResponse:
	if not payload.phone_number or not payload.viewer_name:
		raise policy.ValidationError("fields_required", "Phone number and viewer name are required")
	identity = await _recipient(payload.phone_number)
	result = await dispatch.send_profile_view_notification(identity.id, payload.viewer_name, identity=identity)
	return _respond(result, "profile-view")


@router.post("/message")
async def send_message(payload: schemas.MessageSmsRequest) -> JSONResponse:
	if not payload.phone_number or not payload.sender_name or not payload.message_preview:
		raise policy.ValidationError(
			"fields_required",
			"Phone number, sender name, and message preview are required",
		)
	identity = await _recipient(payload.phone_number)
	result = await dispatch.send_message_notification(
		identity.id,
		payload.sender_name,
		payload.message_preview,
		identity=identity,
	)
	return _respond(result, "message")


@router.post("/reminder")
async def send_reminder(payload: schemas.ReminderSmsRequest) -> JSONResponse:
	if not payload.phone_number:
		raise policy.ValidationError("phone_required", "Phone number is required")
	identity = await _recipient(payload.phone_number)
	result = await dispatch.send_activity_reminder(identity.id, identity=identity)
	return _respond(result, "reminder")
