"""Notification preference and history endpoints for the signed-in user."""

from __future__ import annotations

import dataclasses

from fastapi import APIRouter, Depends, Query

from matching_api.domain.identity import models as identity_models
from matching_api.domain.identity import policy
from matching_api.domain.identity.sessions import get_current_session
from matching_api.domain.notifications import log as notification_log
from matching_api.domain.notifications import preferences, schemas

router = APIRouter(prefix="/api/notifications", tags=["notifications"])


@router.get("/preferences")
async def get_preferences(
	session: identity_models.SessionClaims = Depends(get_current_session),
) -> dict:
	prefs = await preferences.get_preferences(session.identity_id)
	out = schemas.NotificationPreferencesOut(**dataclasses.asdict(prefs))
	return {"success": True, "preferences": out.model_dump(mode="json")}


@router.patch("/preferences")
async def update_preferences(
	payload: schemas.NotificationPreferencesPatch,
	session: identity_models.SessionClaims = Depends(get_current_session),
) -> dict:
	ok = await preferences.update_preferences(session.identity_id, payload.model_dump(exclude_unset=True))
	if not ok:
		raise policy.PersistenceError("preferences_update_failed", "Failed to update notification preferences")
	return {"success": True}


@router.get("/history")
async def get_history(
	limit: int = Query(default=50, ge=1, le=notification_log.HISTORY_MAX),
	session: identity_models.SessionClaims = Depends(get_current_session),
) -> dict:
	entries = await notification_log.history(session.identity_id, limit=limit)
	return {"success": True, "notifications": [entry.to_dict() for entry in entries]}
