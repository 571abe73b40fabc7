"""Profile completion endpoint."""

from __future__ import annotations

from fastapi import APIRouter

from matching_api.domain.identity import policy, reconcile, schemas

router = APIRouter(prefix="/api/profile", tags=["profile"])


@router.post("/create", response_model=schemas.ProfileCreateResponse, response_model_by_alias=True)
async def create_profile(payload: schemas.ProfileCreateRequest) -> schemas.ProfileCreateResponse:
	if not payload.user_id or payload.questionnaire_data is None:
		raise policy.ValidationError("fields_required", "User ID and questionnaire data are required")
	phone = policy.normalise_phone(payload.phone_number) if payload.phone_number else None
	effective_id = await reconcile.complete_profile(
		payload.user_id,
		phone,
		payload.questionnaire_data,
		photo_url=payload.photo_url,
	)
	return schemas.ProfileCreateResponse(message="Profile created successfully!", user_id=effective_id)
