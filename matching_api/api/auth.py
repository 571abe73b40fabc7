"""Phone sign-in endpoints: request a code, then verify it for a session."""

from __future__ import annotations

from fastapi import APIRouter

from matching_api.domain.identity import otp, policy, schemas

router = APIRouter(prefix="/api/auth", tags=["auth"])


@router.post("/send-code", response_model=schemas.SendCodeResponse)
async def send_code(payload: schemas.SendCodeRequest) -> schemas.SendCodeResponse:
	if not payload.phone_number:
		raise policy.ValidationError("phone_required", "Phone number is required")
	result = await otp.issue(payload.phone_number)
	return schemas.SendCodeResponse(message="Verification code sent successfully!", phone=result.phone)


@router.post("/verify-code", response_model=schemas.VerifyCodeResponse, response_model_by_alias=True)
async def verify_code(payload: schemas.VerifyCodeRequest) -> schemas.VerifyCodeResponse:
	if not payload.phone_number or not payload.code:
		raise policy.ValidationError("fields_required", "Phone number and verification code are required")
	session = await otp.verify(payload.phone_number, payload.code)
	return schemas.VerifyCodeResponse(
		message="Phone verified successfully!",
		session_token=session.token,
		user=schemas.SessionUser(**session.user_payload()),
	)
