"""Pydantic schemas for the phone sign-in and profile flows."""

from __future__ import annotations

from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class SendCodeRequest(BaseModel):
	phone_number: Optional[str] = Field(default=None, alias="phoneNumber")


class VerifyCodeRequest(BaseModel):
	phone_number: Optional[str] = Field(default=None, alias="phoneNumber")
	code: Optional[str] = None


class SessionUser(BaseModel):
	id: str
	phone_number: str
	authenticated: bool = True
	profile_completed: bool = False


class SendCodeResponse(BaseModel):
	success: bool = True
	message: str
	phone: str


class VerifyCodeResponse(BaseModel):
	model_config = ConfigDict(populate_by_name=True)

	success: bool = True
	message: str
	session_token: str = Field(serialization_alias="sessionToken")
	user: SessionUser


class ProfileCreateRequest(BaseModel):
	user_id: Optional[str] = Field(default=None, alias="userId")
	photo_url: Optional[str] = Field(default=None, alias="photoUrl")
	questionnaire_data: Optional[Dict[str, Any]] = Field(default=None, alias="questionnaireData")
	phone_number: Optional[str] = Field(default=None, alias="phoneNumber")


class ProfileCreateResponse(BaseModel):
	model_config = ConfigDict(populate_by_name=True)

	success: bool = True
	message: str
	user_id: str = Field(serialization_alias="userId")
