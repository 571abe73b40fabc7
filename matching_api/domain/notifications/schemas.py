"""Pydantic schemas for SMS notification and preference endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, Field, field_validator

from matching_api.domain.identity import policy


class MatchSmsRequest(BaseModel):
	phone_number: Optional[str] = Field(default=None, alias="phoneNumber")
	match_name: Optional[str] = Field(default=None, alias="matchName")


class ProfileViewSmsRequest(BaseModel):
	phone_number: Optional[str] = Field(default=None, alias="phoneNumber")
	viewer_name: Optional[str] = Field(default=None, alias="viewerName")


class MessageSmsRequest(BaseModel):
	phone_number: Optional[str] = Field(default=None, alias="phoneNumber")
	sender_name: Optional[str] = Field(default=None, alias="senderName")
	message_preview: Optional[str] = Field(default=None, alias="messagePreview")


class ReminderSmsRequest(BaseModel):
	phone_number: Optional[str] = Field(default=None, alias="phoneNumber")


class NotificationPreferencesOut(BaseModel):
	user_id: str
	sms_enabled: bool
	new_matches: bool
	profile_views: bool
	messages: bool
	activity_reminders: bool
	quiet_hours_start: Optional[str] = None
	quiet_hours_end: Optional[str] = None
	timezone: Optional[str] = None
	created_at: Optional[datetime] = None
	updated_at: Optional[datetime] = None


class NotificationPreferencesPatch(BaseModel):
	sms_enabled: Optional[bool] = None
	new_matches: Optional[bool] = None
	profile_views: Optional[bool] = None
	messages: Optional[bool] = None
	activity_reminders: Optional[bool] = None
	quiet_hours_start: Optional[str] = None
	quiet_hours_end: Optional[str] = None
	timezone: Optional[str] = None

	@field_validator("quiet_hours_start", "quiet_hours_end")
	@classmethod
	def _check_hhmm(cls, value: Optional[str]) -> Optional[str]:
		if value is None:
			return value
		return policy.guard_hhmm(value)

	@field_validator("timezone")
	@classmethod
	def _check_timezone(cls, value: Optional[str]) -> Optional[str]:
		if value is None:
			return value
		try:
			ZoneInfo(value)
		except (ZoneInfoNotFoundError, ValueError):
			raise ValueError("timezone_invalid") from None
		return value
