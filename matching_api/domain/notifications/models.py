"""Domain models for notification preferences and dispatch."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Mapping, Optional

RecordLike = Mapping[str, Any]


class NotificationKind(str, Enum):
	MATCH_FOUND = "match_found"
	PROFILE_VIEWED = "profile_viewed"
	MESSAGE_RECEIVED = "message_received"
	REMINDER = "reminder"

	@property
	def preference_field(self) -> str:
		return _PREFERENCE_FIELDS[self]


_PREFERENCE_FIELDS = {
	NotificationKind.MATCH_FOUND: "new_matches",
	NotificationKind.PROFILE_VIEWED: "profile_views",
	NotificationKind.MESSAGE_RECEIVED: "messages",
	NotificationKind.REMINDER: "activity_reminders",
}


class DeliveryStatus(str, Enum):
	SENT = "sent"
	DELIVERED = "delivered"
	FAILED = "failed"
	SKIPPED = "skipped"


@dataclass(slots=True)
class NotificationPreferences:
	user_id: str
	sms_enabled: bool = True
	new_matches: bool = True
	profile_views: bool = True
	messages: bool = True
	activity_reminders: bool = False
	quiet_hours_start: Optional[str] = "22:00"
	quiet_hours_end: Optional[str] = "08:00"
	timezone: Optional[str] = None
	created_at: Optional[datetime] = None
	updated_at: Optional[datetime] = None

	def allows(self, kind: NotificationKind) -> bool:
		return bool(getattr(self, kind.preference_field))

	@classmethod
	def from_record(cls, record: RecordLike) -> "NotificationPreferences":
		return cls(
			user_id=str(record["user_id"]),
			sms_enabled=bool(record.get("sms_enabled", True)),
			new_matches=bool(record.get("new_matches", True)),
			profile_views=bool(record.get("profile_views", True)),
			messages=bool(record.get("messages", True)),
			activity_reminders=bool(record.get("activity_reminders", False)),
			quiet_hours_start=record.get("quiet_hours_start"),
			quiet_hours_end=record.get("quiet_hours_end"),
			timezone=record.get("timezone"),
			created_at=record.get("created_at"),
			updated_at=record.get("updated_at"),
		)


@dataclass(slots=True)
class NotificationEvent:
	user_id: str
	kind: NotificationKind
	data: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class GateDecision:
	allowed: bool
	reason: Optional[str] = None


@dataclass(slots=True)
class NotificationLogEntry:
	user_id: str
	kind: NotificationKind
	phone_number: str
	message_body: str
	status: DeliveryStatus
	data: Optional[dict[str, Any]] = None
	sent_at: Optional[datetime] = None
	id: Optional[int] = None

	@classmethod
	def from_record(cls, record: RecordLike) -> "NotificationLogEntry":
		data = record.get("data")
		if isinstance(data, str):
			data = json.loads(data)
		return cls(
			id=record.get("id"),
			user_id=str(record["user_id"]),
			kind=NotificationKind(record["type"]),
			phone_number=str(record.get("phone_number") or ""),
			message_body=str(record.get("message_body") or ""),
			status=DeliveryStatus(record["status"]),
			data=data,
			sent_at=record.get("sent_at"),
		)

	def to_dict(self) -> dict[str, Any]:
		return {
			"id": self.id,
			"user_id": self.user_id,
			"type": self.kind.value,
			"phone_number": self.phone_number,
			"message_body": self.message_body,
			"status": self.status.value,
			"sent_at": self.sent_at.isoformat() if self.sent_at else None,
			"data": self.data,
		}


@dataclass(frozen=True, slots=True)
class DispatchResult:
	sent: bool
	status: DeliveryStatus
	sid: Optional[str] = None
	reason: Optional[str] = None
	error: Optional[str] = None
