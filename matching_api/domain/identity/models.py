"""Domain models for phone authentication and identities."""

from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Mapping, Optional, Union

RecordLike = Mapping[str, Any]


def _as_datetime(value: Any) -> Optional[datetime]:
	if value is None or isinstance(value, datetime):
		return value
	return datetime.fromisoformat(str(value))


@dataclass(frozen=True, slots=True)
class PendingCode:
	"""A live one-time code waiting to be verified for a phone number."""

	phone: str
	code: str
	expires_at: datetime

	def is_expired(self, now: datetime) -> bool:
		return now > self.expires_at

	def to_json(self) -> str:
		return json.dumps({"code": self.code, "expires_at": self.expires_at.isoformat()})

	@classmethod
	def from_json(cls, phone: str, raw: str) -> "PendingCode | None":
		try:
			data = json.loads(raw)
			expires_at = datetime.fromisoformat(data["expires_at"])
		except (json.JSONDecodeError, KeyError, TypeError, ValueError):
			return None
		if expires_at.tzinfo is None:
			expires_at = expires_at.replace(tzinfo=timezone.utc)
		return cls(phone=phone, code=str(data.get("code", "")), expires_at=expires_at)


@dataclass(frozen=True, slots=True)
class RealIdentity:
	"""Durable user record keyed by a verified phone number."""

	id: str
	phone_number: str
	profile_completed: bool = False
	created_at: Optional[datetime] = None

	is_demo = False

	@classmethod
	def from_record(cls, record: RecordLike) -> "RealIdentity":
		return cls(
			id=str(record["id"]),
			phone_number=str(record.get("phone_number") or ""),
			profile_completed=bool(record.get("profile_completed", False)),
			created_at=_as_datetime(record.get("created_at")),
		)


@dataclass(frozen=True, slots=True)
class DemoIdentity:
	"""Sentinel identity for unauthenticated feature trials; never persisted."""

	id: str
	phone_number: str

	is_demo = True


Identity = Union[RealIdentity, DemoIdentity]


@dataclass(frozen=True, slots=True)
class Session:
	"""Result of a successful verification."""

	token: str
	identity: RealIdentity
	issued_at_ms: int

	def user_payload(self) -> dict[str, Any]:
		return {
			"id": self.identity.id,
			"phone_number": self.identity.phone_number,
			"authenticated": True,
			"profile_completed": self.identity.profile_completed,
		}


@dataclass(frozen=True, slots=True)
class SessionClaims:
	identity_id: str
	phone_number: str
	issued_at_ms: int
	token_id: str
