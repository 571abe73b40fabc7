"""Static SMS bodies for each notification kind."""

from __future__ import annotations

from typing import Any, Mapping

from matching_api.domain.notifications.models import NotificationKind

PREVIEW_MAX_CHARS = 50
DEFAULT_NAME = "Someone"
DEFAULT_PREVIEW = "sent you a message"

MATCH_TEMPLATE = "🎉 You have a new match on Matching! {name} is interested in you. Open the app to connect! 💕"
PROFILE_VIEW_TEMPLATE = "👀 {name} viewed your profile on Matching! Check them out in the app."
MESSAGE_TEMPLATE = '💬 New message from {name}: "{preview}" Reply in the Matching app!'
REMINDER_TEMPLATE = (
	"✨ Your perfect match might be waiting! You have potential matches on Matching. "
	"Open the app to see who's interested in you! 💕"
)


def truncate_preview(preview: str) -> str:
	if len(preview) <= PREVIEW_MAX_CHARS:
		return preview
	return f"{preview[:PREVIEW_MAX_CHARS]}..."


def _name(data: Mapping[str, Any], *keys: str) -> str:
	for key in keys:
		value = data.get(key)
		if value:
			return str(value)
	return DEFAULT_NAME


def render(kind: NotificationKind, data: Mapping[str, Any] | None = None) -> str:
	data = data or {}
	if kind is NotificationKind.MATCH_FOUND:
		return MATCH_TEMPLATE.format(name=_name(data, "match_name"))
	if kind is NotificationKind.PROFILE_VIEWED:
		return PROFILE_VIEW_TEMPLATE.format(name=_name(data, "viewer_name"))
	if kind is NotificationKind.MESSAGE_RECEIVED:
		preview = str(data.get("message_preview") or DEFAULT_PREVIEW)
		return MESSAGE_TEMPLATE.format(
			name=_name(data, "sender_name", "match_name"),
			preview=truncate_preview(preview),
		)
	return REMINDER_TEMPLATE
