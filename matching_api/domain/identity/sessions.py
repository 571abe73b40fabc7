"""Session issuance for verified phone numbers.

Tokens are HS256 JWTs carrying the phone number, the issue time in
milliseconds and the identity id. Each token has a random `jti`, so two
verifications of the same phone never share a token.
"""

from __future__ import annotations

import secrets
import time
from typing import Any, Dict, Optional
from uuid import uuid4

import jwt
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from matching_api.domain.identity import models, policy
from matching_api.settings import settings

ISSUER = "matching-api"
AUDIENCE = "matching-web"
_ALGORITHM = "HS256"
_REQUIRED_CLAIMS = ["exp", "iat", "iss", "aud", "sub", "phone", "jti", "iat_ms"]

_bearer = HTTPBearer(auto_error=False)


def new_identity_id() -> str:
	return str(uuid4())


def issue_session(identity: models.RealIdentity, *, now_ms: Optional[int] = None) -> models.Session:
	issued_at_ms = now_ms if now_ms is not None else int(time.time() * 1000)
	now = int(time.time())
	claims: Dict[str, Any] = {
		"iss": ISSUER,
		"aud": AUDIENCE,
		"sub": identity.id,
		"phone": identity.phone_number,
		"iat": now,
		"iat_ms": issued_at_ms,
		"jti": secrets.token_urlsafe(16),
		"exp": now + settings.session_ttl_days * 24 * 60 * 60,
	}
	token = jwt.encode(claims, settings.secret_key, algorithm=_ALGORITHM)
	return models.Session(token=token, identity=identity, issued_at_ms=issued_at_ms)


def decode_session(token: str) -> models.SessionClaims:
	try:
		payload = jwt.decode(
			token,
			settings.secret_key,
			algorithms=[_ALGORITHM],
			audience=AUDIENCE,
			issuer=ISSUER,
			leeway=5,
			options={"require": _REQUIRED_CLAIMS},
		)
	except jwt.InvalidTokenError as exc:
		raise policy.ValidationError("session_invalid", "Invalid or expired session") from exc
	if not payload["phone"] or not payload["jti"]:
		raise policy.ValidationError("session_invalid", "Invalid or expired session")
	return models.SessionClaims(
		identity_id=str(payload["sub"]),
		phone_number=str(payload["phone"]),
		issued_at_ms=int(payload["iat_ms"]),
		token_id=str(payload["jti"]),
	)


async def get_current_session(
	request: Request,
	credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer),
) -> models.SessionClaims:
	if credentials is None or not credentials.credentials:
		raise HTTPException(status.HTTP_401_UNAUTHORIZED, detail="session_required")
	try:
		claims = decode_session(credentials.credentials)
	except policy.ValidationError as exc:
		raise HTTPException(status.HTTP_401_UNAUTHORIZED, detail=exc.reason) from None
	# Picked up by the access log in obs.middleware.
	request.state.identity_id = claims.identity_id
	return claims
