from datetime import datetime, timedelta, timezone
from typing import Optional
import hmac
import logging

from fastapi import APIRouter, Cookie, Form, HTTPException, Response
from jose import JWTError, jwt
from pydantic import BaseModel

from ..settings import settings

router = APIRouter(prefix="/password-gate", tags=["password-gate"])

logger = logging.getLogger(__name__)

ACCESS_COOKIE = "access-token"
GRANTED = "granted"


class GateResult(BaseModel):
	success: bool


def token_lifetime() -> timedelta:
	minutes = settings.access_token_expire_minutes
	return timedelta(minutes=minutes if minutes > 0 else 12 * 60)


def _resolve_expiry(expires_delta: Optional[timedelta]) -> datetime:
	delta = expires_delta if expires_delta is not None else token_lifetime()
	return datetime.now(timezone.utc) + delta


def create_access_token(expires_delta: Optional[timedelta] = None) -> str:
	to_encode = {"sub": GRANTED, "exp": _resolve_expiry(expires_delta)}
	return jwt.encode(to_encode, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def token_grants_access(token: Optional[str]) -> bool:
	if not token:
		return False
	try:
		payload = jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
	except JWTError:
		return False
	return payload.get("sub") == GRANTED


def require_access(access_token: Optional[str] = Cookie(default=None, alias=ACCESS_COOKIE)) -> None:
	# No password configured means the apps are open
	if not settings.app_password:
		return
	if not token_grants_access(access_token):
		raise HTTPException(status_code=401, detail="Password required")


@router.post("", response_model=GateResult)
async def validate_password(response: Response, password: str = Form(default="")):
	expected = settings.app_password
	if not expected or not hmac.compare_digest(password.encode("utf-8"), expected.encode("utf-8")):
		logger.info("Rejected password gate attempt")
		return GateResult(success=False)
	response.set_cookie(
		ACCESS_COOKIE,
		create_access_token(),
		httponly=True,
		path="/",
		max_age=int(token_lifetime().total_seconds()),
	)
	return GateResult(success=True)
