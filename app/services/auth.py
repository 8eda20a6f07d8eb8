import hmac
import logging
from dataclasses import dataclass, field
from typing import Optional

from fastapi import Depends, Request
from firebase_admin import auth as firebase_auth

from app.core.settings import settings
from app.exceptions import ForbiddenException, UnauthorizedException, ValidationException

logger = logging.getLogger("app.auth")

SERVICE_AUTH_HEADER = "X-Service-Auth"
SERVICE_USER_HEADER = "X-User-Id"
SERVICE_NAME_HEADER = "X-Service-Name"


@dataclass
class AuthContext:
    """Who is calling: an end user (Firebase ID token) or a trusted service."""
    user_id: Optional[str]
    is_service: bool = False
    service_name: Optional[str] = None
    claims: dict = field(default_factory=dict)


def _verify_service(request: Request) -> AuthContext:
    secret = request.headers.get(SERVICE_AUTH_HEADER, "")
    expected = settings.service_auth_token
    if not expected:
        logger.error("SERVICE_AUTH_TOKEN is not configured; rejecting service call")
        raise UnauthorizedException("Service authentication not configured")
    if not hmac.compare_digest(secret.encode(), expected.encode()):
        logger.warning(f"Invalid service credentials on {request.url.path}")
        raise UnauthorizedException("Invalid service credentials")

    user_id = (request.headers.get(SERVICE_USER_HEADER) or "").strip() or None
    return AuthContext(
        user_id=user_id,
        is_service=True,
        service_name=request.headers.get(SERVICE_NAME_HEADER),
    )


def _verify_user(request: Request) -> AuthContext:
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        raise UnauthorizedException("Missing Authorization header")
    id_token = auth_header.split(" ", 1)[1].strip()
    try:
        decoded_token = firebase_auth.verify_id_token(id_token)
    except Exception as e:
        logger.warning(f"Token verification failed on {request.url.path}: {e}")
        raise UnauthorizedException("Invalid token")
    return AuthContext(user_id=decoded_token.get("uid"), claims=decoded_token)


def get_auth_context(request: Request) -> AuthContext:
    """Accept either service-to-service auth or a Firebase ID token.

    The service header wins when present (calls routed through the gateway).
    """
    if request.headers.get(SERVICE_AUTH_HEADER) is not None:
        return _verify_service(request)
    return _verify_user(request)


def require_service(ctx: AuthContext = Depends(get_auth_context)) -> AuthContext:
    if not ctx.is_service:
        raise ForbiddenException("Service credentials required")
    return ctx


def require_user_id(ctx: AuthContext = Depends(get_auth_context)) -> str:
    if not ctx.user_id:
        raise ValidationException("User ID is required")
    return ctx.user_id
