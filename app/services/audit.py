"""Audit logging helper functions for key notification events.

Standard JSON-ish single-line logs so they are easy to index.
"""
from __future__ import annotations
import logging
from typing import Optional, Any

from app.utils.datetime import utc_now

_logger = logging.getLogger("app.audit")


def _mask_token(token: str) -> str:
    return f"{token[:12]}..." if token and len(token) > 12 else token


def _emit(event: str, user_id: Optional[str] = None, **data: Any):
    payload = {"ts": utc_now().isoformat() + "Z", "event": event}
    if user_id:
        payload["user_id"] = user_id
    payload.update(data)
    # Single-line stable ordering (rough) for readability
    parts = [f"{k}={repr(v)}" for k,v in payload.items()]
    _logger.info("AUDIT " + " ".join(parts))

# Public convenience wrappers

def log_token_registered(user_id: str, token: str, platform: str, device_id: Optional[str], created: bool, superseded: int):
    _emit("token.register", user_id=user_id, token=_mask_token(token), platform=platform, device_id=device_id, created=created, superseded=superseded)

def log_token_removed(user_id: Optional[str], token: str):
    _emit("token.remove", user_id=user_id, token=_mask_token(token))

def log_tokens_pruned(user_id: str, tokens: list[str]):
    _emit("token.prune", user_id=user_id, count=len(tokens), tokens=[_mask_token(t) for t in tokens])

def log_preferences_updated(user_id: str, categories: list[str]):
    _emit("preferences.update", user_id=user_id, categories=categories)

def log_push_dispatch(user_id: str, notification_type: str, category: str, attempted: int, sent: int, failed: int):
    _emit(
        "push.dispatch",
        user_id=user_id,
        type=notification_type,
        category=category,
        attempted=attempted,
        sent=sent,
        failed=failed,
    )

def log_batch_dispatch(notification_type: str, total: int, sent: int, failed: int):
    _emit("push.batch", type=notification_type, total=total, sent=sent, failed=failed)
