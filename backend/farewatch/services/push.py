"""
Send watch notifications (price drops, hold outcomes) via Apple Push Notification service.
Requires APNS_KEY_ID, APNS_TEAM_ID, APNS_BUNDLE_ID, and APNS_KEY_P8_PATH or APNS_KEY_P8_BASE64 in env.
If not configured, send_apns and send_watch_push no-op (log and return).
"""
import base64
import binascii
import logging
import os
import time
from pathlib import Path
from typing import Any

import httpx
import jwt

logger = logging.getLogger(__name__)

# APNs host: sandbox for dev builds, production for release
APNS_SANDBOX = "https://api.sandbox.push.apple.com"
APNS_PRODUCTION = "https://api.push.apple.com"

# Provider token cache: (token_string, expiry_epoch). APNs accepts tokens with iat within the last hour.
_jwt_cache: tuple[str, float] | None = None
_JWT_EXPIRY_SECONDS = 55 * 60


def _load_p8_key() -> str | None:
    """Load .p8 key from APNS_KEY_P8_BASE64 or APNS_KEY_P8_PATH. None if neither is usable."""
    base64_content = os.getenv("APNS_KEY_P8_BASE64")
    if base64_content:
        try:
            return base64.b64decode(base64_content).decode("utf-8")
        except (binascii.Error, UnicodeDecodeError) as e:
            logger.warning("APNS_KEY_P8_BASE64 decode failed: %s", e)
            return None
    path = os.getenv("APNS_KEY_P8_PATH")
    if path and Path(path).exists():
        try:
            return Path(path).read_text(encoding="utf-8")
        except OSError as e:
            logger.warning("APNS_KEY_P8_PATH read failed: %s", e)
            return None
    return None


def _get_apns_jwt() -> str | None:
    """Build and cache the ES256 provider token. None if config is missing."""
    global _jwt_cache
    key_id = os.getenv("APNS_KEY_ID")
    team_id = os.getenv("APNS_TEAM_ID")
    if not key_id or not team_id:
        return None
    now = time.time()
    if _jwt_cache and _jwt_cache[1] > now:
        return _jwt_cache[0]
    p8 = _load_p8_key()
    if not p8:
        return None
    try:
        token = jwt.encode(
            {"iss": team_id, "iat": int(now)},
            p8,
            algorithm="ES256",
            headers={"alg": "ES256", "kid": key_id},
        )
    except (jwt.PyJWTError, ValueError) as e:
        logger.warning("APNs JWT build failed: %s", e, exc_info=True)
        return None
    _jwt_cache = (token, now + _JWT_EXPIRY_SECONDS)
    return token


def send_apns(
    device_token: str,
    title: str,
    body: str,
    *,
    data: dict[str, Any] | None = None,
    bundle_id: str | None = None,
) -> bool:
    """
    Send one alert to an iOS device. `data` is merged next to `aps` for deep links (watch_id, code).
    Returns True if APNs accepted it, False otherwise (config missing or APNs error).
    """
    bundle_id = bundle_id or os.getenv("APNS_BUNDLE_ID")
    if not bundle_id:
        logger.debug("APNS_BUNDLE_ID not set; skipping push")
        return False
    jwt_token = _get_apns_jwt()
    if not jwt_token:
        logger.debug("APNs not configured (key/team); skipping push")
        return False
    use_sandbox = os.getenv("APNS_USE_SANDBOX", "true").lower() in ("1", "true", "yes")
    base_url = APNS_SANDBOX if use_sandbox else APNS_PRODUCTION
    headers = {
        "authorization": f"bearer {jwt_token}",
        "apns-topic": bundle_id,
        "apns-push-type": "alert",
        "apns-priority": "10",
    }
    payload: dict[str, Any] = {"aps": {"alert": {"title": title, "body": body}, "sound": "default"}}
    if data:
        payload.update(data)
    try:
        with httpx.Client(http2=True, timeout=10.0) as client:
            resp = client.post(f"{base_url}/3/device/{device_token}", json=payload, headers=headers)
    except httpx.HTTPError as e:
        logger.warning("APNs request failed: %s", e, exc_info=True)
        return False
    if resp.status_code == 200:
        return True
    logger.warning("APNs returned %s for token %s...: %s", resp.status_code, device_token[:20], resp.text)
    return False


def send_watch_push(
    device_tokens: list[str],
    title: str,
    body: str,
    *,
    watch_id: str | None = None,
    data: dict[str, Any] | None = None,
) -> int:
    """Send the same alert to every device of a watch owner. Returns count of successful sends."""
    extra = dict(data or {})
    if watch_id:
        extra["watch_id"] = watch_id
    sent = 0
    for token in device_tokens:
        if send_apns(token, title, body, data=extra):
            sent += 1
    return sent
