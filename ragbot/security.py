"""
Webhook authentication for the Telegram endpoint.

Telegram echoes the secret registered with setWebhook in the
X-Telegram-Bot-Api-Secret-Token header; requests without it are rejected.
"""

import hashlib
import hmac
import logging
from typing import Any, Dict

from fastapi import HTTPException, Request

from . import config

logger = logging.getLogger(__name__)

SECRET_HEADER = "X-Telegram-Bot-Api-Secret-Token"


def hash_secret(secret: str) -> str:
    """Create a short SHA-256 fingerprint of a secret for logging (never log the raw value)."""
    return hashlib.sha256(secret.encode()).hexdigest()[:8]


def get_client_ip(request: Request) -> str:
    """Extract real client IP from request, handling proxies and load balancers."""
    forwarded_for = request.headers.get('X-Forwarded-For')
    if forwarded_for:
        return forwarded_for.split(',')[0].strip()

    real_ip = request.headers.get('X-Real-IP')
    if real_ip:
        return real_ip.strip()

    return str(request.client.host) if request.client else "unknown"


def log_security_event(event_type: str, ip_address: str, details: Dict[str, Any], severity: str = "WARNING") -> None:
    log_entry = {"event": event_type, "ip": ip_address, "severity": severity, **details}
    if severity == "ERROR":
        logger.error(f"[SECURITY] {log_entry}")
    elif severity == "INFO":
        logger.info(f"[SECURITY] {log_entry}")
    else:
        logger.warning(f"[SECURITY] {log_entry}")


def validate_telegram_secret(request: Request) -> bool:
    """Check the webhook secret header when a secret is configured.

    Raises:
        HTTPException: 403 if the header is missing or wrong.
    """
    expected = config.TELEGRAM_WEBHOOK_SECRET
    if not expected:
        return True

    client_ip = get_client_ip(request)
    provided = request.headers.get(SECRET_HEADER)
    if not provided or not hmac.compare_digest(provided, expected):
        log_security_event(
            "auth_failure_telegram_secret",
            client_ip,
            {
                "reason": "Missing secret header" if not provided else "Invalid secret header",
                "secret_hash": hash_secret(provided) if provided else None,
                "user_agent": request.headers.get('User-Agent', 'unknown'),
            },
            severity="ERROR",
        )
        raise HTTPException(status_code=403, detail="Forbidden")

    return True
