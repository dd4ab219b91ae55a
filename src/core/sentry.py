"""
Sentry Integration - Error Tracking & Monitoring

Only unexpected failures reach Sentry: business rejections (4xx) are
dropped and party details (IBAN, account holder, customer phone) are
masked before an event leaves the process.
"""
import sentry_sdk
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration

from src.core.config import settings
from src.core.logging import get_logger

logger = get_logger(__name__)


def init_sentry() -> None:
    """
    Initialize Sentry SDK.

    Call this in application startup.
    """
    if not settings.sentry_dsn:
        logger.info("Sentry DSN not configured, skipping initialization")
        return

    sentry_sdk.init(
        dsn=settings.sentry_dsn,
        environment=settings.environment,
        release=f"cagri-backend@{settings.app_version}",

        # Performance monitoring
        traces_sample_rate=settings.sentry_traces_sample_rate if settings.environment == "production" else 1.0,

        integrations=[
            FastApiIntegration(transaction_style="endpoint"),
            SqlalchemyIntegration(),
        ],

        send_default_pii=False,

        before_send=_before_send,
    )

    logger.info(
        "Sentry initialized",
        environment=settings.environment,
        dsn_configured=True,
    )


SENSITIVE_HEADERS = ("authorization", "cookie", "x-api-key")

# Job bodies: IBAN disclosure and the customer's phone
SENSITIVE_BODY_FIELDS = frozenset({
    "iban",
    "account_name",
    "buyer_phone",
    "seller_iban",
    "seller_account_name",
    "buyer_iban",
    "buyer_account_name",
})

FILTERED = "[FILTERED]"


def _scrub_body(data):
    """Replace party details in a captured request body, recursing into nested payloads."""
    if isinstance(data, dict):
        return {
            key: FILTERED if key in SENSITIVE_BODY_FIELDS else _scrub_body(value)
            for key, value in data.items()
        }
    if isinstance(data, list):
        return [_scrub_body(item) for item in data]
    return data


def _before_send(event, hint):
    """
    Filter events before sending to Sentry.

    - Drop business rejections (4xx)
    - Mask auth headers
    - Mask IBANs, account holder names and customer phones in request bodies
    """
    exc_info = hint.get("exc_info")
    if "exception" in event and exc_info:
        _, exc_value, _ = exc_info
        status_code = getattr(exc_value, "status_code", None)
        if status_code is not None and 400 <= status_code < 500:
            return None

    request = event.get("request")
    if not request:
        return event

    headers = request.get("headers")
    if headers:
        for header in SENSITIVE_HEADERS:
            if header in headers:
                headers[header] = FILTERED

    if "data" in request:
        request["data"] = _scrub_body(request["data"])

    return event


def set_user(user_id: str) -> None:
    """Set user context for Sentry (id only; emails stay with the identity provider)."""
    sentry_sdk.set_user({"id": user_id})
