"""Sentry wiring for the Atlas API.

Events are tagged with the marketplace storage backend so storage faults
can be grouped per deployment, and investor contact fields are stripped
from request bodies before anything is sent.
"""

import structlog
import sentry_sdk
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration

logger = structlog.get_logger()

_SENSITIVE_HEADERS = {"authorization", "cookie", "x-api-key"}
_INVESTOR_CONTACT_FIELDS = {"investor_name", "investor_email", "investor_phone", "message"}
REDACTED = "[REDACTED]"


def _scrub_investor_contact(event: dict, hint: dict) -> dict:
    """Redact auth headers and investor contact fields from the request."""
    request = event.get("request") or {}
    headers = request.get("headers") or {}
    for header in list(headers):
        if header.lower() in _SENSITIVE_HEADERS:
            headers[header] = REDACTED
    data = request.get("data")
    if isinstance(data, dict):
        for field in _INVESTOR_CONTACT_FIELDS & data.keys():
            data[field] = REDACTED
    return event


def init_sentry(
    dsn: str | None,
    *,
    environment: str = "development",
    release: str | None = None,
    storage_backend: str = "database",
) -> bool:
    """Initialise Sentry. Returns False (and does nothing) without a DSN.

    Call before the FastAPI app is built so the integrations can hook in.
    """
    if not dsn:
        logger.warning("sentry_disabled", reason="SENTRY_DSN not set")
        return False

    traces_sample_rate = 0.1 if environment == "production" else 1.0
    sentry_sdk.init(
        dsn=dsn,
        environment=environment,
        release=release,
        traces_sample_rate=traces_sample_rate,
        integrations=[
            FastApiIntegration(transaction_style="endpoint"),
            SqlalchemyIntegration(),
        ],
        send_default_pii=False,
        before_send=_scrub_investor_contact,
    )
    sentry_sdk.set_tag("marketplace_storage_backend", storage_backend)
    logger.info(
        "sentry_initialized",
        environment=environment,
        storage_backend=storage_backend,
        traces_sample_rate=traces_sample_rate,
    )
    return True
