"""Structured logging setup and the authentication audit logger.

Outputs structured logs to stdout using structlog.
- Development: human-readable console renderer with colors
- Testing/CI/production: JSON renderer for machine parsing

Service modules keep using ``logging.getLogger(__name__)``; stdlib records are
routed to stdout at ``settings.log_level``. The audit logger is a structlog
bound logger so every auth decision is emitted as one key-value event.
"""

from __future__ import annotations

import logging
import sys
from typing import Any

import structlog

from canvasvault.core.config import Settings
from canvasvault.core.enums import AuthAction

logger = logging.getLogger(__name__)

_WARNING_ACTIONS = frozenset(
    {
        AuthAction.LOGIN_FAILED,
        AuthAction.TOKEN_EXPIRED,
        AuthAction.TOKEN_INVALID,
        AuthAction.TOKEN_REVOKED,
        AuthAction.USER_NOT_FOUND,
    }
)


def configure_logging(settings: Settings) -> None:
    """Configure stdlib logging and structlog once per process.

    Args:
        settings: Application settings (log level and renderer choice).
    """
    level = logging.getLevelName(settings.log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO

    logging.basicConfig(
        level=level,
        stream=sys.stdout,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]

    use_json = settings.log_json or not settings.is_development
    if use_json:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=True))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
        cache_logger_on_first_use=True,
    )


class AuthAuditLogger:
    """Audit trail for authentication decisions.

    Every verifier outcome (PASS and each REJECT) and every login attempt is
    written as a single structured event. Level depends on the action:
    successes log at info, rejections at warning and unexpected failures at
    error.

    Writing an audit record never raises: a broken log sink must not change
    whether a request is authenticated.

    Example:
        >>> audit = AuthAuditLogger()
        >>> audit.log(
        ...     AuthAction.TOKEN_EXPIRED,
        ...     ip="203.0.113.1",
        ...     user_agent="Mozilla/5.0",
        ...     url="/api/v1/user",
        ...     reason="Signature has expired",
        ... )
    """

    def __init__(self, bound_logger: Any | None = None) -> None:
        self._logger = bound_logger or structlog.get_logger("canvasvault.auth.audit")

    def log(
        self,
        action: AuthAction,
        *,
        ip: str | None = None,
        user_agent: str | None = None,
        url: str | None = None,
        user_id: int | None = None,
        reason: str | None = None,
        **context: Any,
    ) -> None:
        """Write one audit event.

        Args:
            action: Audit action tag.
            ip: Client IP address.
            user_agent: Client User-Agent header.
            url: Requested URL.
            user_id: Authenticated or attempted user id, when known.
            reason: Internal failure detail (never returned to the client).
            **context: Extra key-value context.
        """
        try:
            event = {
                "action": action.value,
                "ip": ip,
                "user_agent": user_agent,
                "url": url,
                "user_id": user_id,
                "reason": reason,
                **context,
            }
            if action == AuthAction.AUTH_ERROR:
                self._logger.error("auth_event", **event)
            elif action in _WARNING_ACTIONS:
                self._logger.warning("auth_event", **event)
            else:
                self._logger.info("auth_event", **event)
        except Exception:  # noqa: BLE001
            # Fall back to stdlib; the audit sink must never fail a request.
            logger.exception("Failed to write auth audit event %s", action.value)
