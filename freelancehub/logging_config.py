"""Logging helpers for freelancehub.

All modules log through the standard library under the ``freelancehub``
namespace. The helpers below emit one pipe-delimited line per lifecycle
event so transitions can be grepped out of the API logs.
"""

import logging
from typing import Any, Optional

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

_configured = False


def configure_logging(level: str = "INFO") -> None:
    """Attach a stream handler to the root ``freelancehub`` logger once."""
    global _configured
    root = logging.getLogger("freelancehub")
    root.setLevel(level.upper())
    if _configured:
        return
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root.addHandler(handler)
    _configured = True


def get_logger(name: str) -> logging.Logger:
    """Get a logger under the freelancehub namespace."""
    if not name.startswith("freelancehub"):
        name = f"freelancehub.{name}"
    return logging.getLogger(name)


_transition_logger = get_logger("freelancehub.transitions")
_notification_logger = get_logger("freelancehub.notifications")


def log_transition(
    entity: str,
    entity_id: str,
    from_status: Optional[str],
    to_status: str,
    actor_id: Optional[str] = None,
    **extra: Any,
) -> None:
    """Log a status change on a job, application or milestone."""
    parts = [
        f"TRANSITION | {entity}={entity_id}",
        f"{from_status or '-'} -> {to_status}",
        f"actor={actor_id or 'system'}",
    ]
    parts.extend(f"{k}={v}" for k, v in extra.items() if v is not None)
    _transition_logger.info(" | ".join(parts))


def log_notification(recipient_id: str, notification_type: str, job_id: Optional[str] = None) -> None:
    """Log a notification being queued for a user."""
    _notification_logger.info(
        f"NOTIFY | recipient={recipient_id} | type={notification_type} | job={job_id or '-'}"
    )
