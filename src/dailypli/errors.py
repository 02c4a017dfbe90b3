"""
errors.py

Error taxonomy shared by the gateway, the stages and the runner.

Fatal errors propagate to the runner and decide the exit status.
PartialApplyWarning is never raised past the reconciler; it is recorded
on the report instead.
"""

from __future__ import annotations


class DailyPliError(Exception):
    """Base exception for DailyPli."""


class ConfigurationError(DailyPliError):
    """Missing or malformed required setting."""


# ----------------------------
# Auth
# ----------------------------


class AuthError(DailyPliError):
    """Credential is missing, invalid or could not be refreshed."""


class Unauthorized(AuthError):
    """HTTP 401 that survived every retry."""


# ----------------------------
# Quota / lookup
# ----------------------------


class QuotaExceededError(DailyPliError):
    """API quota exhausted for the current quota window."""


class NotFoundError(DailyPliError):
    """Channel, playlist or playlist item does not exist."""


class NotFound(NotFoundError):
    """HTTP 404 from the API."""


# ----------------------------
# Transient / permanent request failures
# ----------------------------


class TransientNetworkError(DailyPliError):
    """Retrying may succeed."""


class RateLimited(TransientNetworkError):
    """HTTP 429 or a rate-limit reason on 403."""


class TransientServerError(TransientNetworkError):
    """HTTP 5xx or a network-level failure."""


class PermanentRequestError(DailyPliError):
    """Malformed or forbidden request; retrying is pointless."""


# ----------------------------
# Per-item reconciliation failures
# ----------------------------


class PartialApplyWarning(DailyPliError):
    """A single insert/delete/update failed; the next run closes the gap."""

    def __init__(self, action: str, target: str, cause: BaseException | None = None):
        self.action = action
        self.target = target
        self.cause = cause
        detail = f": {cause}" if cause is not None else ""
        super().__init__(f"{action} {target} failed{detail}")


GatewayError = (
    AuthError,
    QuotaExceededError,
    NotFoundError,
    TransientNetworkError,
    PermanentRequestError,
)


__all__ = [
    "DailyPliError",
    "ConfigurationError",
    "AuthError",
    "Unauthorized",
    "QuotaExceededError",
    "NotFoundError",
    "NotFound",
    "TransientNetworkError",
    "RateLimited",
    "TransientServerError",
    "PermanentRequestError",
    "PartialApplyWarning",
    "GatewayError",
]
