from __future__ import annotations

from dailypli.auth.base import AuthHealthResult, AuthHealthStatus
from dailypli.auth.youtube import YouTubeOAuthProvider

__all__ = [
    "AuthHealthResult",
    "AuthHealthStatus",
    "YouTubeOAuthProvider",
]
