from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class AuthHealthStatus(str, Enum):
    OK = "ok"
    OK_API_QUOTA = "ok_api_quota"
    AUTH_INVALID = "auth_invalid"
    FAILED = "failed"


@dataclass(frozen=True)
class AuthHealthResult:
    provider: str
    status: AuthHealthStatus
    message: str

    @property
    def healthy(self) -> bool:
        return self.status in (AuthHealthStatus.OK, AuthHealthStatus.OK_API_QUOTA)
