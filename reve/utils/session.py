from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import jwt

from .errors import AuthenticationError

logger = logging.getLogger("reve.session")

_BEARER_RE = re.compile(r"Bearer\s+(.+)")


def parse_jwt(token: str) -> Dict[str, Any]:
    """Decode the JWT payload without verifying it. Malformed tokens yield ``{}``."""
    try:
        payload = jwt.decode(token, options={"verify_signature": False})
    except jwt.PyJWTError as exc:
        logger.debug("Could not decode session token: %s", exc)
        return {}
    return payload if isinstance(payload, dict) else {}


@dataclass(slots=True)
class ReveSession:
    """In-memory credentials of one client instance.

    Only the 401 handler of the HTTP client mutates it (``invalidate``).
    """

    authorization: str
    cookie: str
    token: Optional[str] = None
    user_id: Optional[str] = None
    claims: Dict[str, Any] = field(default_factory=dict, repr=False)

    @classmethod
    def from_credentials(cls, authorization: Optional[str], cookie: Optional[str]) -> "ReveSession":
        if not authorization or not cookie:
            raise AuthenticationError("Authorization header and cookie are required")

        session = cls(authorization=authorization, cookie=cookie)
        match = _BEARER_RE.match(authorization.strip())
        if match:
            session.token = match.group(1).strip()
            session.claims = parse_jwt(session.token)
            sub = session.claims.get("sub")
            session.user_id = str(sub) if sub is not None else None
        return session

    @property
    def has_token(self) -> bool:
        return self.token is not None

    def invalidate(self) -> None:
        logger.warning("Session token rejected by upstream, clearing cached token")
        self.token = None

    def auth_headers(self) -> Dict[str, str]:
        return {"authorization": self.authorization, "cookie": self.cookie}
