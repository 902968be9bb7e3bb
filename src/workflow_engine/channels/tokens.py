"""
Short-lived subscription tokens for the status channel.

A token is an HS256 JWT scoped to one channel and a set of topics. The
editor fetches one on demand and asks for a new one once
``needs_refresh`` reports it is about to expire.
"""
from __future__ import annotations

import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Sequence

from jose import ExpiredSignatureError, JWTError, jwt
from pydantic import BaseModel

from workflow_engine.channels.base import STATUS_TOPIC
from workflow_engine.config import Settings, get_settings
from workflow_engine.errors import SubscriptionTokenError

TOKEN_TYPE = "status_subscription"


class SubscriptionToken(BaseModel):
    token: str
    channel: str
    topics: List[str]
    expires_at: datetime


class SubscriptionTokenIssuer:
    """Issues and verifies channel-scoped subscription tokens."""

    def __init__(
        self,
        secret: str,
        ttl_s: int = 300,
        refresh_margin_s: int = 30,
        algorithm: str = "HS256",
    ):
        if not secret:
            raise ValueError("Subscription token secret must not be empty")
        self._secret = secret
        self._ttl = timedelta(seconds=ttl_s)
        self._refresh_margin = timedelta(seconds=refresh_margin_s)
        self._algorithm = algorithm

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "SubscriptionTokenIssuer":
        settings = settings or get_settings()
        return cls(
            secret=settings.status_token_secret.get_secret_value(),
            ttl_s=settings.status_token_ttl_s,
            refresh_margin_s=settings.status_token_refresh_margin_s,
        )

    def issue(
        self,
        channel: str,
        topics: Sequence[str] = (STATUS_TOPIC,),
        now: Optional[datetime] = None,
    ) -> SubscriptionToken:
        """
        Issue a token for ``channel`` limited to ``topics``.

        Args:
            channel: Channel name, e.g. ``execution:<id>``
            topics: Topics the holder may subscribe to
            now: Issue time (defaults to the current UTC time)
        """
        issued_at = now or datetime.now(timezone.utc)
        expires_at = issued_at + self._ttl
        claims = {
            "sub": channel,
            "topics": list(topics),
            "type": TOKEN_TYPE,
            "iat": issued_at,
            "exp": expires_at,
            "jti": secrets.token_hex(8),
        }
        token = jwt.encode(claims, self._secret, algorithm=self._algorithm)
        return SubscriptionToken(
            token=token,
            channel=channel,
            topics=list(topics),
            expires_at=expires_at,
        )

    def verify(self, token: str, channel: str, topic: str = STATUS_TOPIC) -> Dict[str, Any]:
        """
        Check a token grants ``topic`` on ``channel``.

        Returns:
            Decoded claims

        Raises:
            SubscriptionTokenError: If expired, tampered with or out of scope
        """
        try:
            claims = jwt.decode(token, self._secret, algorithms=[self._algorithm])
        except ExpiredSignatureError as e:
            raise SubscriptionTokenError("Subscription token expired") from e
        except JWTError as e:
            raise SubscriptionTokenError(f"Invalid subscription token: {e}") from e

        if claims.get("type") != TOKEN_TYPE:
            raise SubscriptionTokenError("Not a status subscription token")
        if claims.get("sub") != channel:
            raise SubscriptionTokenError(f"Token is not valid for channel {channel}")
        if topic not in (claims.get("topics") or []):
            raise SubscriptionTokenError(f"Token is not valid for topic {topic}")
        return claims

    def needs_refresh(self, token: str, now: Optional[datetime] = None) -> bool:
        """True when the token is unreadable or expires within the refresh margin."""
        try:
            claims = jwt.get_unverified_claims(token)
        except JWTError:
            return True

        exp = claims.get("exp")
        if not isinstance(exp, (int, float)):
            return True
        expires_at = datetime.fromtimestamp(exp, tz=timezone.utc)
        current = now or datetime.now(timezone.utc)
        return expires_at - current <= self._refresh_margin


__all__ = ["SubscriptionToken", "SubscriptionTokenIssuer", "TOKEN_TYPE"]
