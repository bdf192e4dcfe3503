"""
Bearer token management for the registry API.

Docker Hub requires a bearer token from auth.docker.io before the registry
API answers tag-list and manifest requests. Tokens are short lived, so the
manager hands out the current one until it falls inside the safety margin
and then replaces it with a freshly issued one.
"""

import asyncio
import logging
import re
from datetime import datetime, timezone
from typing import Optional

import aiohttp

from registry.types import Token

logger = logging.getLogger(__name__)

# Docker registry token protocol: clients should assume 60 seconds when expires_in is omitted
DEFAULT_EXPIRES_IN = 60

_FRACTION_PATTERN = re.compile(r'\.(\d+)')


class TokenError(RuntimeError):
    """Raised when the auth service cannot issue a token."""
    pass


def parse_issued_at(value: Optional[str]) -> datetime:
    """
    Parse the issued_at field of a token response.

    The auth service sends RFC 3339 timestamps with a trailing 'Z' and up to
    nanosecond precision; datetime only keeps microseconds. Missing or
    unparseable values fall back to the local clock.
    """
    if not value:
        return datetime.now(timezone.utc)

    text = value.strip().replace('Z', '+00:00')
    text = _FRACTION_PATTERN.sub(lambda m: '.' + m.group(1)[:6].ljust(6, '0'), text, count=1)
    try:
        issued_at = datetime.fromisoformat(text)
    except ValueError:
        logger.warning(f"Unparseable token issued_at {value!r}, using local time")
        return datetime.now(timezone.utc)

    if issued_at.tzinfo is None:
        issued_at = issued_at.replace(tzinfo=timezone.utc)
    return issued_at


def token_from_response(data: dict) -> Token:
    """Build a Token from the auth service JSON body."""
    access_token = data.get("access_token") or data.get("token")
    if not access_token:
        raise TokenError("Token response contained no token")

    try:
        expires_in = int(data.get("expires_in") or DEFAULT_EXPIRES_IN)
    except (TypeError, ValueError):
        expires_in = DEFAULT_EXPIRES_IN

    return Token(
        access_token=access_token,
        issued_at=parse_issued_at(data.get("issued_at")),
        expires_in=expires_in,
    )


class TokenManager:
    """
    Hands out a valid bearer token for one repository scope.

    Refresh is serialized by an asyncio.Lock: the first caller that finds the
    token stale issues the request while later callers wait and then reuse
    the new token instead of requesting their own.
    """

    def __init__(
        self,
        auth_url: str,
        service: str,
        repository: str,
        safety_margin: int = 30,
        timeout: float = 10,
    ):
        self.auth_url = auth_url
        self.service = service
        self.scope = f"repository:{repository}:pull"
        self.safety_margin = safety_margin
        self.timeout = timeout
        self._token: Optional[Token] = None
        self._lock = asyncio.Lock()

    @property
    def current(self) -> Optional[Token]:
        return self._token

    async def ensure_valid(self) -> Token:
        """
        Return a token that is not within the safety margin of expiry.

        Raises:
            TokenError: If a new token was needed and could not be issued
        """
        token = self._token
        if token is not None and token.is_valid(self.safety_margin):
            return token

        async with self._lock:
            # Another caller may have refreshed while we waited
            token = self._token
            if token is not None and token.is_valid(self.safety_margin):
                return token

            token = await self._issue_token()
            self._token = token
            logger.info(f"Created auth token (expires_in={token.expires_in}, issued_at={token.issued_at.isoformat()})")
            return token

    async def _issue_token(self) -> Token:
        """Request a new token from the auth service. One attempt, no retry."""
        params = {"service": self.service, "scope": self.scope}
        try:
            async with aiohttp.ClientSession() as session:
                async with session.get(
                    self.auth_url,
                    params=params,
                    timeout=aiohttp.ClientTimeout(total=self.timeout)
                ) as response:
                    if response.status != 200:
                        response_text = await response.text()
                        raise TokenError(
                            f"Token request to {self.auth_url} failed with status {response.status}: {response_text[:200]}"
                        )
                    data = await response.json(content_type=None)
        except asyncio.TimeoutError:
            raise TokenError(f"Timeout fetching token from {self.auth_url}")
        except aiohttp.ClientError as e:
            raise TokenError(f"Error fetching token from {self.auth_url}: {e}")

        if not isinstance(data, dict):
            raise TokenError(f"Token endpoint {self.auth_url} returned unexpected payload")
        return token_from_response(data)
