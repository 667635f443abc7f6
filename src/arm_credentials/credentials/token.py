"""Canonical token record shared by every credential kind."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Mapping

from arm_credentials.utils.time import as_utc, from_epoch_seconds, utc_now

logger = logging.getLogger(__name__)

# snake_case (OAuth / managed identity) and camelCase (CLI) spellings.
_FIELD_ALIASES: dict[str, tuple[str, ...]] = {
    "access_token": ("access_token", "accessToken"),
    "token_type": ("token_type", "tokenType"),
    "expires_on": ("expires_on", "expiresOn"),
    "expires_in": ("expires_in", "expiresIn"),
    "refresh_token": ("refresh_token", "refreshToken"),
    "resource": ("resource",),
    "user_id": ("userId", "user_id"),
    "tenant_id": ("tenantId", "tenant_id", "tenant"),
}

_DATE_FORMATS = (
    "%m/%d/%Y %H:%M:%S %z",
    "%m/%d/%Y %I:%M:%S %p %z",
    "%Y-%m-%d %H:%M:%S.%f",
    "%Y-%m-%d %H:%M:%S",
)

_USER_ID_CLAIMS = ("upn", "unique_name", "email", "sub")


def parse_expires_on(value: object) -> datetime | None:
    """Parse an expiry given as epoch seconds or as a date string.

    Returns ``None`` when the value cannot be interpreted.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return as_utc(value)
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return from_epoch_seconds(float(value))
    text = str(value).strip()
    if text.isdigit():
        return from_epoch_seconds(int(text))
    for fmt in _DATE_FORMATS:
        try:
            return as_utc(datetime.strptime(text, fmt))
        except ValueError:
            continue
    try:
        return as_utc(datetime.fromisoformat(text))
    except ValueError:
        logger.debug("Unrecognised token expiry value: %r", text)
        return None


def _int_or_none(value: object) -> int | None:
    if value is None or value == "":
        return None
    try:
        return int(str(value))
    except ValueError:
        return None


def decode_id_token_claims(id_token: str) -> dict[str, Any]:
    """Read the claims of an ``id_token`` without verifying its signature.

    The token comes straight from the token endpoint over TLS; it is only used
    to learn which user the access token belongs to.
    """
    import jwt

    try:
        claims = jwt.decode(id_token, options={"verify_signature": False})
    except jwt.PyJWTError as exc:
        logger.debug("Could not decode id_token: %s", exc)
        return {}
    return claims if isinstance(claims, dict) else {}


@dataclass(frozen=True)
class AccessToken:
    """Scope-style token: the bare token string and its expiry in epoch ms."""

    token: str
    expires_on_timestamp: int | None

    def __repr__(self) -> str:
        return f"AccessToken(token=***, expires_on_timestamp={self.expires_on_timestamp})"


@dataclass(frozen=True)
class TokenResponse:
    """An issued token, normalised from any of the supported wire shapes."""

    token_type: str
    access_token: str
    expires_on: datetime | None = None
    expires_in: int | None = None
    resource: str | None = None
    refresh_token: str | None = field(default=None, repr=False)
    user_id: str | None = None
    tenant_id: str | None = None
    extra: dict[str, Any] = field(default_factory=dict, repr=False)

    def __repr__(self) -> str:
        expires = self.expires_on.isoformat() if self.expires_on else None
        return (
            f"TokenResponse(token_type={self.token_type!r}, access_token=***, "
            f"expires_on={expires}, user_id={self.user_id!r})"
        )

    @property
    def authorization_value(self) -> str:
        return f"{self.token_type} {self.access_token}"

    def is_expiring_soon(self, buffer_seconds: int) -> bool:
        if self.expires_on is None:
            return False
        return self.expires_on <= utc_now() + timedelta(seconds=buffer_seconds)

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "TokenResponse":
        """Normalise a raw JSON token payload.

        Missing ``token_type``/``access_token`` produce empty strings; callers
        that require them validate afterwards.
        """
        values: dict[str, Any] = {}
        consumed: set[str] = set()
        for name, aliases in _FIELD_ALIASES.items():
            for alias in aliases:
                if alias in payload:
                    consumed.add(alias)
                    if name not in values:
                        values[name] = payload[alias]

        expires_in = _int_or_none(values.get("expires_in"))
        expires_on = parse_expires_on(values.get("expires_on"))
        if expires_on is None and expires_in is not None:
            expires_on = utc_now() + timedelta(seconds=expires_in)

        user_id = values.get("user_id")
        tenant_id = values.get("tenant_id")
        id_token = payload.get("id_token")
        if isinstance(id_token, str) and id_token:
            claims = decode_id_token_claims(id_token)
            if user_id is None:
                user_id = next((claims[c] for c in _USER_ID_CLAIMS if claims.get(c)), None)
            if tenant_id is None:
                tenant_id = claims.get("tid")

        extra = {k: v for k, v in payload.items() if k not in consumed}
        return cls(
            token_type=str(values.get("token_type") or ""),
            access_token=str(values.get("access_token") or ""),
            expires_on=expires_on,
            expires_in=expires_in,
            resource=values.get("resource"),
            refresh_token=values.get("refresh_token") or None,
            user_id=str(user_id) if user_id is not None else None,
            tenant_id=str(tenant_id) if tenant_id is not None else None,
            extra=extra,
        )

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "tokenType": self.token_type,
            "accessToken": self.access_token,
            "expiresOn": self.expires_on,
        }
        optional = {
            "expiresIn": self.expires_in,
            "resource": self.resource,
            "refreshToken": self.refresh_token,
            "userId": self.user_id,
            "tenantId": self.tenant_id,
        }
        data.update({k: v for k, v in optional.items() if v is not None})
        return data

    def to_access_token(self) -> AccessToken:
        timestamp = int(self.expires_on.timestamp() * 1000) if self.expires_on else None
        return AccessToken(token=self.access_token, expires_on_timestamp=timestamp)
