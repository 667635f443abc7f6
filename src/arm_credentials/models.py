"""Subscription and principal records produced by tenant discovery."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal

UserType = Literal["user", "servicePrincipal"]


@dataclass(frozen=True)
class User:
    name: str
    type: UserType

    def to_dict(self) -> dict[str, str]:
        return {"name": self.name, "type": self.type}


@dataclass(frozen=True)
class SubscriptionInfo:
    """A subscription visible to the authenticated principal.

    ``extra`` keeps every field of the upstream record that has no dedicated
    attribute (``state``, ``authorizationSource``, ``isDefault`` ...).
    """

    tenant_id: str
    user: User
    environment_name: str
    name: str
    id: str
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        data = dict(self.extra)
        data.update(
            {
                "tenantId": self.tenant_id,
                "user": self.user.to_dict(),
                "environmentName": self.environment_name,
                "name": self.name,
                "id": self.id,
            }
        )
        return data

    @classmethod
    def from_cli(cls, payload: dict[str, Any]) -> "SubscriptionInfo":
        """Build from an ``az account show`` / ``az account list`` record."""
        data = dict(payload)
        user = data.pop("user", None) or {}
        environment = data.pop("environmentName", None) or data.pop("cloudName", "")
        data.pop("cloudName", None)
        return cls(
            tenant_id=str(data.pop("tenantId", "")),
            user=User(name=str(user.get("name", "")), type=user.get("type", "user")),
            environment_name=str(environment),
            name=str(data.pop("name", "")),
            id=str(data.pop("id", "")),
            extra=data,
        )
