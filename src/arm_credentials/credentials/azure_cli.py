"""Credentials borrowed from a signed-in ``az`` command line session.

Nothing is stored here: every token comes from ``az account get-access-token``
and the CLI keeps its own cache under ``~/.azure``.
"""

from __future__ import annotations

import asyncio
import json
import logging
import subprocess
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any

from arm_credentials.credentials.token import TokenResponse, parse_expires_on
from arm_credentials.exceptions import AzureCliError
from arm_credentials.models import SubscriptionInfo
from arm_credentials.signing import BearerTokenSigner
from arm_credentials.utils.time import utc_now

logger = logging.getLogger(__name__)

AZ_EXECUTABLE = "az"
AZ_TIMEOUT_SECONDS = 30
TOKEN_RENEWAL_MARGIN_SECONDS = 270


@dataclass(frozen=True)
class CliAccessToken:
    access_token: str
    expires_on: datetime | None
    subscription: str
    tenant: str
    token_type: str

    def __repr__(self) -> str:
        expires = self.expires_on.isoformat() if self.expires_on else None
        return (
            f"CliAccessToken(access_token=***, expires_on={expires}, "
            f"subscription={self.subscription!r}, tenant={self.tenant!r})"
        )

    @classmethod
    def from_cli(cls, payload: dict[str, Any]) -> "CliAccessToken":
        # Newer CLI versions add an epoch ``expires_on`` next to the local-time string.
        expires_on = parse_expires_on(payload.get("expires_on")) or parse_expires_on(
            payload.get("expiresOn")
        )
        return cls(
            access_token=str(payload.get("accessToken", "")),
            expires_on=expires_on,
            subscription=str(payload.get("subscription", "")),
            tenant=str(payload.get("tenant", "")),
            token_type=str(payload.get("tokenType", "Bearer")),
        )


def _run_az_sync(args: list[str], executable: str, timeout: int) -> Any:
    cmd = [executable, *args, "--output", "json"]
    try:
        result = subprocess.run(
            cmd,
            check=False,
            capture_output=True,
            text=True,
            timeout=timeout,
        )
    except FileNotFoundError as exc:
        raise AzureCliError(
            f"Azure CLI executable '{executable}' was not found. Install it and run 'az login'."
        ) from exc
    except subprocess.TimeoutExpired as exc:
        raise AzureCliError(f"az {' '.join(args[:2])} timed out after {timeout}s") from exc

    if result.returncode != 0:
        stderr = (result.stderr or "").strip()
        # Only the subcommand is logged; arguments may name subscriptions.
        logger.warning("az %s failed (exit %s)", " ".join(args[:2]), result.returncode)
        raise AzureCliError(stderr or f"az exited with {result.returncode}", stderr=stderr)

    output = (result.stdout or "").strip()
    if not output:
        return None
    try:
        return json.loads(output)
    except json.JSONDecodeError as exc:
        raise AzureCliError(f"az {' '.join(args[:2])} returned invalid JSON") from exc


async def run_az(
    args: list[str],
    *,
    executable: str = AZ_EXECUTABLE,
    timeout: int = AZ_TIMEOUT_SECONDS,
) -> Any:
    """Run ``az <args> --output json`` off the event loop and parse stdout."""
    return await asyncio.to_thread(_run_az_sync, args, executable, timeout)


class AzureCliCredentials(BearerTokenSigner):
    """Tokens for the subscription selected in ``subscription_info``.

    The token is re-read from the CLI when it is about to expire or when a
    different subscription has been selected.
    """

    def __init__(
        self,
        subscription_info: SubscriptionInfo,
        token_info: CliAccessToken,
        *,
        executable: str = AZ_EXECUTABLE,
        timeout: int = AZ_TIMEOUT_SECONDS,
    ) -> None:
        self.subscription_info = subscription_info
        self.token_info = token_info
        self._executable = executable
        self._timeout = timeout

    def __repr__(self) -> str:
        return f"AzureCliCredentials(subscription={self.subscription_info.id!r})"

    async def get_token(self) -> TokenResponse:
        """Return the CLI token, refreshing it when stale or for another subscription.

        Raises:
            AzureCliError: The CLI could not produce a fresh token.
        """
        if self._has_token_expired() or self._has_subscription_changed():
            try:
                self.token_info = await self.get_access_token(
                    self.subscription_info.id,
                    executable=self._executable,
                    timeout=self._timeout,
                )
            except AzureCliError as exc:
                raise AzureCliError(
                    "An error occurred while refreshing the new access token: "
                    f"{exc.stderr or exc}",
                    stderr=exc.stderr,
                ) from exc
        return TokenResponse(
            token_type=self.token_info.token_type,
            access_token=self.token_info.access_token,
            expires_on=self.token_info.expires_on,
            tenant_id=self.token_info.tenant,
        )

    async def get_token_for_resource(
        self, resource: str, authority: str | None = None
    ) -> TokenResponse:
        info = await self.get_access_token(
            self.subscription_info.id,
            resource=resource,
            executable=self._executable,
            timeout=self._timeout,
        )
        return TokenResponse(
            token_type=info.token_type,
            access_token=info.access_token,
            expires_on=info.expires_on,
            resource=resource,
            tenant_id=info.tenant,
        )

    def _has_token_expired(self) -> bool:
        expires_on = self.token_info.expires_on
        if expires_on is None:
            return True
        return expires_on - utc_now() <= timedelta(seconds=TOKEN_RENEWAL_MARGIN_SECONDS)

    def _has_subscription_changed(self) -> bool:
        return self.subscription_info.id != self.token_info.subscription

    @staticmethod
    async def get_access_token(
        subscription_id_or_name: str | None = None,
        resource: str | None = None,
        *,
        executable: str = AZ_EXECUTABLE,
        timeout: int = AZ_TIMEOUT_SECONDS,
    ) -> CliAccessToken:
        args = ["account", "get-access-token"]
        if subscription_id_or_name:
            args += ["--subscription", subscription_id_or_name]
        if resource:
            args += ["--resource", resource]
        try:
            result = await run_az(args, executable=executable, timeout=timeout)
        except AzureCliError as exc:
            raise AzureCliError(
                f"An error occurred while getting credentials from Azure CLI: {exc}",
                stderr=exc.stderr,
            ) from exc
        if not isinstance(result, dict):
            raise AzureCliError("Azure CLI returned no access token.")
        return CliAccessToken.from_cli(result)

    @staticmethod
    async def get_default_subscription(
        *, executable: str = AZ_EXECUTABLE, timeout: int = AZ_TIMEOUT_SECONDS
    ) -> SubscriptionInfo:
        try:
            result = await run_az(["account", "show"], executable=executable, timeout=timeout)
        except AzureCliError as exc:
            raise AzureCliError(
                "An error occurred while getting information about the current "
                f"subscription from Azure CLI: {exc}",
                stderr=exc.stderr,
            ) from exc
        if not isinstance(result, dict):
            raise AzureCliError("Azure CLI returned no current subscription.")
        return SubscriptionInfo.from_cli(result)

    @staticmethod
    async def set_default_subscription(
        subscription_id_or_name: str,
        *,
        executable: str = AZ_EXECUTABLE,
        timeout: int = AZ_TIMEOUT_SECONDS,
    ) -> None:
        try:
            await run_az(
                ["account", "set", "--subscription", subscription_id_or_name],
                executable=executable,
                timeout=timeout,
            )
        except AzureCliError as exc:
            raise AzureCliError(
                "An error occurred while setting the current subscription from "
                f"Azure CLI: {exc}",
                stderr=exc.stderr,
            ) from exc

    @staticmethod
    async def list_all_subscriptions(
        all: bool = False,
        refresh: bool = False,
        *,
        executable: str = AZ_EXECUTABLE,
        timeout: int = AZ_TIMEOUT_SECONDS,
    ) -> list[SubscriptionInfo]:
        args = ["account", "list"]
        if all:
            args.append("--all")
        if refresh:
            args.append("--refresh")
        try:
            result = await run_az(args, executable=executable, timeout=timeout)
        except AzureCliError as exc:
            raise AzureCliError(
                "An error occurred while getting a list of all the subscription from "
                f"Azure CLI: {exc}",
                stderr=exc.stderr,
            ) from exc
        return [SubscriptionInfo.from_cli(item) for item in result or []]

    @classmethod
    async def create(
        cls, *, executable: str = AZ_EXECUTABLE, timeout: int = AZ_TIMEOUT_SECONDS
    ) -> "AzureCliCredentials":
        subscription_info, token_info = await asyncio.gather(
            cls.get_default_subscription(executable=executable, timeout=timeout),
            cls.get_access_token(executable=executable, timeout=timeout),
        )
        return cls(subscription_info, token_info, executable=executable, timeout=timeout)
