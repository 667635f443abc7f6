"""Event Grid domain key credentials."""

from __future__ import annotations

import httpx

from arm_credentials.exceptions import CredentialValidationError

DOMAIN_KEY_HEADER = "aeg-sas-key"


class DomainCredentials:
    """Signs requests with a static Event Grid domain key."""

    def __init__(self, domain_key: str) -> None:
        if not isinstance(domain_key, str) or not domain_key:
            raise CredentialValidationError(
                "domainKey cannot be null or undefined and must be of type string."
            )
        self.domain_key = domain_key

    def __repr__(self) -> str:
        return "DomainCredentials(domain_key=***)"

    async def sign_request(self, request: httpx.Request) -> httpx.Request:
        request.headers[DOMAIN_KEY_HEADER] = self.domain_key
        return request
