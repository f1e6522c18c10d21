# triphub/infrastructure/gateways/identity_provider.py

import logging
import os

import httpx

from triphub.domain.exceptions import AuthorizationError, UpstreamError

logger = logging.getLogger(__name__)


class HttpIdentityProvider:
    """
    Verifies bearer tokens against the identity provider's
    verification endpoint and returns the trusted email claim.
    """

    def __init__(self, verify_url: str | None, timeout: float = 5.0):
        self.verify_url = verify_url
        self.timeout = timeout

    def verify_token(self, token: str) -> str:
        if not self.verify_url:
            raise UpstreamError("Identity provider not configured. Set IDENTITY_VERIFY_URL.")

        try:
            response = httpx.post(
                self.verify_url,
                json={"token": token},
                timeout=self.timeout,
            )
        except httpx.TimeoutException as exc:
            logger.warning("Identity provider timed out")
            raise UpstreamError("Identity provider timeout") from exc
        except httpx.HTTPError as exc:
            logger.warning("Identity provider unreachable: %s", exc)
            raise UpstreamError("Identity provider unavailable") from exc

        if response.status_code in (400, 401, 403):
            raise AuthorizationError("Invalid or expired token")
        if response.status_code != 200:
            logger.error(
                "Identity provider returned unexpected status %s",
                response.status_code,
            )
            raise UpstreamError("Identity provider error")

        email = response.json().get("email")
        if not email:
            raise AuthorizationError("Token carries no email claim")
        return email


def identity_provider_from_env() -> HttpIdentityProvider:
    return HttpIdentityProvider(
        verify_url=os.getenv("IDENTITY_VERIFY_URL"),
        timeout=float(os.getenv("IDENTITY_TIMEOUT_SECONDS", "5")),
    )
