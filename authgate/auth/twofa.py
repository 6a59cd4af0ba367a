"""
Second-factor providers.

A provider enrolls TOTP factors for users and checks one-time codes against
them. Two implementations:

- TwilioVerifyProvider: factors live at Twilio Verify (v2 REST API).
- LocalTOTPProvider: factors live in the service's FactorStore (pyotp).

Both return typed results; transport failures raise ProviderError.
"""
import logging
from typing import Dict, Optional, Protocol

import requests

from .errors import ProviderError
from .mfa import (
    FactorStore,
    generate_totp_secret,
    get_totp_provisioning_uri,
    new_factor_handle,
    verify_totp,
)
from .types import Enrollment, FactorStatus
from ..utils.config import TwoFactorConfig
from ..utils.secrets import mask_secret

logger = logging.getLogger(__name__)


class TwoFactorProvider(Protocol):
    def create(self, user_id: str) -> Enrollment:
        """Create a new factor for the user."""
        ...

    def verify(self, user_id: str, code: str, handle: str) -> FactorStatus:
        """Confirm a freshly created factor with its first code."""
        ...

    def check(self, user_id: str, code: str, handle: str) -> FactorStatus:
        """Challenge a confirmed factor with a code."""
        ...


class TwilioVerifyProvider:
    """
    Twilio Verify TOTP factors.

    Usage:
        provider = TwilioVerifyProvider(settings.twofa)
        enrollment = provider.create(user.id)
        status = provider.check(user.id, "123456", enrollment.handle)
    """

    BASE_URL = "https://verify.twilio.com/v2"

    def __init__(self, config: TwoFactorConfig, session: Optional[requests.Session] = None):
        if not config.service_sid:
            raise ValueError("Twilio Verify service SID is required")
        self.config = config
        self.session = session or requests.Session()
        self.session.auth = (config.account_sid, config.auth_token)
        logger.info(f"Twilio Verify provider ready (account {mask_secret(config.account_sid)})")

    def _entity_url(self, user_id: str) -> str:
        return f"{self.BASE_URL}/Services/{self.config.service_sid}/Entities/{user_id}"

    def _post(self, url: str, data: Dict[str, str]) -> Dict:
        try:
            response = self.session.post(url, data=data, timeout=self.config.timeout)
            response.raise_for_status()
            return response.json()
        except requests.exceptions.RequestException as e:
            logger.error(f"Twilio Verify request failed: {e}")
            raise ProviderError(f"2FA provider request failed: {e}") from e
        except ValueError as e:
            raise ProviderError("2FA provider returned an invalid response") from e

    def _provisioning_url(self, binding: Dict) -> str:
        secret = binding.get("secret")
        if not isinstance(secret, str) or not secret:
            raise ProviderError("error during the 2FA creation")
        if self.config.qr_url_template:
            return self.config.qr_url_template.format(secret=secret)
        uri = binding.get("uri")
        if isinstance(uri, str) and uri:
            return uri
        return get_totp_provisioning_uri(secret, self.config.friendly_name, self.config.friendly_name)

    def create(self, user_id: str) -> Enrollment:
        body = self._post(
            f"{self._entity_url(user_id)}/Factors",
            {"FriendlyName": self.config.friendly_name, "FactorType": "totp"},
        )

        binding = body.get("binding")
        handle = body.get("sid")
        if not isinstance(binding, dict) or not handle:
            raise ProviderError("error during the 2FA creation")

        return Enrollment(url=self._provisioning_url(binding), handle=handle)

    def verify(self, user_id: str, code: str, handle: str) -> FactorStatus:
        body = self._post(
            f"{self._entity_url(user_id)}/Factors/{handle}",
            {"AuthPayload": code},
        )
        if body.get("status") == "verified":
            return FactorStatus.APPROVED
        return FactorStatus.REJECTED

    def check(self, user_id: str, code: str, handle: str) -> FactorStatus:
        body = self._post(
            f"{self._entity_url(user_id)}/Challenges",
            {"AuthPayload": code, "FactorSid": handle},
        )
        status = body.get("status")
        logger.debug(f"Twilio challenge status: {status}")
        if status == "approved":
            return FactorStatus.APPROVED
        if status == "pending":
            return FactorStatus.PENDING
        return FactorStatus.REJECTED


class LocalTOTPProvider:
    """TOTP factors kept in a FactorStore and checked with pyotp."""

    def __init__(self, config: TwoFactorConfig, store: Optional[FactorStore] = None):
        self.config = config
        self.store = store or FactorStore()

    def create(self, user_id: str) -> Enrollment:
        secret = generate_totp_secret()
        handle = new_factor_handle()
        self.store.save(handle, user_id, secret)

        if self.config.qr_url_template:
            url = self.config.qr_url_template.format(secret=secret)
        else:
            url = get_totp_provisioning_uri(secret, user_id, self.config.friendly_name)
        return Enrollment(url=url, handle=handle)

    def _matches(self, user_id: str, code: str, handle: str) -> FactorStatus:
        factor = self.store.load(handle)
        if factor is None or factor[0] != user_id:
            return FactorStatus.REJECTED
        return FactorStatus.APPROVED if verify_totp(factor[1], code) else FactorStatus.REJECTED

    def verify(self, user_id: str, code: str, handle: str) -> FactorStatus:
        return self._matches(user_id, code, handle)

    def check(self, user_id: str, code: str, handle: str) -> FactorStatus:
        return self._matches(user_id, code, handle)


def build_provider(config: TwoFactorConfig, store: Optional[FactorStore] = None) -> TwoFactorProvider:
    """Instantiate the provider named by config.provider."""
    if config.provider == "twilio":
        return TwilioVerifyProvider(config)
    if config.provider == "local":
        return LocalTOTPProvider(config, store)
    raise ValueError(f"Unknown 2FA provider: {config.provider}")
