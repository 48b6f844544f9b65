import json
import platform
from typing import Sequence

import structlog

from usagesync.config import DEFAULT_SERVICE_NAME, Config
from usagesync.models import Credential
from usagesync.store.base import SecretStore
from usagesync.store.file import FileSecretStore
from usagesync.store.keychain import KeychainSecretStore

logger = structlog.get_logger()


def default_secret_stores(config: "Config") -> "list[SecretStore]":
    """
    returns the backends to query, in order. macOS keeps the entry in
    the login keychain; every platform may have the credentials file.
    """
    stores: "list[SecretStore]" = []
    if platform.system() == "Darwin":
        stores.append(KeychainSecretStore())
    stores.append(FileSecretStore(config.credentials_path))
    return stores


def _epoch_millis(value: "object") -> "int":
    if isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return 0


def decode_credential(raw: "bytes") -> "Credential | None":
    """
    decodes the stored blob. Anything that does not carry a usable
    claudeAiOauth entry is treated as "not logged in".
    """
    try:
        data = json.loads(raw.decode("utf-8"))
    except (ValueError, RecursionError):
        # UnicodeDecodeError and JSONDecodeError are ValueErrors;
        # deeply nested documents exhaust the recursion limit
        return None

    if not isinstance(data, dict):
        return None

    oauth = data.get("claudeAiOauth")
    if not isinstance(oauth, dict):
        return None

    access_token = oauth.get("accessToken")
    if not isinstance(access_token, str) or not access_token:
        return None

    refresh_token = oauth.get("refreshToken")
    expires_at = oauth.get("expiresAt")
    subscription_type = oauth.get("subscriptionType")
    rate_limit_tier = oauth.get("rateLimitTier")

    return Credential(
        access_token=access_token,
        refresh_token=refresh_token if isinstance(refresh_token, str) else "",
        expires_at=_epoch_millis(expires_at),
        subscription_label=(
            subscription_type.title()
            if isinstance(subscription_type, str) and subscription_type
            else None
        ),
        rate_limit_tier=rate_limit_tier if isinstance(rate_limit_tier, str) else None,
    )


class CredentialProvider:
    """
    CredentialProvider looks the OAuth entry up in each secret store
    in turn. The first store that holds bytes decides the outcome,
    and a blob that fails to decode means the same as no entry.
    """

    def __init__(
        self,
        stores: "Sequence[SecretStore]",
        service_name: "str" = DEFAULT_SERVICE_NAME,
    ) -> "None":
        self._stores = list(stores)
        self._service_name = service_name

    def fetch_credential(self) -> "Credential | None":
        for store in self._stores:
            try:
                raw = store.lookup(self._service_name)
            except OSError as e:
                logger.warning(
                    "secret_store_unreadable",
                    store=type(store).__name__,
                    error=str(e),
                )
                continue

            if raw is None:
                continue

            credential = decode_credential(raw)
            if credential is None:
                logger.debug("credential_undecodable", store=type(store).__name__)
            return credential

        logger.debug("credential_not_found", service=self._service_name)
        return None
