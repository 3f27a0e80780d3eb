"""Azure session context.

Resolves the active subscription (id and display name) and the credential
used by the management clients.

Subscription ID priority:
1. Explicit argument
2. AZURE_SUBSCRIPTION_ID environment variable
3. Azure CLI (az account show)

Credentials are never stored; DefaultAzureCredential delegates to the
environment, managed identity or the Azure CLI token cache.
"""

import json
import logging
import os
import subprocess
from dataclasses import dataclass
from typing import Any

from azure.core.credentials import TokenCredential
from azure.core.exceptions import AzureError
from azure.identity import DefaultAzureCredential
from azure.mgmt.resource import SubscriptionClient

from azvmnew.azure_clients import ComputeClient, StorageAccountsClient

logger = logging.getLogger(__name__)


class SessionContextError(Exception):
    """Raised when the Azure session cannot be resolved."""

    pass


def _az_account_show() -> dict[str, Any]:
    try:
        result = subprocess.run(
            ["az", "account", "show", "--output", "json"],
            capture_output=True,
            text=True,
            timeout=10,
            check=True,
        )
        return json.loads(result.stdout)
    except FileNotFoundError as e:
        raise SessionContextError("Azure CLI not found. Install it or set AZURE_SUBSCRIPTION_ID") from e
    except subprocess.TimeoutExpired as e:
        raise SessionContextError("Azure CLI command timed out") from e
    except subprocess.CalledProcessError as e:
        raise SessionContextError(
            f"Failed to get current subscription. Please run: az login ({e.stderr.strip()})"
        ) from e
    except json.JSONDecodeError as e:
        raise SessionContextError(f"Failed to parse Azure CLI output: {e}") from e


@dataclass
class SessionContext:
    """Active subscription and credential."""

    subscription_id: str
    subscription_name: str | None
    credential: TokenCredential

    def __repr__(self) -> str:
        return (
            f"SessionContext(subscription_id={self.subscription_id!r}, "
            f"subscription_name={self.subscription_name!r})"
        )

    @classmethod
    def resolve(
        cls,
        subscription_id: str | None = None,
        credential: TokenCredential | None = None,
    ) -> "SessionContext":
        """Resolve the session context.

        Args:
            subscription_id: Subscription ID (optional)
            credential: Credential to use (defaults to DefaultAzureCredential)

        Returns:
            SessionContext

        Raises:
            SessionContextError: If no subscription can be determined
        """
        credential = credential or DefaultAzureCredential()
        subscription_id = subscription_id or os.environ.get("AZURE_SUBSCRIPTION_ID")

        if not subscription_id:
            account = _az_account_show()
            logger.debug("Using subscription from Azure CLI")
            return cls(
                subscription_id=account["id"],
                subscription_name=account.get("name"),
                credential=credential,
            )

        return cls(
            subscription_id=subscription_id,
            subscription_name=cls._lookup_subscription_name(subscription_id, credential),
            credential=credential,
        )

    @staticmethod
    def _lookup_subscription_name(subscription_id: str, credential: TokenCredential) -> str | None:
        try:
            with SubscriptionClient(credential) as client:
                return client.subscriptions.get(subscription_id).display_name
        except AzureError as e:
            logger.debug(f"Subscription lookup failed, falling back to Azure CLI: {e}")

        try:
            account = _az_account_show()
        except SessionContextError as e:
            logger.warning(f"Could not determine subscription name: {e}")
            return None
        if account.get("id") == subscription_id:
            return account.get("name")
        return None

    def storage_client(self) -> StorageAccountsClient:
        return StorageAccountsClient.from_credential(self.credential, self.subscription_id)

    def compute_client(self) -> ComputeClient:
        return ComputeClient.from_credential(self.credential, self.subscription_id)


__all__ = ["SessionContext", "SessionContextError"]
