"""Boot diagnostics storage account resolution.

Decides which storage account receives a VM's boot diagnostics, in order:
1. The account holding the VM's OS disk VHD (if its tier is known and not premium)
2. The first account of a known, non-premium tier already in the resource group
3. A new Standard_GRS account with a generated name

Lookup and creation failures never abort VM creation. They are recorded
as notices on the ResolutionResult (and logged as warnings), and the VM
is created without boot diagnostics when no account can be determined.
Failures listing the resource group's accounts are not part of that
contract and propagate to the caller.
"""

import logging
import re
from collections.abc import Callable
from datetime import datetime
from urllib.parse import urlsplit

from azvmnew.azure_clients import StorageAccountNotFoundError, StorageAccountsClient
from azvmnew.models import (
    AccountType,
    Notice,
    NoticeCode,
    ResolutionResult,
    StorageAccountRef,
    VirtualMachineSpec,
)

logger = logging.getLogger(__name__)

MAX_SUBSCRIPTION_NAME_LENGTH = 5
MAX_RESOURCE_GROUP_NAME_LENGTH = 6
MAX_VM_NAME_LENGTH = 4
MAX_NAME_ATTEMPTS = 10
DIAGNOSTICS_ACCOUNT_TYPE = AccountType.STANDARD_GRS

_NON_ALPHANUMERIC = re.compile(r"[^0-9A-Za-z]")


def truncate(value: str | None, max_length: int) -> str:
    """Return value cut to max_length characters (empty string for None)."""
    if not value:
        return ""
    return value[:max_length]


def generate_storage_account_name(
    subscription_name: str | None,
    resource_group: str,
    vm_name: str,
    attempt: int,
    now: datetime,
) -> str:
    """Generate a candidate storage account name.

    Concatenates truncated subscription (5), resource group (6) and VM (4)
    names, the MMddHHmm timestamp and the attempt counter, keeps only
    alphanumerics and lower-cases the result.

    Args:
        subscription_name: Subscription display name
        resource_group: Resource group name
        vm_name: VM name
        attempt: Zero-based attempt counter
        now: Timestamp to embed

    Returns:
        Lowercase alphanumeric candidate name

    Example:
        >>> generate_storage_account_name(
        ...     "Pay-As-You-Go", "my-rg", "web01", 0, datetime(2024, 3, 5, 14, 7)
        ... )
        'payamyrgweb0030514070'
    """
    output = (
        truncate(subscription_name, MAX_SUBSCRIPTION_NAME_LENGTH)
        + truncate(resource_group, MAX_RESOURCE_GROUP_NAME_LENGTH)
        + truncate(vm_name, MAX_VM_NAME_LENGTH)
        + now.strftime("%m%d%H%M")
        + str(attempt)
    )
    return _NON_ALPHANUMERIC.sub("", output).lower()


def get_storage_account_name_from_uri(uri: str | None) -> str | None:
    """Extract the storage account name from a blob URI.

    The account is the first label of the URI host:
    https://mystorage.blob.core.windows.net/vhds/os.vhd -> mystorage

    Returns:
        Account name, or None if the URI has no usable host
    """
    if not uri:
        return None
    try:
        host = urlsplit(uri).hostname
    except ValueError:
        return None
    if not host:
        return None
    name = host.split(".", 1)[0]
    return name or None


class BootDiagnosticsStorageResolver:
    """Resolve the blob endpoint used for a VM's boot diagnostics."""

    def __init__(
        self,
        storage_client: StorageAccountsClient,
        subscription_name: str | None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        """Initialize resolver.

        Args:
            storage_client: Storage accounts client
            subscription_name: Subscription display name, used in generated names
            clock: Source of the local time embedded in generated names
        """
        self._storage = storage_client
        self._subscription_name = subscription_name
        self._clock = clock

    def resolve(
        self, resource_group: str, location: str, vm: VirtualMachineSpec
    ) -> ResolutionResult:
        """Resolve the boot diagnostics blob endpoint for a VM.

        Args:
            resource_group: Resource group the VM is created in
            location: Location for a newly created account
            vm: VM specification

        Returns:
            ResolutionResult with the blob endpoint (None if diagnostics stay
            disabled) and any notices raised

        Raises:
            AzureClientError: If listing the resource group's accounts fails
        """
        result = ResolutionResult()

        account_name = get_storage_account_name_from_uri(vm.os_disk_vhd_uri)
        if account_name:
            endpoint = self._try_os_disk_account(resource_group, account_name, result)
            if endpoint:
                result.blob_endpoint = endpoint
                return result

        existing = self._choose_existing_account(resource_group)
        if existing is not None:
            self._notify(
                result,
                NoticeCode.USING_EXISTING_STORAGE_ACCOUNT,
                f"Using existing storage account {existing.name} for boot diagnostics.",
            )
            result.blob_endpoint = existing.blob_endpoint
            return result

        self._create_account(resource_group, location, vm, result)
        return result

    def _try_os_disk_account(
        self, resource_group: str, account_name: str, result: ResolutionResult
    ) -> str | None:
        try:
            account = self._storage.get_properties(resource_group, account_name)
        except StorageAccountNotFoundError:
            self._notify(
                result,
                NoticeCode.STORAGE_ACCOUNT_NOT_FOUND,
                f"Storage account {account_name} referenced by the OS disk was not found "
                "for boot diagnostics.",
            )
            return None
        except Exception as e:
            self._notify(
                result,
                NoticeCode.STORAGE_ACCOUNT_LOOKUP_FAILED,
                f"Error getting storage account {account_name} for boot diagnostics: {e}",
            )
            return None

        if not account.is_eligible_for_diagnostics:
            logger.debug(
                f"OS disk storage account {account_name} has tier {account.account_type}, skipping"
            )
            return None
        return account.blob_endpoint

    def _choose_existing_account(self, resource_group: str) -> StorageAccountRef | None:
        accounts = self._storage.list_by_resource_group(resource_group)
        return next(
            (account for account in accounts or [] if account.is_eligible_for_diagnostics),
            None,
        )

    def _pick_account_name(self, resource_group: str, vm_name: str) -> str:
        # The last candidate is used even if it was reported unavailable.
        attempt = 0
        while True:
            name = generate_storage_account_name(
                self._subscription_name, resource_group, vm_name, attempt, self._clock()
            )
            attempt += 1
            if attempt >= MAX_NAME_ATTEMPTS:
                return name
            if self._storage.check_name_availability(name):
                return name
            logger.debug(f"Storage account name {name} is taken, retrying")

    def _create_account(
        self,
        resource_group: str,
        location: str,
        vm: VirtualMachineSpec,
        result: ResolutionResult,
    ) -> None:
        account_name = self._pick_account_name(resource_group, vm.name)
        try:
            self._storage.create(resource_group, account_name, DIAGNOSTICS_ACCOUNT_TYPE, location)
            account = self._storage.get_properties(resource_group, account_name)
        except Exception as e:
            self._notify(
                result,
                NoticeCode.STORAGE_ACCOUNT_CREATION_FAILED,
                f"Failed to create storage account for boot diagnostics: {e}",
            )
            return

        self._notify(
            result,
            NoticeCode.CREATED_STORAGE_ACCOUNT,
            f"Creating a new storage account {account_name} for boot diagnostics.",
        )
        result.blob_endpoint = account.blob_endpoint
        result.created_account_name = account_name

    @staticmethod
    def _notify(result: ResolutionResult, code: NoticeCode, message: str) -> None:
        logger.warning(message)
        result.notices.append(Notice(code=code, message=message))


__all__ = [
    "BootDiagnosticsStorageResolver",
    "generate_storage_account_name",
    "get_storage_account_name_from_uri",
    "truncate",
]
