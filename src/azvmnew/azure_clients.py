"""Azure management client adapters.

Wraps the Azure SDK management clients behind the small set of calls VM
creation needs, translating SDK models to and from azvmnew's dataclasses.

- StorageAccountsClient: get properties, list, check name, create
- ComputeClient: create VM and extension, list extension images

Errors:
    StorageAccountNotFoundError: Storage account does not exist
    AzureClientError: Any other storage service failure

Compute calls raise the SDK's own exceptions; the VM creator decides
which of them are fatal. Both adapters close the underlying SDK client
when used as context managers.
"""

import logging
from typing import Any

import azure.mgmt.compute.models as compute_models
from azure.core.credentials import TokenCredential
from azure.core.exceptions import AzureError, ResourceNotFoundError
from azure.core.polling import LROPoller
from azure.mgmt.compute import ComputeManagementClient
from azure.mgmt.storage import StorageManagementClient
from azure.mgmt.storage.models import (
    Sku,
    StorageAccountCheckNameAvailabilityParameters,
    StorageAccountCreateParameters,
)

from azvmnew.models import (
    AccountType,
    ExtensionSpec,
    StorageAccountRef,
    VMCreationRequest,
)

logger = logging.getLogger(__name__)

STORAGE_ACCOUNT_KIND = "Storage"


class AzureClientError(Exception):
    """Raised when an Azure management call fails."""

    pass


class StorageAccountNotFoundError(AzureClientError):
    """Storage account does not exist in the resource group."""

    pass


def _to_storage_account_ref(account: Any) -> StorageAccountRef:
    sku_name = account.sku.name if account.sku is not None else None
    endpoints = account.primary_endpoints
    return StorageAccountRef(
        name=account.name,
        account_type=AccountType.from_sku_name(sku_name),
        blob_endpoint=endpoints.blob if endpoints is not None else None,
        location=account.location,
    )


class StorageAccountsClient:
    """Storage account operations used for boot diagnostics."""

    def __init__(self, client: StorageManagementClient):
        self._client = client

    @classmethod
    def from_credential(
        cls, credential: TokenCredential, subscription_id: str
    ) -> "StorageAccountsClient":
        return cls(StorageManagementClient(credential, subscription_id))

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "StorageAccountsClient":
        return self

    def __exit__(self, *exc_details) -> None:
        self.close()

    def get_properties(self, resource_group: str, account_name: str) -> StorageAccountRef:
        """Get a storage account.

        Raises:
            StorageAccountNotFoundError: If the account does not exist
            AzureClientError: For other failures
        """
        logger.debug(f"Getting storage account {account_name} in {resource_group}")
        try:
            account = self._client.storage_accounts.get_properties(resource_group, account_name)
        except ResourceNotFoundError as e:
            raise StorageAccountNotFoundError(
                f"Storage account not found: {account_name} in resource group: {resource_group}"
            ) from e
        except AzureError as e:
            raise AzureClientError(
                f"Failed to get storage account {account_name}: {e.message}"
            ) from e
        return _to_storage_account_ref(account)

    def list_by_resource_group(self, resource_group: str) -> list[StorageAccountRef]:
        """List storage accounts in a resource group.

        Raises:
            AzureClientError: If the listing fails
        """
        logger.debug(f"Listing storage accounts in {resource_group}")
        try:
            accounts = self._client.storage_accounts.list_by_resource_group(resource_group)
            return [_to_storage_account_ref(account) for account in accounts]
        except AzureError as e:
            raise AzureClientError(
                f"Failed to list storage accounts in {resource_group}: {e.message}"
            ) from e

    def check_name_availability(self, account_name: str) -> bool:
        """Check whether a storage account name is free.

        Raises:
            AzureClientError: If the check fails
        """
        try:
            result = self._client.storage_accounts.check_name_availability(
                StorageAccountCheckNameAvailabilityParameters(name=account_name)
            )
        except AzureError as e:
            raise AzureClientError(
                f"Failed to check storage account name {account_name}: {e.message}"
            ) from e
        return bool(result.name_available)

    def create(
        self,
        resource_group: str,
        account_name: str,
        account_type: AccountType,
        location: str,
    ) -> None:
        """Create a storage account and wait for it to finish provisioning.

        Raises:
            AzureClientError: If creation fails
        """
        logger.info(f"Creating storage account {account_name} ({account_type}) in {location}")
        parameters = StorageAccountCreateParameters(
            sku=Sku(name=account_type.value),
            kind=STORAGE_ACCOUNT_KIND,
            location=location,
        )
        try:
            poller = self._client.storage_accounts.begin_create(
                resource_group, account_name, parameters
            )
            poller.result()
        except AzureError as e:
            raise AzureClientError(
                f"Failed to create storage account {account_name}: {e.message}"
            ) from e


def to_sdk_virtual_machine(request: VMCreationRequest) -> compute_models.VirtualMachine:
    """Build the SDK VirtualMachine model for a creation request."""
    vm = compute_models.VirtualMachine(location=request.location, tags=dict(request.tags))

    if request.hardware_profile is not None:
        vm.hardware_profile = compute_models.HardwareProfile(
            vm_size=request.hardware_profile.vm_size
        )

    if request.storage_profile is not None:
        storage = request.storage_profile
        vm.storage_profile = compute_models.StorageProfile()
        if storage.image_reference is not None:
            image = storage.image_reference
            vm.storage_profile.image_reference = compute_models.ImageReference(
                publisher=image.publisher,
                offer=image.offer,
                sku=image.sku,
                version=image.version,
            )
        if storage.os_disk is not None:
            os_disk = storage.os_disk
            vm.storage_profile.os_disk = compute_models.OSDisk(
                name=os_disk.name,
                os_type=os_disk.os_type.value if os_disk.os_type is not None else None,
                vhd=compute_models.VirtualHardDisk(uri=os_disk.vhd_uri)
                if os_disk.vhd_uri
                else None,
                create_option=os_disk.create_option,
                caching=os_disk.caching,
            )
        vm.storage_profile.data_disks = [
            compute_models.DataDisk(
                lun=disk.lun,
                name=disk.name,
                disk_size_gb=disk.disk_size_gb,
                vhd=compute_models.VirtualHardDisk(uri=disk.vhd_uri) if disk.vhd_uri else None,
                create_option=disk.create_option,
            )
            for disk in storage.data_disks
        ]

    if request.network_profile is not None:
        nic_ids = request.network_profile.network_interface_ids
        vm.network_profile = compute_models.NetworkProfile(
            network_interfaces=[
                compute_models.NetworkInterfaceReference(id=nic_id, primary=(i == 0))
                for i, nic_id in enumerate(nic_ids)
            ]
        )

    if request.os_profile is not None:
        profile = request.os_profile
        vm.os_profile = compute_models.OSProfile(
            computer_name=profile.computer_name,
            admin_username=profile.admin_username,
            admin_password=profile.admin_password,
        )
        if profile.linux_configuration is not None:
            linux = profile.linux_configuration
            ssh = None
            if linux.ssh_public_keys:
                ssh = compute_models.SshConfiguration(
                    public_keys=[
                        compute_models.SshPublicKey(
                            path=f"/home/{profile.admin_username}/.ssh/authorized_keys",
                            key_data=key,
                        )
                        for key in linux.ssh_public_keys
                    ]
                )
            vm.os_profile.linux_configuration = compute_models.LinuxConfiguration(
                disable_password_authentication=linux.disable_password_authentication,
                ssh=ssh,
            )
        if profile.windows_configuration is not None:
            windows = profile.windows_configuration
            vm.os_profile.windows_configuration = compute_models.WindowsConfiguration(
                provision_vm_agent=windows.provision_vm_agent,
                enable_automatic_updates=windows.enable_automatic_updates,
            )

    if request.diagnostics_profile is not None:
        boot = request.diagnostics_profile.boot_diagnostics
        vm.diagnostics_profile = compute_models.DiagnosticsProfile(
            boot_diagnostics=compute_models.BootDiagnostics(
                enabled=boot.enabled, storage_uri=boot.storage_uri
            )
        )

    if request.plan is not None:
        vm.plan = compute_models.Plan(
            name=request.plan.name,
            publisher=request.plan.publisher,
            product=request.plan.product,
            promotion_code=request.plan.promotion_code,
        )

    if request.availability_set_id:
        vm.availability_set = compute_models.SubResource(id=request.availability_set_id)

    return vm


def to_sdk_extension(extension: ExtensionSpec) -> compute_models.VirtualMachineExtension:
    """Build the SDK VirtualMachineExtension model for an extension request."""
    return compute_models.VirtualMachineExtension(
        location=extension.location,
        publisher=extension.publisher,
        type_properties_type=extension.extension_type,
        type_handler_version=extension.type_handler_version,
        auto_upgrade_minor_version=extension.auto_upgrade_minor_version,
    )


class ComputeClient:
    """Compute operations used for VM creation."""

    def __init__(self, client: ComputeManagementClient):
        self._client = client

    @classmethod
    def from_credential(cls, credential: TokenCredential, subscription_id: str) -> "ComputeClient":
        return cls(ComputeManagementClient(credential, subscription_id))

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "ComputeClient":
        return self

    def __exit__(self, *exc_details) -> None:
        self.close()

    def create_or_update_vm(self, resource_group: str, request: VMCreationRequest) -> LROPoller:
        """Submit a VM creation request. Returns the SDK poller."""
        logger.info(f"Creating VM {request.name} in {resource_group} ({request.location})")
        return self._client.virtual_machines.begin_create_or_update(
            resource_group, request.name, to_sdk_virtual_machine(request)
        )

    def create_or_update_extension(
        self, resource_group: str, vm_name: str, extension: ExtensionSpec
    ) -> LROPoller:
        """Submit an extension installation request. Returns the SDK poller."""
        logger.info(
            f"Installing extension {extension.name} {extension.type_handler_version} on {vm_name}"
        )
        return self._client.virtual_machine_extensions.begin_create_or_update(
            resource_group, vm_name, extension.name, to_sdk_extension(extension)
        )

    def list_publishers(self, location: str) -> list[str]:
        publishers = self._client.virtual_machine_images.list_publishers(location) or []
        return [p.name for p in publishers]

    def list_extension_types(self, location: str, publisher: str) -> list[str]:
        images = self._client.virtual_machine_extension_images
        return [t.name for t in images.list_types(location, publisher) or []]

    def list_extension_versions(self, location: str, publisher: str, extension_type: str) -> list[str]:
        images = self._client.virtual_machine_extension_images
        return [v.name for v in images.list_versions(location, publisher, extension_type) or []]


__all__ = [
    "AzureClientError",
    "ComputeClient",
    "StorageAccountNotFoundError",
    "StorageAccountsClient",
    "to_sdk_extension",
    "to_sdk_virtual_machine",
]
