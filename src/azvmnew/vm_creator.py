"""VM creation orchestration.

Creates a VM from a VirtualMachineSpec:
1. Attach a boot diagnostics profile (if the VM spec has none and a storage
   account can be resolved)
2. Build and submit the creation request
3. Install the BGInfo extension on non-Linux VMs (unless disabled)

Only the VM creation call itself is fatal. Diagnostics and extension
failures are reported as notices on the result.
"""

import dataclasses
import logging
from collections.abc import Callable
from datetime import UTC, datetime

from azure.core.exceptions import AzureError
from azure.core.polling import LROPoller

from azvmnew.azure_clients import ComputeClient
from azvmnew.boot_diagnostics import BootDiagnosticsStorageResolver
from azvmnew.extension_selector import (
    BGINFO_EXTENSION_NAME,
    BGINFO_EXTENSION_PUBLISHER,
    BGINFO_EXTENSION_TYPE,
    ExtensionVersionSelector,
)
from azvmnew.models import (
    DiagnosticsProfile,
    ExtensionSpec,
    LongRunningOperation,
    Notice,
    NoticeCode,
    OperatingSystemType,
    VirtualMachineSpec,
    VMCreationRequest,
    VMCreationResult,
)

logger = logging.getLogger(__name__)


class VMCreationError(Exception):
    """Raised when the VM creation call fails."""

    pass


def is_linux_os(vm: VirtualMachineSpec | None) -> bool:
    """Check whether a VM spec describes a Linux VM.

    The OS disk's declared type wins; without one, a Linux configuration
    section in the OS profile means Linux. Anything else is not Linux.
    """
    if vm is None:
        return False

    storage = vm.storage_profile
    if storage is not None and storage.os_disk is not None and storage.os_disk.os_type is not None:
        return storage.os_disk.os_type == OperatingSystemType.LINUX

    return vm.os_profile is not None and vm.os_profile.linux_configuration is not None


def build_creation_request(
    vm: VirtualMachineSpec, location: str | None, tags: dict[str, str] | None
) -> VMCreationRequest:
    """Build the creation request for a VM spec.

    Args:
        vm: VM specification
        location: Explicit location; the VM's own location is used when empty
        tags: Explicit tags; replace the VM's tags when given

    Raises:
        VMCreationError: If neither location is set
    """
    resolved_location = location or vm.location
    if not resolved_location:
        raise VMCreationError(f"No location given for VM {vm.name}")

    return VMCreationRequest(
        name=vm.name,
        location=resolved_location,
        hardware_profile=vm.hardware_profile,
        storage_profile=vm.storage_profile,
        network_profile=vm.network_profile,
        os_profile=vm.os_profile,
        diagnostics_profile=vm.diagnostics_profile,
        plan=vm.plan,
        availability_set_id=vm.availability_set_id,
        tags=dict(tags) if tags is not None else dict(vm.tags),
    )


def to_long_running_operation(
    poller: LROPoller, start_time: datetime, end_time: datetime
) -> LongRunningOperation:
    """Map a finished SDK poller to a LongRunningOperation."""
    resource = poller.result()
    return LongRunningOperation(
        status=poller.status(),
        name=getattr(resource, "name", None),
        resource_id=getattr(resource, "id", None),
        provisioning_state=getattr(resource, "provisioning_state", None),
        start_time=start_time,
        end_time=end_time,
    )


class VMCreator:
    """Create VMs with boot diagnostics and the BGInfo extension."""

    def __init__(
        self,
        compute_client: ComputeClient,
        storage_resolver: BootDiagnosticsStorageResolver,
        extension_selector: ExtensionVersionSelector | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        """Initialize VM creator.

        Args:
            compute_client: Compute client
            storage_resolver: Boot diagnostics storage resolver
            extension_selector: BGInfo version selector (defaults to one on compute_client)
            clock: Source of operation timestamps (defaults to UTC now)
        """
        self._compute = compute_client
        self._resolver = storage_resolver
        self._selector = extension_selector or ExtensionVersionSelector(compute_client)
        self._clock = clock or (lambda: datetime.now(UTC))

    def create(
        self,
        resource_group: str,
        location: str | None,
        vm: VirtualMachineSpec,
        tags: dict[str, str] | None = None,
        disable_bginfo_extension: bool = False,
    ) -> VMCreationResult:
        """Create a VM.

        Args:
            resource_group: Resource group to create the VM in
            location: Azure region (falls back to vm.location)
            vm: VM specification
            tags: Tags replacing the VM's own tags
            disable_bginfo_extension: Skip BGInfo extension installation

        Returns:
            VMCreationResult with the mapped operation and any notices

        Raises:
            VMCreationError: If the VM creation call fails
            AzureClientError: If listing storage accounts fails
        """
        notices: list[Notice] = []
        target_location = location or vm.location

        if vm.diagnostics_profile is None and target_location:
            resolution = self._resolver.resolve(resource_group, target_location, vm)
            notices.extend(resolution.notices)
            if resolution.blob_endpoint:
                vm = dataclasses.replace(
                    vm, diagnostics_profile=DiagnosticsProfile.enabled_for(resolution.blob_endpoint)
                )

        request = build_creation_request(vm, location, tags)

        start_time = self._clock()
        try:
            poller = self._compute.create_or_update_vm(resource_group, request)
            operation = to_long_running_operation(poller, start_time, self._clock())
        except AzureError as e:
            raise VMCreationError(f"Failed to create VM {vm.name}: {e}") from e

        logger.info(f"VM {vm.name} creation finished with status {operation.status}")

        extension_version = None
        if not (disable_bginfo_extension or is_linux_os(vm)):
            extension_version = self._install_bginfo(resource_group, request, notices)

        return VMCreationResult(
            operation=operation,
            notices=notices,
            diagnostics_profile=request.diagnostics_profile,
            extension_version=extension_version,
        )

    def _install_bginfo(
        self, resource_group: str, request: VMCreationRequest, notices: list[Notice]
    ) -> str | None:
        try:
            version = self._selector.select(request.location)
        except AzureError as e:
            self._notify(
                notices,
                NoticeCode.EXTENSION_NOT_AVAILABLE,
                f"Could not look up {BGINFO_EXTENSION_NAME} extension versions: {e}",
            )
            return None

        if not version:
            logger.debug(f"{BGINFO_EXTENSION_NAME} extension not available, skipping")
            return None

        extension = ExtensionSpec(
            location=request.location,
            name=BGINFO_EXTENSION_NAME,
            publisher=BGINFO_EXTENSION_PUBLISHER,
            extension_type=BGINFO_EXTENSION_TYPE,
            type_handler_version=version,
            auto_upgrade_minor_version=True,
        )
        try:
            self._compute.create_or_update_extension(resource_group, request.name, extension).result()
        except AzureError as e:
            self._notify(
                notices,
                NoticeCode.EXTENSION_INSTALL_FAILED,
                f"Failed to install {BGINFO_EXTENSION_NAME} extension {version} "
                f"on {request.name}: {e}",
            )
            return None
        return version

    @staticmethod
    def _notify(notices: list[Notice], code: NoticeCode, message: str) -> None:
        logger.warning(message)
        notices.append(Notice(code=code, message=message))


__all__ = [
    "VMCreationError",
    "VMCreator",
    "build_creation_request",
    "is_linux_os",
    "to_long_running_operation",
]
