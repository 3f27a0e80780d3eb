"""Data models for azvmnew.

This module defines the data structures that flow through VM creation:
- VirtualMachineSpec and its profile parts (caller-supplied, immutable)
- Boot diagnostics profile
- Storage account reference and account tiers
- BGInfo extension request
- Result types carrying non-fatal notices alongside the value

All VM spec dataclasses are frozen. Code that needs a modified
spec builds a new one with dataclasses.replace().
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum


class AccountType(StrEnum):
    """Storage account SKU names.

    Premium tiers are never used for boot diagnostics.
    """

    STANDARD_LRS = "Standard_LRS"
    STANDARD_GRS = "Standard_GRS"
    STANDARD_RAGRS = "Standard_RAGRS"
    STANDARD_ZRS = "Standard_ZRS"
    STANDARD_GZRS = "Standard_GZRS"
    STANDARD_RAGZRS = "Standard_RAGZRS"
    PREMIUM_LRS = "Premium_LRS"
    PREMIUM_ZRS = "Premium_ZRS"

    @property
    def is_premium(self) -> bool:
        """Check if this is a premium performance tier."""
        return self.value.startswith("Premium_")

    @classmethod
    def from_sku_name(cls, sku_name: str | None) -> "AccountType | None":
        """Map an SKU name to an account type.

        Args:
            sku_name: SKU name as reported by the storage service

        Returns:
            Matching AccountType, or None if the tier is unknown
        """
        if not sku_name:
            return None
        for member in cls:
            if member.value.lower() == sku_name.lower():
                return member
        return None


class OperatingSystemType(StrEnum):
    """OS type declared on a VM's OS disk."""

    WINDOWS = "Windows"
    LINUX = "Linux"

    @classmethod
    def parse(cls, value: str | None) -> "OperatingSystemType | None":
        """Parse an OS type case-insensitively. Returns None for empty input.

        Raises:
            ValueError: If value is not a known OS type
        """
        if value is None or value == "":
            return None
        for member in cls:
            if member.value.lower() == str(value).lower():
                return member
        raise ValueError(f"Unknown OS type: {value}")


# VM specification parts


@dataclass(frozen=True)
class HardwareProfile:
    vm_size: str


@dataclass(frozen=True)
class ImageReference:
    publisher: str
    offer: str
    sku: str
    version: str = "latest"


@dataclass(frozen=True)
class OSDisk:
    """OS disk of the VM.

    vhd_uri is set for unmanaged disks stored as page blobs; its host
    names the storage account (https://<account>.blob.core.windows.net/...).
    """

    name: str | None = None
    os_type: OperatingSystemType | None = None
    vhd_uri: str | None = None
    create_option: str = "FromImage"
    caching: str | None = None


@dataclass(frozen=True)
class DataDisk:
    lun: int
    name: str | None = None
    disk_size_gb: int | None = None
    vhd_uri: str | None = None
    create_option: str = "Empty"


@dataclass(frozen=True)
class StorageProfile:
    os_disk: OSDisk | None = None
    image_reference: ImageReference | None = None
    data_disks: tuple[DataDisk, ...] = ()


@dataclass(frozen=True)
class NetworkProfile:
    network_interface_ids: tuple[str, ...] = ()


@dataclass(frozen=True)
class LinuxConfiguration:
    disable_password_authentication: bool = False
    ssh_public_keys: tuple[str, ...] = ()


@dataclass(frozen=True)
class WindowsConfiguration:
    provision_vm_agent: bool = True
    enable_automatic_updates: bool = True


@dataclass(frozen=True)
class OSProfile:
    computer_name: str | None = None
    admin_username: str | None = None
    admin_password: str | None = None
    linux_configuration: LinuxConfiguration | None = None
    windows_configuration: WindowsConfiguration | None = None

    def __repr__(self) -> str:
        """Keep the admin password out of logs."""
        password = "***REDACTED***" if self.admin_password else None
        return (
            f"OSProfile(computer_name={self.computer_name!r}, "
            f"admin_username={self.admin_username!r}, admin_password={password}, "
            f"linux_configuration={self.linux_configuration!r}, "
            f"windows_configuration={self.windows_configuration!r})"
        )


@dataclass(frozen=True)
class Plan:
    name: str
    publisher: str
    product: str
    promotion_code: str | None = None


@dataclass(frozen=True)
class BootDiagnostics:
    enabled: bool
    storage_uri: str | None = None


@dataclass(frozen=True)
class DiagnosticsProfile:
    boot_diagnostics: BootDiagnostics

    @classmethod
    def enabled_for(cls, storage_uri: str) -> "DiagnosticsProfile":
        """Create a profile with boot diagnostics enabled on the given blob endpoint."""
        return cls(boot_diagnostics=BootDiagnostics(enabled=True, storage_uri=storage_uri))


@dataclass(frozen=True)
class VirtualMachineSpec:
    """Declared state of a VM to create."""

    name: str
    location: str | None = None
    hardware_profile: HardwareProfile | None = None
    storage_profile: StorageProfile | None = None
    network_profile: NetworkProfile | None = None
    os_profile: OSProfile | None = None
    diagnostics_profile: DiagnosticsProfile | None = None
    plan: Plan | None = None
    availability_set_id: str | None = None
    tags: dict[str, str] = field(default_factory=dict)

    @property
    def os_disk_vhd_uri(self) -> str | None:
        """VHD URI of the OS disk, if one is declared."""
        if self.storage_profile is None or self.storage_profile.os_disk is None:
            return None
        return self.storage_profile.os_disk.vhd_uri


@dataclass(frozen=True)
class VMCreationRequest:
    """Creation request submitted to the compute service."""

    name: str
    location: str
    hardware_profile: HardwareProfile | None
    storage_profile: StorageProfile | None
    network_profile: NetworkProfile | None
    os_profile: OSProfile | None
    diagnostics_profile: DiagnosticsProfile | None
    plan: Plan | None
    availability_set_id: str | None
    tags: dict[str, str]


# Storage


@dataclass(frozen=True)
class StorageAccountRef:
    """Storage account as seen by the resolver."""

    name: str
    account_type: AccountType | None
    blob_endpoint: str | None
    location: str | None = None

    @property
    def is_eligible_for_diagnostics(self) -> bool:
        """True if the tier is known and not premium."""
        return self.account_type is not None and not self.account_type.is_premium


# Extensions


@dataclass(frozen=True)
class ExtensionSpec:
    """VM extension installation request."""

    location: str
    name: str
    publisher: str
    extension_type: str
    type_handler_version: str
    auto_upgrade_minor_version: bool = True


# Results


class NoticeCode(StrEnum):
    """Kinds of non-fatal notices raised while creating a VM."""

    STORAGE_ACCOUNT_NOT_FOUND = "storage_account_not_found"
    STORAGE_ACCOUNT_LOOKUP_FAILED = "storage_account_lookup_failed"
    USING_EXISTING_STORAGE_ACCOUNT = "using_existing_storage_account"
    CREATED_STORAGE_ACCOUNT = "created_storage_account"
    STORAGE_ACCOUNT_CREATION_FAILED = "storage_account_creation_failed"
    EXTENSION_NOT_AVAILABLE = "extension_not_available"
    EXTENSION_INSTALL_FAILED = "extension_install_failed"


@dataclass(frozen=True)
class Notice:
    code: NoticeCode
    message: str

    def __str__(self) -> str:
        return self.message


@dataclass
class ResolutionResult:
    """Outcome of boot diagnostics storage resolution.

    Attributes:
        blob_endpoint: Blob endpoint to use, or None if diagnostics stay disabled
        notices: Non-fatal notices raised along the way
        created_account_name: Name of the account created, if one was
    """

    blob_endpoint: str | None = None
    notices: list[Notice] = field(default_factory=list)
    created_account_name: str | None = None

    @property
    def resolved(self) -> bool:
        return self.blob_endpoint is not None


@dataclass
class LongRunningOperation:
    """Caller-facing view of a compute long-running operation."""

    status: str
    name: str | None = None
    resource_id: str | None = None
    provisioning_state: str | None = None
    start_time: datetime | None = None
    end_time: datetime | None = None

    @property
    def succeeded(self) -> bool:
        return self.status.lower() == "succeeded"


@dataclass
class VMCreationResult:
    """Result of a VM creation call.

    Attributes:
        operation: Mapped long-running operation for the VM creation
        notices: Non-fatal notices (diagnostics and extension paths)
        diagnostics_profile: Diagnostics profile sent with the request
        extension_version: BGInfo version installed, if any
    """

    operation: LongRunningOperation
    notices: list[Notice] = field(default_factory=list)
    diagnostics_profile: DiagnosticsProfile | None = None
    extension_version: str | None = None
