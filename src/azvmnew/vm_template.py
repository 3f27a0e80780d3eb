"""VM template loading.

Reads a VirtualMachineSpec from a YAML file.

Template Structure:
    name: VM name (required)
    location: Azure region
    hardware_profile: {vm_size}
    storage_profile:
        image_reference: {publisher, offer, sku, version}
        os_disk: {name, os_type, vhd_uri, create_option, caching}
        data_disks: [{lun, name, disk_size_gb, vhd_uri, create_option}]
    network_profile: {network_interface_ids: [...]}
    os_profile:
        computer_name, admin_username, admin_password
        linux_configuration: {disable_password_authentication, ssh_public_keys}
        windows_configuration: {provision_vm_agent, enable_automatic_updates}
    diagnostics_profile: {boot_diagnostics: {enabled, storage_uri}}
    plan: {name, publisher, product, promotion_code}
    availability_set_id: Availability set resource ID
    tags: mapping, or a list of {Name: ..., Value: ...} entries

The admin password may be left out of the file and supplied through the
AZVMNEW_ADMIN_PASSWORD environment variable instead.
"""

import logging
import os
from pathlib import Path
from typing import Any

import yaml

from azvmnew.models import (
    BootDiagnostics,
    DataDisk,
    DiagnosticsProfile,
    HardwareProfile,
    ImageReference,
    LinuxConfiguration,
    NetworkProfile,
    OperatingSystemType,
    OSDisk,
    OSProfile,
    Plan,
    StorageProfile,
    VirtualMachineSpec,
    WindowsConfiguration,
)

logger = logging.getLogger(__name__)

ADMIN_PASSWORD_ENV_VAR = "AZVMNEW_ADMIN_PASSWORD"  # noqa: S105 - env var name, not a password


class TemplateError(Exception):
    """Raised when a VM template is missing or invalid."""

    pass


def normalize_tags(value: Any) -> dict[str, str]:
    """Normalize tags to a string mapping.

    Accepts a mapping, or a list of hashtable-style entries each holding
    a Name and a Value key (matched case-insensitively).

    Raises:
        TemplateError: If the tags cannot be interpreted
    """
    if value is None:
        return {}
    if isinstance(value, dict):
        return {str(k): "" if v is None else str(v) for k, v in value.items()}
    if isinstance(value, list):
        tags: dict[str, str] = {}
        for entry in value:
            if not isinstance(entry, dict):
                raise TemplateError(f"Invalid tag entry: {entry!r}")
            lowered = {str(k).lower(): v for k, v in entry.items()}
            if "name" not in lowered:
                raise TemplateError(f"Tag entry has no Name: {entry!r}")
            tag_value = lowered.get("value")
            tags[str(lowered["name"])] = "" if tag_value is None else str(tag_value)
        return tags
    raise TemplateError(f"Tags must be a mapping or a list of Name/Value entries, got: {value!r}")


def _section(data: dict[str, Any], key: str) -> dict[str, Any] | None:
    section = data.get(key)
    if section is None:
        return None
    if not isinstance(section, dict):
        raise TemplateError(f"'{key}' must be a mapping")
    return section


def _os_disk(data: dict[str, Any]) -> OSDisk:
    try:
        os_type = OperatingSystemType.parse(data.get("os_type"))
    except ValueError as e:
        raise TemplateError(str(e)) from e
    return OSDisk(
        name=data.get("name"),
        os_type=os_type,
        vhd_uri=data.get("vhd_uri"),
        create_option=data.get("create_option", "FromImage"),
        caching=data.get("caching"),
    )


def _data_disk(disk: Any) -> DataDisk:
    if not isinstance(disk, dict):
        raise TemplateError(f"Invalid data disk entry: {disk!r}")
    try:
        lun = int(disk["lun"])
    except (TypeError, ValueError) as e:
        raise TemplateError(f"Data disk lun must be an integer, got: {disk['lun']!r}") from e
    return DataDisk(
        lun=lun,
        name=disk.get("name"),
        disk_size_gb=disk.get("disk_size_gb"),
        vhd_uri=disk.get("vhd_uri"),
        create_option=disk.get("create_option", "Empty"),
    )


def _storage_profile(data: dict[str, Any]) -> StorageProfile:
    image = _section(data, "image_reference")
    os_disk = _section(data, "os_disk")
    disks = data.get("data_disks") or []
    if not isinstance(disks, list):
        raise TemplateError("'data_disks' must be a list")
    data_disks = tuple(_data_disk(disk) for disk in disks)
    return StorageProfile(
        os_disk=_os_disk(os_disk) if os_disk is not None else None,
        image_reference=ImageReference(
            publisher=image["publisher"],
            offer=image["offer"],
            sku=image["sku"],
            version=str(image.get("version", "latest")),
        )
        if image is not None
        else None,
        data_disks=data_disks,
    )


def _os_profile(data: dict[str, Any]) -> OSProfile:
    linux = _section(data, "linux_configuration")
    windows = _section(data, "windows_configuration")
    return OSProfile(
        computer_name=data.get("computer_name"),
        admin_username=data.get("admin_username"),
        admin_password=data.get("admin_password") or os.environ.get(ADMIN_PASSWORD_ENV_VAR),
        linux_configuration=LinuxConfiguration(
            disable_password_authentication=bool(linux.get("disable_password_authentication", False)),
            ssh_public_keys=tuple(linux.get("ssh_public_keys") or ()),
        )
        if linux is not None
        else None,
        windows_configuration=WindowsConfiguration(
            provision_vm_agent=bool(windows.get("provision_vm_agent", True)),
            enable_automatic_updates=bool(windows.get("enable_automatic_updates", True)),
        )
        if windows is not None
        else None,
    )


def spec_from_dict(data: dict[str, Any]) -> VirtualMachineSpec:
    """Build a VirtualMachineSpec from template data.

    Raises:
        TemplateError: If required fields are missing or malformed
    """
    if not isinstance(data, dict):
        raise TemplateError("VM template must be a mapping")
    if not data.get("name"):
        raise TemplateError("VM template must define 'name'")

    try:
        hardware = _section(data, "hardware_profile")
        storage = _section(data, "storage_profile")
        network = _section(data, "network_profile")
        os_profile = _section(data, "os_profile")
        diagnostics = _section(data, "diagnostics_profile")
        plan = _section(data, "plan")

        diagnostics_profile = None
        if diagnostics is not None:
            boot = diagnostics.get("boot_diagnostics") or {}
            diagnostics_profile = DiagnosticsProfile(
                boot_diagnostics=BootDiagnostics(
                    enabled=bool(boot.get("enabled", False)),
                    storage_uri=boot.get("storage_uri"),
                )
            )

        return VirtualMachineSpec(
            name=str(data["name"]),
            location=data.get("location"),
            hardware_profile=HardwareProfile(vm_size=hardware["vm_size"])
            if hardware is not None
            else None,
            storage_profile=_storage_profile(storage) if storage is not None else None,
            network_profile=NetworkProfile(
                network_interface_ids=tuple(network.get("network_interface_ids") or ())
            )
            if network is not None
            else None,
            os_profile=_os_profile(os_profile) if os_profile is not None else None,
            diagnostics_profile=diagnostics_profile,
            plan=Plan(
                name=plan["name"],
                publisher=plan["publisher"],
                product=plan["product"],
                promotion_code=plan.get("promotion_code"),
            )
            if plan is not None
            else None,
            availability_set_id=data.get("availability_set_id"),
            tags=normalize_tags(data.get("tags")),
        )
    except KeyError as e:
        raise TemplateError(f"VM template is missing required field: {e.args[0]}") from e
    except (TypeError, ValueError) as e:
        raise TemplateError(f"Invalid VM template: {e}") from e


def load_vm_spec(path: str | Path) -> VirtualMachineSpec:
    """Load a VirtualMachineSpec from a YAML file.

    Raises:
        TemplateError: If the file cannot be read or is invalid
    """
    template_path = Path(path).expanduser()
    if not template_path.exists():
        raise TemplateError(f"VM template not found: {template_path}")

    try:
        with open(template_path) as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise TemplateError(f"Invalid YAML in VM template {template_path}: {e}") from e
    except OSError as e:
        raise TemplateError(f"Failed to read VM template {template_path}: {e}") from e

    logger.debug(f"Loaded VM template from: {template_path}")
    return spec_from_dict(data)


__all__ = ["TemplateError", "load_vm_spec", "normalize_tags", "spec_from_dict"]
