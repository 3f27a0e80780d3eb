"""
Shared test fixtures for azvmnew tests.

This module provides common fixtures used across all test types:
- Mock storage and compute client adapters
- A fixed clock for storage account name generation
- Sample VM specifications and templates
"""

from unittest.mock import Mock

import pytest

from azvmnew.models import (
    AccountType,
    HardwareProfile,
    ImageReference,
    LinuxConfiguration,
    NetworkProfile,
    OperatingSystemType,
    OSDisk,
    OSProfile,
    StorageProfile,
    VirtualMachineSpec,
    WindowsConfiguration,
)
from tests.azure_fakes import FIXED_NOW, NIC_ID, make_account, make_poller

# ============================================================================
# CLIENT FIXTURES
# ============================================================================


@pytest.fixture
def fixed_clock():
    """Clock returning 2024-03-05 14:07 local time."""
    return lambda: FIXED_NOW


@pytest.fixture
def mock_storage_client():
    """Mock StorageAccountsClient with an empty resource group.

    Every name is available and created accounts can be read back.
    """
    client = Mock()
    client.list_by_resource_group.return_value = []
    client.check_name_availability.return_value = True
    client.get_properties.side_effect = lambda rg, name: make_account(
        name, AccountType.STANDARD_GRS
    )
    return client


@pytest.fixture
def mock_compute_client():
    """Mock ComputeClient publishing BGInfo 1.0 through 2.3."""
    client = Mock()
    client.create_or_update_vm.return_value = make_poller()
    client.create_or_update_extension.return_value = Mock()
    client.list_publishers.return_value = ["Canonical", "Microsoft.Compute"]
    client.list_extension_types.return_value = ["BGInfo", "CustomScriptExtension"]
    client.list_extension_versions.return_value = ["1.0", "2.3", "2.1"]
    return client


# ============================================================================
# VM SPEC FIXTURES
# ============================================================================


@pytest.fixture
def windows_vm() -> VirtualMachineSpec:
    """Windows VM with no OS disk VHD and no diagnostics profile."""
    return VirtualMachineSpec(
        name="web01",
        location="westus",
        hardware_profile=HardwareProfile(vm_size="Standard_D2s_v3"),
        storage_profile=StorageProfile(
            os_disk=OSDisk(name="web01-os", os_type=OperatingSystemType.WINDOWS),
            image_reference=ImageReference(
                publisher="MicrosoftWindowsServer",
                offer="WindowsServer",
                sku="2022-datacenter",
            ),
        ),
        network_profile=NetworkProfile(network_interface_ids=(NIC_ID,)),
        os_profile=OSProfile(
            computer_name="web01",
            admin_username="azureuser",
            admin_password="P@ssw0rd-not-real",  # noqa: S106 - test fixture
            windows_configuration=WindowsConfiguration(),
        ),
        tags={"env": "test"},
    )


@pytest.fixture
def linux_vm() -> VirtualMachineSpec:
    """Linux VM identified only by its Linux OS profile section."""
    return VirtualMachineSpec(
        name="app01",
        location="eastus",
        hardware_profile=HardwareProfile(vm_size="Standard_B2s"),
        storage_profile=StorageProfile(
            image_reference=ImageReference(
                publisher="Canonical",
                offer="0001-com-ubuntu-server-jammy",
                sku="22_04-lts-gen2",
            ),
        ),
        network_profile=NetworkProfile(network_interface_ids=(NIC_ID,)),
        os_profile=OSProfile(
            computer_name="app01",
            admin_username="azureuser",
            linux_configuration=LinuxConfiguration(
                disable_password_authentication=True,
                ssh_public_keys=("ssh-rsa AAAAB3NzaC1yc2E test@example",),
            ),
        ),
    )


@pytest.fixture
def vm_template_file(tmp_path):
    """YAML VM template on disk."""
    path = tmp_path / "web01.yaml"
    path.write_text(
        """
name: web01
location: westus
hardware_profile:
  vm_size: Standard_D2s_v3
storage_profile:
  image_reference:
    publisher: MicrosoftWindowsServer
    offer: WindowsServer
    sku: 2022-datacenter
  os_disk:
    name: web01-os
    os_type: windows
    vhd_uri: https://diagstore.blob.core.windows.net/vhds/web01-os.vhd
network_profile:
  network_interface_ids:
    - /subscriptions/sub-id/resourceGroups/test-rg/providers/Microsoft.Network/networkInterfaces/web01-nic
os_profile:
  computer_name: web01
  admin_username: azureuser
  windows_configuration:
    provision_vm_agent: true
tags:
  - Name: env
    Value: dev
  - name: owner
    value: ops
"""
    )
    return path
