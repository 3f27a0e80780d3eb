"""azvmnew - Azure VM creation with boot diagnostics

Creates Azure VMs from a declared specification. Boot diagnostics are
pointed at a reused or newly created standard storage account, and the
BGInfo extension is installed on Windows VMs.
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
