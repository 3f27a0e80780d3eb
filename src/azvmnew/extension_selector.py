"""BGInfo extension version selection.

Looks up the BGInfo extension published by Microsoft.Compute at a location
and picks the newest major.minor version to install.
"""

import logging
import re

from azvmnew.azure_clients import ComputeClient

logger = logging.getLogger(__name__)

BGINFO_EXTENSION_NAME = "BGInfo"
BGINFO_EXTENSION_PUBLISHER = "Microsoft.Compute"
BGINFO_EXTENSION_TYPE = "BGInfo"
BGINFO_DEFAULT_VERSION = "1.1"

# major.minor with up to two more numeric components
_VERSION_PATTERN = re.compile(r"^\s*(\d+)\.(\d+)(?:\.(\d+))?(?:\.(\d+))?\s*$")


def canonicalize_location(location: str) -> str:
    """Canonical form of a location: lower case, no whitespace ("West US" -> "westus")."""
    return "".join(location.split()).lower()


def parse_version(value: str | None) -> tuple[int, int] | None:
    """Parse a version string into (major, minor).

    Returns:
        (major, minor), or None if value is not a dotted numeric version
    """
    if value is None:
        return None
    match = _VERSION_PATTERN.match(value)
    if not match:
        return None
    return int(match.group(1)), int(match.group(2))


def select_latest_version(
    versions: list[str], default_version: str = BGINFO_DEFAULT_VERSION
) -> str | None:
    """Pick the highest major.minor among version names.

    Unparsable names are ignored unless none parse, in which case the
    default version is returned.

    Returns:
        "major.minor" string, or None if versions is empty
    """
    if not versions:
        return None
    parsed = [v for v in (parse_version(name) for name in versions) if v is not None]
    if not parsed:
        logger.debug(f"No parsable extension versions in {versions}, using {default_version}")
        return default_version
    major, minor = max(parsed)
    return f"{major}.{minor}"


class ExtensionVersionSelector:
    """Find the installable BGInfo extension version at a location."""

    def __init__(
        self,
        compute_client: ComputeClient,
        publisher: str = BGINFO_EXTENSION_PUBLISHER,
        extension_type: str = BGINFO_EXTENSION_TYPE,
    ):
        self._compute = compute_client
        self.publisher = publisher
        self.extension_type = extension_type

    def select(self, location: str) -> str | None:
        """Get the newest usable extension version.

        Args:
            location: Azure region (canonicalized before querying)

        Returns:
            Version string "major.minor", or None if the publisher, the
            extension type or any version is unavailable
        """
        canonical = canonicalize_location(location)

        if self.publisher not in self._compute.list_publishers(canonical):
            logger.debug(f"Publisher {self.publisher} not available in {canonical}")
            return None

        types = self._compute.list_extension_types(canonical, self.publisher)
        if self.extension_type not in types:
            logger.debug(f"Extension type {self.extension_type} not available in {canonical}")
            return None

        versions = self._compute.list_extension_versions(
            canonical, self.publisher, self.extension_type
        )
        version = select_latest_version(versions)
        if version is None:
            logger.debug(f"No {self.extension_type} versions published in {canonical}")
        return version


__all__ = [
    "BGINFO_DEFAULT_VERSION",
    "BGINFO_EXTENSION_NAME",
    "BGINFO_EXTENSION_PUBLISHER",
    "BGINFO_EXTENSION_TYPE",
    "ExtensionVersionSelector",
    "canonicalize_location",
    "parse_version",
    "select_latest_version",
]
