"""Unit tests for BGInfo extension version selection."""

import pytest

from azvmnew.extension_selector import (
    BGINFO_DEFAULT_VERSION,
    ExtensionVersionSelector,
    canonicalize_location,
    parse_version,
    select_latest_version,
)


class TestCanonicalizeLocation:
    """Tests for canonicalize_location."""

    @pytest.mark.parametrize(
        ("location", "expected"),
        [("West US", "westus"), ("westus2", "westus2"), (" North Europe ", "northeurope")],
    )
    def test_canonicalize(self, location, expected):
        assert canonicalize_location(location) == expected


class TestParseVersion:
    """Tests for parse_version."""

    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            ("1.0", (1, 0)),
            ("2.3", (2, 3)),
            ("2.10.4", (2, 10)),
            ("1.2.3.4", (1, 2)),
        ],
    )
    def test_parses_numeric_versions(self, value, expected):
        assert parse_version(value) == expected

    @pytest.mark.parametrize("value", [None, "", "bogus", "1", "1.x", "1.2.3.4.5", "v1.2"])
    def test_rejects_invalid_versions(self, value):
        assert parse_version(value) is None


class TestSelectLatestVersion:
    """Tests for select_latest_version."""

    def test_picks_max_parsable_version(self):
        assert select_latest_version(["1.0", "2.3", "bogus"]) == "2.3"

    def test_compares_numerically_not_lexically(self):
        assert select_latest_version(["2.9", "2.10", "10.0", "9.9"]) == "10.0"

    def test_drops_patch_component(self):
        assert select_latest_version(["2.1.7"]) == "2.1"

    def test_empty_list_returns_none(self):
        assert select_latest_version([]) is None

    def test_fully_unparsable_list_returns_default(self):
        assert select_latest_version(["bogus", "latest"]) == BGINFO_DEFAULT_VERSION


class TestExtensionVersionSelector:
    """Tests for ExtensionVersionSelector.select."""

    def test_selects_latest_version(self, mock_compute_client):
        selector = ExtensionVersionSelector(mock_compute_client)

        assert selector.select("West US") == "2.3"
        mock_compute_client.list_publishers.assert_called_once_with("westus")
        mock_compute_client.list_extension_types.assert_called_once_with(
            "westus", "Microsoft.Compute"
        )
        mock_compute_client.list_extension_versions.assert_called_once_with(
            "westus", "Microsoft.Compute", "BGInfo"
        )

    def test_missing_publisher_returns_none(self, mock_compute_client):
        mock_compute_client.list_publishers.return_value = ["Canonical"]

        assert ExtensionVersionSelector(mock_compute_client).select("westus") is None
        mock_compute_client.list_extension_types.assert_not_called()

    def test_publisher_match_is_exact(self, mock_compute_client):
        mock_compute_client.list_publishers.return_value = ["microsoft.compute"]

        assert ExtensionVersionSelector(mock_compute_client).select("westus") is None

    def test_missing_type_returns_none(self, mock_compute_client):
        mock_compute_client.list_extension_types.return_value = ["CustomScriptExtension"]

        assert ExtensionVersionSelector(mock_compute_client).select("westus") is None
        mock_compute_client.list_extension_versions.assert_not_called()

    def test_no_versions_returns_none(self, mock_compute_client):
        mock_compute_client.list_extension_versions.return_value = []

        assert ExtensionVersionSelector(mock_compute_client).select("westus") is None

    def test_unparsable_versions_return_default(self, mock_compute_client):
        mock_compute_client.list_extension_versions.return_value = ["preview"]

        assert ExtensionVersionSelector(mock_compute_client).select("westus") == "1.1"
