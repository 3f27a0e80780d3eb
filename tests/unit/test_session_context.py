"""Unit tests for Azure session context resolution."""

import json
import subprocess
from unittest.mock import MagicMock, Mock, patch

import pytest
from azure.core.exceptions import ClientAuthenticationError

from azvmnew.azure_clients import ComputeClient, StorageAccountsClient
from azvmnew.session_context import SessionContext, SessionContextError

ACCOUNT = {"id": "cli-sub-id", "name": "Pay-As-You-Go"}


def az_result(payload=ACCOUNT):
    return Mock(stdout=json.dumps(payload), returncode=0)


def subscription_client(display_name="Production"):
    client = MagicMock()
    client.__enter__.return_value = client
    client.subscriptions.get.return_value = Mock(display_name=display_name)
    return client


@pytest.fixture(autouse=True)
def no_subscription_env(monkeypatch):
    monkeypatch.delenv("AZURE_SUBSCRIPTION_ID", raising=False)


class TestResolve:
    """Tests for SessionContext.resolve."""

    @patch("azvmnew.session_context.SubscriptionClient")
    def test_explicit_subscription(self, mock_sub_client):
        mock_sub_client.return_value = subscription_client("Production")
        credential = Mock()

        session = SessionContext.resolve("explicit-id", credential=credential)

        assert session.subscription_id == "explicit-id"
        assert session.subscription_name == "Production"
        assert session.credential is credential
        mock_sub_client.assert_called_once_with(credential)
        mock_sub_client.return_value.subscriptions.get.assert_called_once_with("explicit-id")

    @patch("azvmnew.session_context.SubscriptionClient")
    def test_subscription_from_environment(self, mock_sub_client, monkeypatch):
        monkeypatch.setenv("AZURE_SUBSCRIPTION_ID", "env-id")
        mock_sub_client.return_value = subscription_client()

        session = SessionContext.resolve(credential=Mock())

        assert session.subscription_id == "env-id"

    @patch("azvmnew.session_context.subprocess.run")
    def test_subscription_from_cli(self, mock_run):
        mock_run.return_value = az_result()

        session = SessionContext.resolve(credential=Mock())

        assert session.subscription_id == "cli-sub-id"
        assert session.subscription_name == "Pay-As-You-Go"
        assert mock_run.call_args.args[0] == ["az", "account", "show", "--output", "json"]

    @patch("azvmnew.session_context.DefaultAzureCredential")
    @patch("azvmnew.session_context.subprocess.run")
    def test_default_credential(self, mock_run, mock_credential):
        mock_run.return_value = az_result()

        session = SessionContext.resolve()

        assert session.credential is mock_credential.return_value

    @patch("azvmnew.session_context.subprocess.run")
    def test_cli_not_installed(self, mock_run):
        mock_run.side_effect = FileNotFoundError()

        with pytest.raises(SessionContextError, match="Azure CLI not found"):
            SessionContext.resolve(credential=Mock())

    @patch("azvmnew.session_context.subprocess.run")
    def test_cli_not_logged_in(self, mock_run):
        mock_run.side_effect = subprocess.CalledProcessError(
            1, ["az"], stderr="Please run 'az login'\n"
        )

        with pytest.raises(SessionContextError, match="az login"):
            SessionContext.resolve(credential=Mock())

    @patch("azvmnew.session_context.subprocess.run")
    def test_cli_timeout(self, mock_run):
        mock_run.side_effect = subprocess.TimeoutExpired(["az"], 10)

        with pytest.raises(SessionContextError, match="timed out"):
            SessionContext.resolve(credential=Mock())

    @patch("azvmnew.session_context.subprocess.run")
    def test_cli_bad_output(self, mock_run):
        mock_run.return_value = Mock(stdout="not json")

        with pytest.raises(SessionContextError, match="parse"):
            SessionContext.resolve(credential=Mock())


class TestSubscriptionNameLookup:
    """Tests for the subscription display name fallbacks."""

    @patch("azvmnew.session_context.subprocess.run")
    @patch("azvmnew.session_context.SubscriptionClient")
    def test_falls_back_to_cli_for_same_subscription(self, mock_sub_client, mock_run):
        mock_sub_client.return_value = subscription_client()
        mock_sub_client.return_value.subscriptions.get.side_effect = ClientAuthenticationError(
            "no token"
        )
        mock_run.return_value = az_result()

        session = SessionContext.resolve("cli-sub-id", credential=Mock())

        assert session.subscription_name == "Pay-As-You-Go"

    @patch("azvmnew.session_context.subprocess.run")
    @patch("azvmnew.session_context.SubscriptionClient")
    def test_cli_name_ignored_for_other_subscription(self, mock_sub_client, mock_run):
        mock_sub_client.return_value = subscription_client()
        mock_sub_client.return_value.subscriptions.get.side_effect = ClientAuthenticationError(
            "no token"
        )
        mock_run.return_value = az_result()

        session = SessionContext.resolve("other-id", credential=Mock())

        assert session.subscription_id == "other-id"
        assert session.subscription_name is None

    @patch("azvmnew.session_context.subprocess.run")
    @patch("azvmnew.session_context.SubscriptionClient")
    def test_name_unknown_is_not_fatal(self, mock_sub_client, mock_run, caplog):
        mock_sub_client.return_value = subscription_client()
        mock_sub_client.return_value.subscriptions.get.side_effect = ClientAuthenticationError(
            "no token"
        )
        mock_run.side_effect = FileNotFoundError()

        with caplog.at_level("WARNING", logger="azvmnew.session_context"):
            session = SessionContext.resolve("explicit-id", credential=Mock())

        assert session.subscription_name is None
        assert "subscription name" in caplog.text


class TestClients:
    """Tests for client factories."""

    def test_repr_hides_credential(self):
        session = SessionContext("sub-id", "Production", credential=Mock(name="secret-cred"))

        assert "secret-cred" not in repr(session)
        assert "sub-id" in repr(session)

    @patch("azvmnew.azure_clients.StorageManagementClient")
    def test_storage_client(self, mock_mgmt):
        credential = Mock()
        client = SessionContext("sub-id", None, credential).storage_client()

        assert isinstance(client, StorageAccountsClient)
        mock_mgmt.assert_called_once_with(credential, "sub-id")

    @patch("azvmnew.azure_clients.ComputeManagementClient")
    def test_compute_client(self, mock_mgmt):
        credential = Mock()
        client = SessionContext("sub-id", None, credential).compute_client()

        assert isinstance(client, ComputeClient)
        mock_mgmt.assert_called_once_with(credential, "sub-id")
