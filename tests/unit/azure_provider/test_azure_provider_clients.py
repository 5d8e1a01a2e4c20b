"""
AzureProvider credential and client initialization tests.

Test Classes:
    - TestInitializeClients: Subscription resolution and client creation
    - TestGetCredential: Service principal vs. default credential
"""

import pytest
from unittest.mock import MagicMock, patch


# ==========================================
# Fixtures
# ==========================================

@pytest.fixture
def mock_sdk_clients():
    with patch("azure.mgmt.resource.ResourceManagementClient") as resource, \
            patch("azure.mgmt.storage.StorageManagementClient") as storage, \
            patch("azure.mgmt.web.WebSiteManagementClient") as web, \
            patch("azure.mgmt.applicationinsights.ApplicationInsightsManagementClient") as insights:
        yield {"resource": resource, "storage": storage, "web": web, "insights": insights}


class TestInitializeClients:
    """AzureProvider.initialize_clients behavior."""

    def test_explicit_subscription(self, mock_sdk_clients):
        from appservice_deployer.providers.azure.provider import AzureProvider

        credential = MagicMock()
        provider = AzureProvider()
        provider.initialize_clients({}, subscription_id="sub-1", credential_factory=lambda c: credential)

        assert provider.initialized
        assert provider.subscription_id == "sub-1"
        assert provider.credential is credential
        assert set(provider.clients) == {"resource", "storage", "web", "insights"}
        mock_sdk_clients["web"].assert_called_once_with(credential=credential, subscription_id="sub-1")
        mock_sdk_clients["insights"].assert_called_once_with(credential=credential, subscription_id="sub-1")

    def test_subscription_from_credentials(self, mock_sdk_clients):
        from appservice_deployer.providers.azure.provider import AzureProvider

        provider = AzureProvider()
        provider.initialize_clients(
            {"azure_subscription_id": "sub-file"},
            credential_factory=lambda c: MagicMock()
        )

        assert provider.subscription_id == "sub-file"

    def test_first_subscription_is_used(self, mock_sdk_clients):
        from appservice_deployer.providers.azure.provider import AzureProvider

        first = MagicMock(subscription_id="sub-a", display_name="A")
        second = MagicMock(subscription_id="sub-b", display_name="B")

        with patch("azure.mgmt.resource.SubscriptionClient") as subscription_client:
            subscription_client.return_value.subscriptions.list.return_value = [first, second]
            provider = AzureProvider()
            provider.initialize_clients({}, credential_factory=lambda c: MagicMock())

        assert provider.subscription_id == "sub-a"

    def test_no_subscription_available(self, mock_sdk_clients):
        from appservice_deployer.providers.azure.provider import AzureProvider
        from appservice_deployer.core.exceptions import AuthenticationError

        with patch("azure.mgmt.resource.SubscriptionClient") as subscription_client:
            subscription_client.return_value.subscriptions.list.return_value = []
            provider = AzureProvider()
            with pytest.raises(AuthenticationError, match="No subscription"):
                provider.initialize_clients({}, credential_factory=lambda c: MagicMock())

        assert not provider.initialized

    def test_subscription_listing_denied(self, mock_sdk_clients):
        from azure.core.exceptions import ClientAuthenticationError
        from appservice_deployer.providers.azure.provider import AzureProvider
        from appservice_deployer.core.exceptions import AuthenticationError

        with patch("azure.mgmt.resource.SubscriptionClient") as subscription_client:
            subscription_client.return_value.subscriptions.list.side_effect = ClientAuthenticationError("denied")
            provider = AzureProvider()
            with pytest.raises(AuthenticationError):
                provider.initialize_clients({}, credential_factory=lambda c: MagicMock())

    def test_credential_factory_failure(self, mock_sdk_clients):
        from appservice_deployer.providers.azure.provider import AzureProvider
        from appservice_deployer.core.exceptions import AuthenticationError

        def failing_factory(credentials):
            raise ValueError("tenant_id is invalid")

        provider = AzureProvider()
        with pytest.raises(AuthenticationError, match="tenant_id"):
            provider.initialize_clients({}, subscription_id="sub-1", credential_factory=failing_factory)

        mock_sdk_clients["web"].assert_not_called()


class TestGetCredential:
    """AzureProvider._get_credential behavior."""

    def test_service_principal(self):
        from appservice_deployer.providers.azure.provider import AzureProvider

        with patch("azure.identity.ClientSecretCredential") as secret_credential:
            credential = AzureProvider()._get_credential({
                "azure_tenant_id": "tenant",
                "azure_client_id": "client",
                "azure_client_secret": "secret",
            })

        assert credential is secret_credential.return_value
        secret_credential.assert_called_once_with(tenant_id="tenant", client_id="client", client_secret="secret")

    def test_default_credential_without_secret(self):
        from appservice_deployer.providers.azure.provider import AzureProvider

        with patch("azure.identity.DefaultAzureCredential") as default_credential:
            credential = AzureProvider()._get_credential({"azure_client_id": "client"})

        assert credential is default_credential.return_value
