"""
Azure provider: credential and SDK clients for one subscription.

SDK Clients Initialized:
    - ResourceManagementClient: For Resource Group management
    - StorageManagementClient: For the Function App storage account
    - WebSiteManagementClient: For App Service Plans, Function Apps and Web Apps
    - ApplicationInsightsManagementClient: For Application Insights components

Usage:
    provider = AzureProvider()
    provider.initialize_clients(credentials, subscription_id="...")
    # Access clients: provider.clients["web"], etc.
"""

import logging
from typing import Any, Callable, Dict, Optional

from azure.core.exceptions import AzureError, ClientAuthenticationError

from appservice_deployer.core.exceptions import AuthenticationError

logger = logging.getLogger(__name__)


class AzureProvider:
    """
    Wraps the Azure credential and the management clients used for deployment.

    Attributes:
        name: Provider identifier ("azure")
        subscription_id: Subscription every client is scoped to
        clients: Dictionary of initialized Azure SDK clients
    """

    name: str = "azure"

    def __init__(self):
        self._subscription_id: str = ""
        self._credential: Any = None
        self._clients: Dict[str, Any] = {}
        self._initialized = False

    @property
    def subscription_id(self) -> str:
        """Get the Azure subscription ID."""
        return self._subscription_id

    @property
    def credential(self) -> Any:
        """Get the TokenCredential the clients were built with."""
        return self._credential

    @property
    def clients(self) -> Dict[str, Any]:
        """Get the dictionary of Azure SDK clients."""
        return self._clients

    @property
    def initialized(self) -> bool:
        return self._initialized

    def initialize_clients(
        self,
        credentials: Dict[str, str],
        subscription_id: Optional[str] = None,
        credential_factory: Optional[Callable[[Dict[str, str]], Any]] = None
    ) -> None:
        """
        Initialize Azure SDK clients.

        Args:
            credentials: Azure credentials dictionary with (all optional):
                - azure_subscription_id: Azure subscription ID
                - azure_tenant_id: Azure AD tenant ID
                - azure_client_id: Service principal client ID
                - azure_client_secret: Service principal secret
            subscription_id: Subscription to use, takes precedence over the credentials file.
                When neither is set, the first subscription visible to the credential is used.
            credential_factory: Builds the TokenCredential from ``credentials``

        Raises:
            AuthenticationError: If the credential cannot be built or no subscription is available
        """
        factory = credential_factory or self._get_credential
        try:
            credential = factory(credentials)
        except (ClientAuthenticationError, ValueError) as e:
            logger.error(f"Failed to build Azure credential: {e}")
            raise AuthenticationError(f"Failed to build Azure credential: {e}") from e

        self._credential = credential
        self._subscription_id = (
            subscription_id
            or credentials.get("azure_subscription_id")
            or self._resolve_default_subscription(credential)
        )
        self._initialize_sdk_clients(credential)
        self._initialized = True
        logger.debug(f"Azure clients initialized for subscription {self._subscription_id}")

    def _get_credential(self, credentials: Dict[str, str]) -> Any:
        """Get Azure credential for SDK clients."""
        from azure.identity import DefaultAzureCredential, ClientSecretCredential

        client_id = credentials.get("azure_client_id")
        client_secret = credentials.get("azure_client_secret")
        tenant_id = credentials.get("azure_tenant_id")

        if client_id and client_secret and tenant_id:
            return ClientSecretCredential(
                tenant_id=tenant_id,
                client_id=client_id,
                client_secret=client_secret
            )
        else:
            return DefaultAzureCredential()

    def _resolve_default_subscription(self, credential: Any) -> str:
        """Pick the first subscription the credential can see."""
        from azure.mgmt.resource import SubscriptionClient

        try:
            subscriptions = list(SubscriptionClient(credential=credential).subscriptions.list())
        except ClientAuthenticationError as e:
            logger.error(f"PERMISSION DENIED listing subscriptions: {e.message}")
            raise AuthenticationError(f"Authentication failed: {e.message}") from e
        except AzureError as e:
            logger.error(f"Azure error listing subscriptions: {type(e).__name__}: {e}")
            raise AuthenticationError(f"Cannot list subscriptions: {e}") from e

        if not subscriptions:
            raise AuthenticationError("No subscription is available for the current Azure credential.")

        chosen = subscriptions[0]
        if len(subscriptions) > 1:
            logger.warning(
                f"No subscription specified, using {chosen.display_name} ({chosen.subscription_id}) "
                f"out of {len(subscriptions)} subscriptions"
            )
        return chosen.subscription_id

    def _initialize_sdk_clients(self, credential: Any) -> None:
        """Initialize all required Azure SDK clients."""
        from azure.mgmt.resource import ResourceManagementClient
        from azure.mgmt.storage import StorageManagementClient
        from azure.mgmt.web import WebSiteManagementClient
        from azure.mgmt.applicationinsights import ApplicationInsightsManagementClient

        subscription_id = self._subscription_id

        self._clients["resource"] = ResourceManagementClient(credential=credential, subscription_id=subscription_id)
        self._clients["storage"] = StorageManagementClient(credential=credential, subscription_id=subscription_id)
        self._clients["web"] = WebSiteManagementClient(credential=credential, subscription_id=subscription_id)
        self._clients["insights"] = ApplicationInsightsManagementClient(
            credential=credential, subscription_id=subscription_id
        )
