"""
Create-or-update engine for App Service resources.

Ensures, in order, that the resource group(s), the App Service Plan and the
app itself exist with the desired shape. Every step looks the resource up
first: "not found" selects the create branch, anything else that fails is
fatal and stops the remaining steps. Resources created by earlier steps are
left in place when a later step fails.

Deployment Order:
    1. Resource Group of the app
    2. Resource Group of the plan (only when it differs)
    3. App Service Plan
    4. Application Insights (looked up, or created for new function apps)
    5. Function App / Web App
"""

import hashlib
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple, TYPE_CHECKING

from azure.core.exceptions import (
    AzureError,
    ClientAuthenticationError,
    HttpResponseError,
    ResourceNotFoundError,
)
from azure.mgmt.core.tools import parse_resource_id
from azure.mgmt.web.models import SiteConfig, SkuDescription

from appservice_deployer.app_settings import AppSettingsMap, bind_application_insights
from appservice_deployer.constants import (
    APPINSIGHTS_INSTRUMENTATION_KEY,
    AZURE_WEB_JOBS_STORAGE,
    CONSUMPTION_PRICING_TIER,
    DEFAULT_PLAN_PREFIX,
    DEFAULT_WEBAPP_PRICING_TIER,
    WEBSITE_CONTENT_CONNECTION_STRING,
    WEBSITE_CONTENT_SHARE,
)
from appservice_deployer.core.context import AppServiceTarget
from appservice_deployer.core.exceptions import AuthenticationError, RemoteStateError
from appservice_deployer.providers.azure.runtime_handlers import get_runtime_handler
from appservice_deployer.runtime import (
    AppFlavor,
    OperatingSystem,
    PricingTier,
    RuntimeDescriptor,
    parse_pricing_tier,
)

if TYPE_CHECKING:
    from appservice_deployer.providers.azure.provider import AzureProvider

logger = logging.getLogger(__name__)

CREATE_NEW_RESOURCE_GROUP = "createNewResourceGroup"
CREATE_NEW_APP_SERVICE_PLAN = "createNewAppServicePlan"
CREATE_NEW_FUNCTION_APP = "createNewFunctionApp"
CREATE_NEW_WEB_APP = "createNewWebApp"
CREATE_NEW_STORAGE_ACCOUNT = "createNewStorageAccount"
CREATE_NEW_APP_INSIGHTS = "createNewApplicationInsights"


@dataclass(frozen=True)
class InsightsOptions:
    """Application Insights configuration: an instance name to bind, or disabled."""
    instance: Optional[str] = None
    disabled: bool = False


@dataclass
class ProvisionStep:
    """A named step; ``action`` receives the results of the steps before it."""
    name: str
    action: Callable[[Dict[str, Any]], Any]


@dataclass
class ProvisionPlan:
    steps: List[ProvisionStep] = field(default_factory=list)

    @property
    def step_names(self) -> List[str]:
        return [step.name for step in self.steps]


def default_pricing_tier(flavor: AppFlavor) -> PricingTier:
    """Consumption (Y1) for function apps, P1v2 for web apps."""
    if flavor == AppFlavor.FUNCTION_APP:
        return parse_pricing_tier(CONSUMPTION_PRICING_TIER)
    return parse_pricing_tier(DEFAULT_WEBAPP_PRICING_TIER)


def storage_account_name(target: AppServiceTarget) -> str:
    """
    Deterministic storage account name for a function app.

    Storage account names are global, 3-24 lowercase alphanumerics. A short
    hash of resource group + app keeps reruns on the same account.
    """
    prefix = "st" + re.sub(r"[^a-z0-9]", "", target.app_name.lower())
    digest = hashlib.sha1(f"{target.resource_group}/{target.app_name}".lower().encode("utf-8")).hexdigest()
    return f"{prefix[:18]}{digest[:6]}"


def _clear_tags(site: Any) -> None:
    """The site PUT is rejected for some apps unless existing tags are dropped first."""
    site.tags = None


def _sku_matches(plan: Any, tier: PricingTier) -> bool:
    sku = getattr(plan, "sku", None)
    return sku is not None and str(getattr(sku, "name", "")).lower() == tier.size.lower()


def _is_consumption_plan(plan: Any) -> bool:
    sku = getattr(plan, "sku", None)
    return sku is not None and getattr(sku, "tier", None) == "Dynamic"


class ResourceProvisioner:
    """
    Idempotent create-or-update of resource group, App Service Plan and app.

    Resource group lookups are cached per instance (case-insensitive), so a
    group shared by the app and its plan is looked up and created once.

    Attributes:
        provider: Initialized AzureProvider
        operation_flags: Receives a flag for every resource that was created
    """

    def __init__(self, provider: 'AzureProvider', operation_flags: Optional[Dict[str, str]] = None):
        self.provider = provider
        self.operation_flags = operation_flags if operation_flags is not None else {}
        self._resource_groups: Dict[str, Any] = {}

    def _flag(self, name: str) -> None:
        self.operation_flags[name] = "true"

    @staticmethod
    def _get_or_none(getter: Callable[..., Any], *args, **kwargs) -> Optional[Any]:
        """Call an SDK getter, mapping "not found" (exception or None) to None."""
        try:
            return getter(*args, **kwargs)
        except ResourceNotFoundError:
            return None

    # ==========================================
    # 1. Resource Group
    # ==========================================

    def ensure_resource_group(self, name: str, region: str) -> Any:
        """
        Return the resource group, creating it in ``region`` if it does not exist.

        An existing group is returned unchanged, its region is never altered.

        Args:
            name: Resource group name
            region: Region used only when the group is created

        Returns:
            The ResourceGroup handle.

        Raises:
            azure.core.exceptions.HttpResponseError: If lookup or creation fails
        """
        cache_key = name.lower()
        if cache_key in self._resource_groups:
            return self._resource_groups[cache_key]

        resource_client = self.provider.clients["resource"]
        try:
            group = self._get_or_none(resource_client.resource_groups.get, name)
            if group is None:
                logger.info(f"Creating Resource Group: {name} in {region}")
                group = resource_client.resource_groups.create_or_update(
                    resource_group_name=name,
                    parameters={"location": region}
                )
                self._flag(CREATE_NEW_RESOURCE_GROUP)
                logger.info(f"✓ Resource Group created: {name}")
            else:
                logger.info(f"✓ Resource Group exists: {name}")
        except ClientAuthenticationError as e:
            logger.error(f"PERMISSION DENIED on Resource Group {name}: {e.message}")
            raise
        except HttpResponseError as e:
            logger.error(f"Failed to ensure Resource Group {name}: {e.status_code} - {e.message}")
            raise
        except AzureError as e:
            logger.error(f"Azure error ensuring Resource Group {name}: {type(e).__name__}: {e}")
            raise

        self._resource_groups[cache_key] = group
        return group

    # ==========================================
    # 2. App Service Plan
    # ==========================================

    def resolve_plan_location(self, target: AppServiceTarget) -> Tuple[str, str]:
        """
        Resolve (resource group, name) of the App Service Plan.

        Order: explicit plan name; else the plan the existing app runs on;
        else ``asp-<app name>`` in the plan resource group.
        """
        if target.plan_name:
            return target.effective_plan_resource_group, target.plan_name

        web_client = self.provider.clients["web"]
        app = self._get_or_none(web_client.web_apps.get, target.resource_group, target.app_name)
        if app is not None and getattr(app, "server_farm_id", None):
            parts = parse_resource_id(app.server_farm_id)
            logger.debug(f"Using current App Service Plan {parts['name']} of app {target.app_name}")
            return parts["resource_group"], parts["name"]

        return target.effective_plan_resource_group, f"{DEFAULT_PLAN_PREFIX}{target.app_name}"

    def ensure_hosting_plan(
        self,
        target: AppServiceTarget,
        runtime: RuntimeDescriptor,
        flavor: AppFlavor = AppFlavor.FUNCTION_APP
    ) -> Any:
        """
        Return the App Service Plan, creating it or updating its pricing tier.

        Not found: create with the requested tier (or the flavor default),
        the target region and the runtime OS. Found with an explicitly
        requested tier: update the SKU of the existing plan in place. Found
        without a requested tier: untouched.

        Returns:
            The AppServicePlan handle.

        Raises:
            ConfigurationError: If the requested tier is unknown
            azure.core.exceptions.HttpResponseError: If lookup, creation or update fails
        """
        plan_rg, plan_name = self.resolve_plan_location(target)
        requested_tier = parse_pricing_tier(target.pricing_tier)
        web_client = self.provider.clients["web"]

        try:
            plan = self._get_or_none(
                web_client.app_service_plans.get,
                resource_group_name=plan_rg,
                name=plan_name
            )

            if plan is None:
                tier = requested_tier or default_pricing_tier(flavor)
                logger.info(f"Creating App Service Plan: {plan_name} ({tier.size}, {runtime.os.value})")
                plan = web_client.app_service_plans.begin_create_or_update(
                    resource_group_name=plan_rg,
                    name=plan_name,
                    app_service_plan={
                        "location": target.region,
                        "sku": tier.to_sku(),
                        "kind": "linux" if runtime.is_linux_based else "app",
                        "reserved": runtime.is_linux_based,
                    }
                ).result()
                self._flag(CREATE_NEW_APP_SERVICE_PLAN)
                logger.info(f"✓ App Service Plan created: {plan_name}")
                return plan

            if requested_tier is not None and not _sku_matches(plan, requested_tier):
                logger.info(f"Updating pricing tier of App Service Plan {plan_name} to {requested_tier.size}")
                plan.sku = SkuDescription(name=requested_tier.size, tier=requested_tier.tier)
                plan = web_client.app_service_plans.begin_create_or_update(
                    resource_group_name=plan_rg,
                    name=plan_name,
                    app_service_plan=plan
                ).result()
                logger.info(f"✓ App Service Plan updated: {plan_name}")
            else:
                logger.info(f"✓ App Service Plan exists: {plan_name}")
            return plan
        except ClientAuthenticationError as e:
            logger.error(f"PERMISSION DENIED on App Service Plan {plan_name}: {e.message}")
            raise
        except HttpResponseError as e:
            logger.error(f"Failed to ensure App Service Plan {plan_name}: {e.status_code} - {e.message}")
            raise
        except AzureError as e:
            logger.error(f"Azure error ensuring App Service Plan {plan_name}: {type(e).__name__}: {e}")
            raise

    # ==========================================
    # 3. Storage Account (function apps)
    # ==========================================

    def ensure_storage_account(self, target: AppServiceTarget) -> str:
        """
        Ensure the function app storage account exists and return its connection string.

        Azure Functions keep triggers state, logs and (on Windows consumption
        plans) the content share in this account.
        """
        storage_client = self.provider.clients["storage"]
        rg_name = target.resource_group
        account_name = storage_account_name(target)

        account = self._get_or_none(
            storage_client.storage_accounts.get_properties,
            resource_group_name=rg_name,
            account_name=account_name
        )
        if account is None:
            logger.info(f"Creating Storage Account: {account_name}")
            storage_client.storage_accounts.begin_create(
                resource_group_name=rg_name,
                account_name=account_name,
                parameters={
                    "location": target.region,
                    "sku": {"name": "Standard_LRS"},
                    "kind": "StorageV2",
                    "enable_https_traffic_only": True,
                    "minimum_tls_version": "TLS1_2",
                }
            ).result()
            self._flag(CREATE_NEW_STORAGE_ACCOUNT)
            logger.info(f"✓ Storage Account created: {account_name}")

        storage_keys = storage_client.storage_accounts.list_keys(
            resource_group_name=rg_name,
            account_name=account_name
        )
        storage_key = storage_keys.keys[0].value

        return (
            f"DefaultEndpointsProtocol=https;"
            f"AccountName={account_name};"
            f"AccountKey={storage_key};"
            f"EndpointSuffix=core.windows.net"
        )

    def _add_storage_settings(
        self,
        settings: Dict[str, str],
        target: AppServiceTarget,
        runtime: RuntimeDescriptor,
        plan: Any,
        include_content_share: bool
    ) -> None:
        if settings.get(AZURE_WEB_JOBS_STORAGE):
            return
        connection_string = self.ensure_storage_account(target)
        settings[AZURE_WEB_JOBS_STORAGE] = connection_string
        if include_content_share and runtime.os == OperatingSystem.WINDOWS and _is_consumption_plan(plan):
            settings.setdefault(WEBSITE_CONTENT_CONNECTION_STRING, connection_string)
            settings.setdefault(WEBSITE_CONTENT_SHARE, target.app_name.lower())

    # ==========================================
    # 4. Application Insights
    # ==========================================

    def _create_insights_component(self, target: AppServiceTarget, name: str) -> Optional[Any]:
        """Create a web Application Insights component; a failure only warns."""
        insights_client = self.provider.clients["insights"]
        try:
            logger.info(f"Creating Application Insights: {name}")
            component = insights_client.components.create_or_update(
                resource_group_name=target.resource_group,
                resource_name=name,
                insight_properties={
                    "location": target.region,
                    "kind": "web",
                    "application_type": "web",
                }
            )
        except AzureError as e:
            logger.warning(
                f"Unable to create Application Insights {name}: {e}. "
                f"Please create and configure it in the Azure Portal if needed."
            )
            return None
        self._flag(CREATE_NEW_APP_INSIGHTS)
        logger.info(f"✓ Application Insights created: {name}")
        return component

    def resolve_insights_component(
        self,
        target: AppServiceTarget,
        instance_name: Optional[str],
        create_if_missing: bool
    ) -> Optional[Any]:
        """
        Find the Application Insights component to bind.

        A named instance is looked up in the app's resource group and created
        there when it does not exist. Without a name a component named after
        the app is created, but only when ``create_if_missing`` is set.

        Returns:
            The ApplicationInsightsComponent, or None.
        """
        if not instance_name:
            if not create_if_missing:
                return None
            return self._create_insights_component(target, target.app_name)

        insights_client = self.provider.clients["insights"]
        try:
            component = self._get_or_none(
                insights_client.components.get,
                resource_group_name=target.resource_group,
                resource_name=instance_name
            )
        except HttpResponseError as e:
            logger.debug(f"Lookup of Application Insights {instance_name} failed: {e.message}")
            component = None
        if component is None:
            logger.warning(
                f"The application insights {instance_name} cannot be found, "
                f"will create it in resource group {target.resource_group}."
            )
            return self._create_insights_component(target, instance_name)
        logger.info(f"✓ Application Insights exists: {instance_name}")
        return component

    def bind_insights_component(
        self,
        app_settings: AppSettingsMap,
        target: AppServiceTarget,
        insights: InsightsOptions,
        create_if_missing: bool = False
    ) -> AppSettingsMap:
        """
        Bind the instrumentation key of a looked-up or new component.

        Skipped when insights are disabled or a key is already in the settings.
        """
        if insights.disabled:
            logger.info("Skip creating application insights")
            return app_settings
        if app_settings.get(APPINSIGHTS_INSTRUMENTATION_KEY):
            return app_settings

        component = self.resolve_insights_component(target, insights.instance, create_if_missing)
        key = getattr(component, "instrumentation_key", None) if component is not None else None
        if key:
            bind_application_insights(app_settings, key)
        return app_settings

    # ==========================================
    # 5. Function App / Web App
    # ==========================================

    def create_or_update_app(
        self,
        target: AppServiceTarget,
        runtime: RuntimeDescriptor,
        app_settings: AppSettingsMap,
        plan: Any,
        flavor: AppFlavor = AppFlavor.FUNCTION_APP,
        insights: Optional[InsightsOptions] = None
    ) -> Any:
        """
        Create the app, or update an existing one, on the given plan.

        Args:
            target: The app to create or update
            runtime: Resolved runtime
            app_settings: Merged app settings
            plan: AppServicePlan returned by ensure_hosting_plan
            flavor: Function app or web app
            insights: Application Insights binding; None leaves the settings as merged

        Returns:
            The Site handle.

        Raises:
            azure.core.exceptions.HttpResponseError: If lookup or commit fails
        """
        web_client = self.provider.clients["web"]
        label = "Function App" if flavor == AppFlavor.FUNCTION_APP else "Web App"

        try:
            existing = self._get_or_none(web_client.web_apps.get, target.resource_group, target.app_name)
            if insights is not None:
                self.bind_insights_component(
                    app_settings, target, insights,
                    create_if_missing=existing is None and flavor == AppFlavor.FUNCTION_APP
                )
            if existing is None:
                return self._create_app(target, runtime, app_settings, plan, flavor, label)
            return self._update_app(existing, target, runtime, app_settings, plan, flavor, label)
        except ClientAuthenticationError as e:
            logger.error(f"PERMISSION DENIED on {label} {target.app_name}: {e.message}")
            raise
        except HttpResponseError as e:
            logger.error(f"Failed to create or update {label} {target.app_name}: {e.status_code} - {e.message}")
            raise
        except AzureError as e:
            logger.error(f"Azure error on {label} {target.app_name}: {type(e).__name__}: {e}")
            raise

    def _create_app(self, target, runtime, app_settings, plan, flavor, label) -> Any:
        handler = get_runtime_handler(runtime.os)
        web_client = self.provider.clients["web"]

        settings = dict(handler.app_settings(runtime))
        settings.update(app_settings.as_dict())
        if flavor == AppFlavor.FUNCTION_APP:
            self._add_storage_settings(settings, target, runtime, plan, include_content_share=True)

        site_config = handler.site_config(runtime, flavor)
        site_config["app_settings"] = [{"name": name, "value": value} for name, value in settings.items()]

        logger.info(f"Creating {label}: {target.app_name}")
        site = web_client.web_apps.begin_create_or_update(
            resource_group_name=target.resource_group,
            name=target.app_name,
            site_envelope={
                "location": target.region,
                "kind": handler.kind(flavor),
                "server_farm_id": plan.id,
                "reserved": runtime.is_linux_based,
                "https_only": True,
                "site_config": site_config,
            }
        ).result()
        self._flag(CREATE_NEW_FUNCTION_APP if flavor == AppFlavor.FUNCTION_APP else CREATE_NEW_WEB_APP)
        logger.info(f"✓ {label} created: {target.app_name}")
        return site

    def _update_app(self, site, target, runtime, app_settings, plan, flavor, label) -> Any:
        handler = get_runtime_handler(runtime.os)
        web_client = self.provider.clients["web"]

        logger.info(f"Updating {label}: {target.app_name}")

        current = web_client.web_apps.list_application_settings(
            resource_group_name=target.resource_group,
            name=target.app_name
        )
        settings = dict(current.properties or {})
        if runtime.specified:
            settings.update(handler.app_settings(runtime))
        settings.update(app_settings.as_dict())
        for name in app_settings.removed:
            settings.pop(name, None)
        if flavor == AppFlavor.FUNCTION_APP:
            self._add_storage_settings(settings, target, runtime, plan, include_content_share=False)

        site.server_farm_id = plan.id
        if runtime.specified:
            site.reserved = runtime.is_linux_based
            if site.site_config is None:
                site.site_config = SiteConfig()
            for attribute, value in handler.site_config(runtime, flavor).items():
                setattr(site.site_config, attribute, value)
        else:
            logger.info(f"No runtime configured, keeping the current runtime of {target.app_name}")
        _clear_tags(site)

        site = web_client.web_apps.begin_create_or_update(
            resource_group_name=target.resource_group,
            name=target.app_name,
            site_envelope=site
        ).result()

        web_client.web_apps.update_application_settings(
            resource_group_name=target.resource_group,
            name=target.app_name,
            app_settings={"properties": settings}
        )
        logger.info(f"✓ {label} updated: {target.app_name}")
        return site

    # ==========================================
    # Orchestration
    # ==========================================

    def build_provision_plan(
        self,
        target: AppServiceTarget,
        runtime: RuntimeDescriptor,
        app_settings: AppSettingsMap,
        flavor: AppFlavor = AppFlavor.FUNCTION_APP,
        insights: Optional[InsightsOptions] = None
    ) -> ProvisionPlan:
        """Build the ordered steps: app RG, plan RG if distinct, plan, app."""
        steps = [
            ProvisionStep(
                "ensure_resource_group",
                lambda results: self.ensure_resource_group(target.resource_group, target.region)
            ),
        ]
        if target.plan_in_separate_resource_group:
            steps.append(ProvisionStep(
                "ensure_plan_resource_group",
                lambda results: self.ensure_resource_group(target.effective_plan_resource_group, target.region)
            ))
        steps.append(ProvisionStep(
            "ensure_hosting_plan",
            lambda results: self.ensure_hosting_plan(target, runtime, flavor)
        ))
        steps.append(ProvisionStep(
            "create_or_update_app",
            lambda results: self.create_or_update_app(
                target, runtime, app_settings, results["ensure_hosting_plan"], flavor, insights
            )
        ))
        return ProvisionPlan(steps=steps)

    def orchestrate(self, plan: ProvisionPlan) -> Dict[str, Any]:
        """
        Run the steps strictly in order, stopping at the first failure.

        Returns:
            Step name -> result handle.

        Raises:
            AuthenticationError: If the credential is rejected
            RemoteStateError: If a step fails, carrying the step name and SDK error
        """
        results: Dict[str, Any] = {}
        for step in plan.steps:
            logger.debug(f"Provisioning step: {step.name}")
            try:
                results[step.name] = step.action(results)
            except ClientAuthenticationError as e:
                raise AuthenticationError(f"Authentication failed in step '{step.name}': {e.message}") from e
            except AzureError as e:
                raise RemoteStateError(step.name, e) from e
        return results
