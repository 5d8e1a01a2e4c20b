"""
Configuration loading utilities.

This module loads the deployment configuration from the project directory,
validates it against the pydantic schema and checks parameter values before
any remote call is made.

Files:
    1. azure-deploy.json - App, plan, runtime, app settings (required)
    2. config_credentials_azure.json - Service principal / subscription (optional)

Every problem found is collected and reported in a single ConfigurationError,
so a user fixes all of them in one pass.

Usage:
    from appservice_deployer.core.config_loader import load_deploy_config, validate_parameters

    config = load_deploy_config(Path("/work/my-functions"))
    validate_parameters(config, AppFlavor.FUNCTION_APP)
"""

import json
import logging
import re
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from appservice_deployer.constants import (
    APP_NAME_PATTERN,
    APP_SERVICE_PLAN_NAME_PATTERN,
    APPINSIGHTS_INSTRUMENTATION_KEY,
    CONFIG_CREDENTIALS_FILE,
    CONFIG_FILE,
    DEFAULT_REGION,
    GUID_PATTERN,
    KNOWN_REGIONS,
    RESOURCE_GROUP_PATTERN,
)
from .context import AppServiceTarget
from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)


# ==========================================
# Schema
# ==========================================

class _CamelModel(BaseModel):
    """Base model reading camelCase JSON keys into snake_case attributes."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class RuntimeConfig(_CamelModel):
    os: Optional[str] = None
    java_version: Optional[str] = None
    web_container: Optional[str] = None
    image: Optional[str] = None
    registry_url: Optional[str] = None
    username: Optional[str] = None
    password: Optional[str] = None
    startup_command: Optional[str] = None


class AppServiceConfig(_CamelModel):
    """
    Parsed azure-deploy.json.

    Example:
        {
            "appName": "my-functions",
            "resourceGroup": "rg-functions",
            "region": "westeurope",
            "pricingTier": "P1v2",
            "runtime": {"os": "linux", "javaVersion": "Java 11"},
            "appSettings": {"MY_SETTING": "value"}
        }
    """
    app_name: str
    resource_group: str
    subscription_id: Optional[str] = None
    region: Optional[str] = None
    pricing_tier: Optional[str] = None
    app_service_plan_name: Optional[str] = None
    app_service_plan_resource_group: Optional[str] = None
    runtime: RuntimeConfig = Field(default_factory=RuntimeConfig)
    app_settings: Dict[str, str] = Field(default_factory=dict)
    deployment_type: Optional[str] = None
    app_insights_key: Optional[str] = None
    app_insights_instance: Optional[str] = None
    disable_app_insights: bool = False
    local_debug_config: Optional[str] = None


class AzureCredentials(BaseModel):
    """Content of config_credentials_azure.json. Every field is optional."""
    model_config = ConfigDict(extra="ignore")

    azure_subscription_id: Optional[str] = None
    azure_tenant_id: Optional[str] = None
    azure_client_id: Optional[str] = None
    azure_client_secret: Optional[str] = None


# ==========================================
# Loading
# ==========================================

def _load_json_file(file_path: Path, required: bool = True) -> Dict[str, Any]:
    """
    Load a JSON file and return its contents as a dictionary.

    Args:
        file_path: Path to the JSON file
        required: If True, raise error when file is missing. If False, return empty dict.

    Raises:
        ConfigurationError: If file is missing (when required) or has invalid JSON
    """
    if not file_path.exists():
        if required:
            raise ConfigurationError(
                f"Required configuration file not found: {file_path.name}",
                config_file=str(file_path)
            )
        return {}

    try:
        with open(file_path, "r", encoding="utf-8-sig") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise ConfigurationError(
            f"Invalid JSON in configuration file: {e}",
            config_file=str(file_path)
        ) from e

    if not isinstance(data, dict):
        raise ConfigurationError(
            "Configuration file must contain a JSON object",
            config_file=str(file_path)
        )
    return data


def _format_validation_errors(error: ValidationError) -> List[str]:
    messages = []
    for item in error.errors():
        location = ".".join(str(part) for part in item.get("loc", ())) or "<root>"
        messages.append(f"{location}: {item.get('msg')}")
    return messages


def parse_deploy_config(data: Dict[str, Any], config_file: Optional[str] = None) -> AppServiceConfig:
    """
    Validate raw configuration data against the schema.

    Raises:
        ConfigurationError: With one entry per schema violation.
    """
    try:
        return AppServiceConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError(
            "Invalid deployment configuration",
            errors=_format_validation_errors(e),
            config_file=config_file
        ) from e


def load_deploy_config(base_directory: Path, file_name: str = CONFIG_FILE) -> AppServiceConfig:
    """
    Load and parse the deployment configuration of a project.

    Args:
        base_directory: Project directory containing azure-deploy.json
        file_name: Configuration file name, relative to the base directory

    Returns:
        The parsed AppServiceConfig

    Raises:
        ConfigurationError: If the file is missing, not JSON or fails the schema
    """
    config_path = Path(base_directory) / file_name
    data = _load_json_file(config_path, required=True)
    config = parse_deploy_config(data, config_file=str(config_path))
    logger.debug(f"Loaded deployment configuration for app '{config.app_name}' from {config_path}")
    return config


def load_credentials(base_directory: Path) -> Dict[str, str]:
    """
    Load Azure credentials for the project.

    The credentials file is optional. Without it, DefaultAzureCredential
    (environment, managed identity, Azure CLI login) is used.

    Returns:
        Credentials with only the keys that are set, e.g.
        {"azure_subscription_id": "...", "azure_tenant_id": "..."}
    """
    credentials_path = Path(base_directory) / CONFIG_CREDENTIALS_FILE
    data = _load_json_file(credentials_path, required=False)
    if not data:
        return {}
    try:
        credentials = AzureCredentials.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError(
            "Invalid credentials file",
            errors=_format_validation_errors(e),
            config_file=str(credentials_path)
        ) from e
    return {key: value for key, value in credentials.model_dump().items() if value}


def build_target(config: AppServiceConfig, credentials: Optional[Dict[str, str]] = None) -> AppServiceTarget:
    """Derive the AppServiceTarget, filling in the default region."""
    credentials = credentials or {}
    return AppServiceTarget(
        subscription_id=config.subscription_id or credentials.get("azure_subscription_id"),
        resource_group=config.resource_group,
        app_name=config.app_name,
        region=config.region or DEFAULT_REGION,
        pricing_tier=config.pricing_tier or None,
        plan_name=config.app_service_plan_name or None,
        plan_resource_group=config.app_service_plan_resource_group or None,
    )


# ==========================================
# Parameter Validation
# ==========================================

def _validate_names(config: AppServiceConfig, errors: List[str]) -> None:
    if not re.match(APP_NAME_PATTERN, config.app_name):
        errors.append(
            f"appName '{config.app_name}': only alphanumeric characters and hyphens are allowed, "
            f"2-60 characters, cannot start or end with a hyphen"
        )

    for key, value in (
        ("resourceGroup", config.resource_group),
        ("appServicePlanResourceGroup", config.app_service_plan_resource_group),
    ):
        if value is None:
            continue
        if not re.match(RESOURCE_GROUP_PATTERN, value) or value.endswith("."):
            errors.append(
                f"{key} '{value}': only alphanumeric characters, periods, underscores, hyphens "
                f"and parenthesis are allowed, 1-90 characters, cannot end with a period"
            )

    plan_name = config.app_service_plan_name
    if plan_name is not None and not re.match(APP_SERVICE_PLAN_NAME_PATTERN, plan_name):
        errors.append(
            f"appServicePlanName '{plan_name}': only alphanumeric characters and hyphens are allowed, "
            f"1-40 characters"
        )


def _validate_runtime(config: AppServiceConfig, flavor, errors: List[str]) -> None:
    from appservice_deployer.runtime import AppFlavor, resolve_runtime, parse_pricing_tier

    runtime = config.runtime
    try:
        resolve_runtime(
            os=runtime.os,
            java_version=runtime.java_version,
            web_container=runtime.web_container,
            image=runtime.image,
            registry_url=runtime.registry_url,
            registry_username=runtime.username,
            registry_password=runtime.password,
            startup_command=runtime.startup_command,
            flavor=flavor,
        )
    except ConfigurationError as e:
        errors.append(e.message)

    if flavor == AppFlavor.FUNCTION_APP and runtime.web_container:
        logger.warning("runtime.webContainer is ignored for function apps")

    try:
        parse_pricing_tier(config.pricing_tier)
    except ConfigurationError as e:
        errors.append(e.message)


def _validate_application_insights(config: AppServiceConfig, errors: List[str]) -> None:
    key = config.app_insights_key or config.app_settings.get(APPINSIGHTS_INSTRUMENTATION_KEY)
    if config.disable_app_insights and (key or config.app_insights_instance):
        errors.append(
            "Contradictory configurations for application insights: an instrumentation key "
            "or instance is specified while application insights is disabled"
        )
    if config.app_insights_key and not re.match(GUID_PATTERN, config.app_insights_key):
        errors.append(f"appInsightsKey '{config.app_insights_key}' is not a valid GUID")


def validate_parameters(config: AppServiceConfig, flavor, known_regions: Optional[List[str]] = None) -> List[str]:
    """
    Check every parameter of the configuration before deployment.

    Args:
        config: Parsed configuration
        flavor: AppFlavor being deployed
        known_regions: Region names to check against (defaults to the offline list)

    Returns:
        Warnings; an unknown region only warns because new regions appear
        before this list is updated.

    Raises:
        ConfigurationError: Listing every violation found.
    """
    from appservice_deployer.deployment_type import parse_deployment_type

    errors: List[str] = []
    warnings: List[str] = []

    _validate_names(config, errors)
    _validate_runtime(config, flavor, errors)
    _validate_application_insights(config, errors)

    if config.deployment_type and config.deployment_type.strip():
        try:
            parse_deployment_type(config.deployment_type)
        except ConfigurationError as e:
            errors.append(e.message)

    regions = [region.lower() for region in (known_regions or KNOWN_REGIONS)]
    if config.region and config.region.lower() not in regions:
        warning = f"The value of region '{config.region}' may be invalid"
        warnings.append(warning)
        logger.warning(warning)

    if errors:
        raise ConfigurationError("Invalid deployment configuration", errors=errors)
    return warnings
