"""
Top-level operations.

    package_function_app      - Stage a Java function app for deployment/local run
    package_zip               - Stage, then zip the staging directory
    deploy_function_app       - Provision the function app and publish the staged content
    deploy_web_app            - Provision the web app and publish the build artifact
    run_function_app_locally  - Run the staged function app with Core Tools

Usage:
    project = ProjectDescriptor(base_directory=..., build_directory=..., artifact=...)
    context = create_deployment_context(project)
    package_function_app(context, scanner)
    deploy_function_app(context)
"""

import logging
import shutil
from pathlib import Path
from typing import Any, Callable, Dict, Optional

from appservice_deployer.app_settings import (
    AppSettingsMap,
    bind_application_insights,
    merge_app_settings,
)
from appservice_deployer.constants import CONFIG_FILE, STAGING_FOLDER, WEBAPP_STAGING_FOLDER
from appservice_deployer.core.config_loader import (
    AppServiceConfig,
    load_credentials,
    load_deploy_config,
    validate_parameters,
)
from appservice_deployer.core.context import DeploymentContext, ProjectDescriptor
from appservice_deployer.core.exceptions import ConfigurationError, DeploymentError
from appservice_deployer.core.protocols import EntryPointScanner, ExtensionInstaller
from appservice_deployer.deployment_type import (
    DeploymentDescriptor,
    DeploymentType,
    build_deployment_descriptor,
    resolve_deployment_type,
    resolve_web_app_deployment_type,
)
from appservice_deployer.functions.archive import check_staging_directory, package_staging_directory
from appservice_deployer.functions.core_tools import (
    DEFAULT_DEBUG_CONFIG,
    FunctionCoreTools,
    check_local_java_version,
    validate_artifact_compile_version,
)
from appservice_deployer.functions.packager import FunctionMetadataGenerator
from appservice_deployer.logger import configure_logger_from_file, print_stack_trace
from appservice_deployer.providers.azure.provisioner import InsightsOptions, ResourceProvisioner
from appservice_deployer.providers.azure.publishers import publish_artifact
from appservice_deployer.providers.azure.triggers import (
    list_http_trigger_urls,
    portal_url,
    start_app_if_stopped,
)
from appservice_deployer.runtime import AppFlavor, RuntimeDescriptor, resolve_runtime

logger = logging.getLogger(__name__)


def create_deployment_context(
    project: ProjectDescriptor,
    flavor: AppFlavor = AppFlavor.FUNCTION_APP,
    credential_factory: Optional[Callable[[Dict[str, str]], Any]] = None,
    config_file: str = CONFIG_FILE
) -> DeploymentContext:
    """
    Load azure-deploy.json and the optional credentials file of a project.

    The ``mode`` field of the configuration file switches on DEBUG logging.

    Raises:
        ConfigurationError: If the configuration is missing or invalid
    """
    configure_logger_from_file(Path(project.base_directory) / config_file)
    config = load_deploy_config(project.base_directory, config_file)
    credentials = load_credentials(project.base_directory)
    staging_folder = STAGING_FOLDER if flavor == AppFlavor.FUNCTION_APP else WEBAPP_STAGING_FOLDER
    return DeploymentContext.from_config(
        project, config, credentials,
        credential_factory=credential_factory,
        staging_folder=staging_folder,
    )


def _resolve_runtime(config: AppServiceConfig, flavor: AppFlavor) -> RuntimeDescriptor:
    runtime = config.runtime
    return resolve_runtime(
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


# ==========================================
# Packaging
# ==========================================

def package_function_app(
    context: DeploymentContext,
    scanner: EntryPointScanner,
    installer: Optional[ExtensionInstaller] = None
) -> Optional[Path]:
    """
    Stage the function app into ``context.staging_directory``.

    Args:
        context: Deployment context
        scanner: Finds the function entry points in the artifact
        installer: Extension installer, defaults to Azure Functions Core Tools

    Returns:
        The staging directory, or None when no function was found.
    """
    runtime = _resolve_runtime(context.config, AppFlavor.FUNCTION_APP)
    if runtime.java_version is not None:
        check_local_java_version(runtime.java_version)

    generator = FunctionMetadataGenerator(
        context.project,
        context.staging_directory,
        scanner,
        installer=installer if installer is not None else FunctionCoreTools(),
    )
    if generator.stage() is None:
        return None
    return context.staging_directory


def package_zip(
    context: DeploymentContext,
    scanner: EntryPointScanner,
    installer: Optional[ExtensionInstaller] = None
) -> Optional[Path]:
    """Stage the function app, then write ``<staging>.zip`` without local.settings.json."""
    staging_directory = package_function_app(context, scanner, installer)
    if staging_directory is None:
        return None
    return package_staging_directory(staging_directory)


# ==========================================
# Deployment
# ==========================================

def _provision_and_publish(
    context: DeploymentContext,
    runtime: RuntimeDescriptor,
    app_settings: AppSettingsMap,
    flavor: AppFlavor,
    descriptor: DeploymentDescriptor
) -> Any:
    """Run the provisioning plan, then publish. Returns the app's Site."""
    target = context.target
    insights = InsightsOptions(
        instance=context.config.app_insights_instance,
        disabled=context.config.disable_app_insights,
    )
    try:
        provisioner = ResourceProvisioner(context.provider, context.operation_flags)
        results = provisioner.orchestrate(
            provisioner.build_provision_plan(target, runtime, app_settings, flavor, insights=insights)
        )
        publish_artifact(context.provider, target, descriptor)
    except DeploymentError as e:
        print_stack_trace()
        logger.error(f"✗ Deployment of {target.app_name} failed: {e}")
        raise
    return results["create_or_update_app"]


def deploy_function_app(context: DeploymentContext) -> Any:
    """
    Provision the function app and publish the staged content.

    Configuration and staging problems are reported before any remote call.

    Returns:
        The deployed Site.

    Raises:
        ConfigurationError: Invalid configuration or missing staging content
        LocalToolingError: The artifact targets a newer Java than the runtime
        AuthenticationError: Credential rejected
        RemoteStateError: A provisioning step failed
        PublishError: The artifact could not be pushed
    """
    config = context.config
    target = context.target
    flavor = AppFlavor.FUNCTION_APP

    validate_parameters(config, flavor)
    runtime = _resolve_runtime(config, flavor)
    deployment_type = resolve_deployment_type(config.deployment_type, runtime.os, target.pricing_tier_specified)
    if deployment_type != DeploymentType.DOCKER:
        check_staging_directory(context.staging_directory)
    if runtime.java_version is not None:
        validate_artifact_compile_version(context.project.artifact, runtime.java_version)

    app_settings = merge_app_settings(config.app_settings)
    bind_application_insights(app_settings, config.app_insights_key, config.disable_app_insights)

    context.set_flag("os", runtime.os.value)
    context.set_flag("deploymentType", deployment_type.value)
    context.set_flag("pricingTier", target.pricing_tier or "")

    logger.info(f"Deploying function app {target.app_name} to resource group {target.resource_group}")
    descriptor = build_deployment_descriptor(deployment_type, context.staging_directory)
    site = _provision_and_publish(context, runtime, app_settings, flavor, descriptor)

    if deployment_type != DeploymentType.DOCKER:
        start_app_if_stopped(context.provider, target)
        list_http_trigger_urls(context.provider, target)

    logger.info(f"✓ Successfully deployed the function app at https://{target.app_name}.azurewebsites.net")
    logger.info(f"  Portal: {portal_url(context.provider, target)}")
    return site


def _stage_web_artifact(context: DeploymentContext) -> Path:
    artifact = Path(context.project.artifact)
    if not artifact.is_file():
        raise ConfigurationError(f"Build artifact not found: {artifact}. Build the project first.")
    staging = context.staging_directory
    if staging.exists():
        shutil.rmtree(staging)
    staging.mkdir(parents=True)
    shutil.copy2(artifact, staging / artifact.name)
    return staging / artifact.name


def deploy_web_app(context: DeploymentContext) -> Any:
    """
    Provision the web app and publish the build artifact (war/jar/ear).

    Docker web apps only get provisioned; the image is pulled by App Service.

    Returns:
        The deployed Site.
    """
    config = context.config
    target = context.target
    flavor = AppFlavor.WEB_APP

    validate_parameters(config, flavor)
    runtime = _resolve_runtime(config, flavor)
    deployment_type = resolve_web_app_deployment_type(config.deployment_type, runtime.os)
    artifact = None
    if deployment_type != DeploymentType.DOCKER:
        artifact = _stage_web_artifact(context)

    app_settings = AppSettingsMap.from_user_settings(config.app_settings)
    bind_application_insights(app_settings, config.app_insights_key, config.disable_app_insights)

    context.set_flag("os", runtime.os.value)
    context.set_flag("deploymentType", deployment_type.value)

    logger.info(f"Deploying web app {target.app_name} to resource group {target.resource_group}")
    descriptor = build_deployment_descriptor(deployment_type, context.staging_directory, artifact)
    site = _provision_and_publish(context, runtime, app_settings, flavor, descriptor)

    logger.info(f"✓ Successfully deployed the web app at https://{target.app_name}.azurewebsites.net")
    return site


# ==========================================
# Local Run
# ==========================================

def run_function_app_locally(
    context: DeploymentContext,
    core_tools: Optional[FunctionCoreTools] = None,
    enable_debug: bool = False
) -> int:
    """
    Run the staged function app with ``func host start``.

    Args:
        context: Deployment context
        core_tools: Core Tools wrapper, resolved from PATH by default
        enable_debug: Attach the JDWP agent (localDebugConfig or port 5005)

    Returns:
        Exit code of the Functions host.

    Raises:
        LocalToolingError: If Core Tools are not installed
        ConfigurationError: If the staging directory is incomplete
    """
    core_tools = core_tools or FunctionCoreTools()
    core_tools.resolve()
    check_staging_directory(context.staging_directory)

    runtime = _resolve_runtime(context.config, AppFlavor.FUNCTION_APP)
    if runtime.java_version is not None:
        check_local_java_version(runtime.java_version)

    debug_config = None
    if enable_debug or context.config.local_debug_config:
        debug_config = context.config.local_debug_config or DEFAULT_DEBUG_CONFIG
    return core_tools.run_locally(context.staging_directory, debug_config)
