"""
Deployment context and target descriptors.

Every operation receives a DeploymentContext explicitly instead of reading
module-level state. The context is built once per invocation and carries the
project layout, the parsed configuration, the target app, the telemetry-style
operation flags and the lazily created AzureProvider.

Design Pattern: Dependency Injection
    - Configuration is parsed into AppServiceConfig up front
    - The staging directory is computed when the context is constructed
    - The authenticated provider is created on first use, then reused

Example Usage:
    context = DeploymentContext.from_config(
        project=ProjectDescriptor(
            base_directory=Path("/work/my-functions"),
            build_directory=Path("/work/my-functions/build"),
            artifact=Path("/work/my-functions/build/libs/my-functions.jar"),
        ),
        config=load_deploy_config(Path("/work/my-functions")),
    )
    deploy_function_app(context)
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Tuple, TYPE_CHECKING

from appservice_deployer.constants import STAGING_FOLDER

if TYPE_CHECKING:
    from .config_loader import AppServiceConfig
    from appservice_deployer.providers.azure.provider import AzureProvider


@dataclass(frozen=True)
class ProjectDescriptor:
    """
    Local build layout supplied by the build-system integration.

    Attributes:
        base_directory: Project root (holds host.json, local.settings.json, azure-deploy.json)
        build_directory: Build output root, staging happens below it
        artifact: The primary build artifact (jar/war)
        dependencies: Runtime dependency artifacts copied into lib/
    """
    base_directory: Path
    build_directory: Path
    artifact: Path
    dependencies: Tuple[Path, ...] = ()

    @property
    def artifact_name(self) -> str:
        return Path(self.artifact).name


@dataclass(frozen=True)
class AppServiceTarget:
    """
    Identifies exactly one remote app and where its plan lives.

    ``pricing_tier`` and ``plan_name`` are optional on purpose: whether a tier
    was given changes transport resolution and plan updates, and a missing
    plan name means "reuse the app's plan, or asp-<app> for a new app".
    """
    resource_group: str
    app_name: str
    region: str
    subscription_id: Optional[str] = None
    pricing_tier: Optional[str] = None
    plan_name: Optional[str] = None
    plan_resource_group: Optional[str] = None

    @property
    def pricing_tier_specified(self) -> bool:
        return bool(self.pricing_tier and self.pricing_tier.strip())

    @property
    def effective_plan_resource_group(self) -> str:
        return self.plan_resource_group or self.resource_group

    @property
    def plan_in_separate_resource_group(self) -> bool:
        return self.effective_plan_resource_group.lower() != self.resource_group.lower()


def build_staging_path(build_directory: Path, app_name: str, staging_folder: str = STAGING_FOLDER) -> Path:
    """Staging directory for an app: ``<build>/<staging folder>/<app name>``."""
    return Path(build_directory) / staging_folder / app_name


@dataclass
class DeploymentContext:
    """
    Encapsulates all state needed for one deploy/package/run invocation.

    Attributes:
        project: Local build layout
        config: Parsed azure-deploy.json
        target: The remote app being deployed
        credentials: Raw Azure credentials (config_credentials_azure.json)
        credential_factory: Builds a TokenCredential from ``credentials``;
            defaults to the provider's ClientSecretCredential/DefaultAzureCredential choice
        operation_flags: Flags recorded by provisioning (e.g. createNewResourceGroup)
        staging_folder: Folder below the build directory, azure-functions or azure-webapps
        staging_directory: Computed from build directory and app name at construction
    """

    project: ProjectDescriptor
    config: 'AppServiceConfig'
    target: AppServiceTarget
    credentials: Dict[str, str] = field(default_factory=dict)
    credential_factory: Optional[Callable[[Dict[str, str]], Any]] = None
    operation_flags: Dict[str, str] = field(default_factory=dict)
    staging_folder: str = STAGING_FOLDER
    staging_directory: Path = field(init=False)
    _provider: Optional['AzureProvider'] = field(default=None, init=False, repr=False)

    def __post_init__(self):
        self.staging_directory = build_staging_path(
            self.project.build_directory, self.target.app_name, self.staging_folder
        )

    @classmethod
    def from_config(
        cls,
        project: ProjectDescriptor,
        config: 'AppServiceConfig',
        credentials: Optional[Dict[str, str]] = None,
        credential_factory: Optional[Callable[[Dict[str, str]], Any]] = None,
        staging_folder: str = STAGING_FOLDER
    ) -> 'DeploymentContext':
        """Build a context, deriving the AppServiceTarget from the configuration."""
        from .config_loader import build_target

        credentials = credentials or {}
        return cls(
            project=project,
            config=config,
            target=build_target(config, credentials),
            credentials=credentials,
            credential_factory=credential_factory,
            staging_folder=staging_folder,
        )

    @property
    def provider(self) -> 'AzureProvider':
        """
        The authenticated AzureProvider for the target subscription.

        Created on first access and reused for the rest of the invocation.

        Raises:
            AuthenticationError: If no credential or subscription can be resolved.
        """
        if self._provider is None:
            from appservice_deployer.providers.azure.provider import AzureProvider

            provider = AzureProvider()
            provider.initialize_clients(
                self.credentials,
                subscription_id=self.target.subscription_id,
                credential_factory=self.credential_factory,
            )
            self._provider = provider
        return self._provider

    def set_flag(self, name: str, value: Any = True) -> None:
        self.operation_flags[name] = str(value).lower() if isinstance(value, bool) else str(value)
