"""
Core abstractions for the App Service deployer.

Modules:
    protocols: Interface definitions (EntryPointScanner, ExtensionInstaller, PublishHandler)
    context: DeploymentContext, ProjectDescriptor and AppServiceTarget
    config_loader: Configuration loading and parameter validation
    exceptions: Custom exception types for deployment operations

Usage:
    from appservice_deployer.core import DeploymentContext, ProjectDescriptor
    from appservice_deployer.core.config_loader import load_deploy_config

    config = load_deploy_config(project.base_directory)
    context = DeploymentContext.from_config(project, config)
"""

from .protocols import EntryPointScanner, ExtensionInstaller, PublishHandler
from .context import AppServiceTarget, DeploymentContext, ProjectDescriptor
from .exceptions import (
    AuthenticationError,
    ConfigurationError,
    DeploymentError,
    FunctionValidationError,
    LocalToolingError,
    PublishError,
    RemoteStateError,
    UnknownDeploymentType,
    UnsupportedRuntime,
)

__all__ = [
    # Protocols
    "EntryPointScanner",
    "ExtensionInstaller",
    "PublishHandler",
    # Context
    "AppServiceTarget",
    "DeploymentContext",
    "ProjectDescriptor",
    # Exceptions
    "AuthenticationError",
    "ConfigurationError",
    "DeploymentError",
    "FunctionValidationError",
    "LocalToolingError",
    "PublishError",
    "RemoteStateError",
    "UnknownDeploymentType",
    "UnsupportedRuntime",
]
