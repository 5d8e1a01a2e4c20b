"""
Custom exceptions for the App Service deployer.

This module defines a hierarchy of exceptions used throughout the deployment
system to provide clear, actionable error messages.

Exception Hierarchy:
    DeploymentError (base)
    ├── ConfigurationError - Invalid or contradictory user input (aggregated)
    │   ├── UnknownDeploymentType - Deployment type override not recognized
    │   └── UnsupportedRuntime - OS / Java version / web container not supported
    ├── AuthenticationError - Credential acquisition failed (fatal)
    ├── RemoteStateError - A provisioning step failed against the control plane
    ├── FunctionValidationError - Generated function configurations are invalid
    ├── LocalToolingError - Companion CLI missing or unusable
    └── PublishError - Artifact transport failed
"""

from typing import List, Optional


class DeploymentError(Exception):
    """
    Base exception for all deployment-related errors.

    Attributes:
        message: Human-readable error description
        app_name: Optional app name the error relates to
    """

    def __init__(self, message: str, app_name: Optional[str] = None):
        self.message = message
        self.app_name = app_name
        if app_name:
            super().__init__(f"{message} [app={app_name}]")
        else:
            super().__init__(message)


class ConfigurationError(DeploymentError):
    """
    Raised when configuration is invalid or missing required fields.

    Every violation found is kept in ``errors`` so the user can fix them all
    in one pass instead of one per run.

    Example:
        >>> raise ConfigurationError("Invalid configuration", errors=[
        ...     "appName: must not be empty",
        ...     "pricingTier: unsupported value 'X9'",
        ... ])
    """

    def __init__(
        self,
        message: str,
        errors: Optional[List[str]] = None,
        config_file: Optional[str] = None
    ):
        self.errors = list(errors) if errors else []
        self.config_file = config_file
        full_message = message
        if config_file:
            full_message = f"{full_message} (file: {config_file})"
        if self.errors:
            full_message += "\n" + "\n".join(f"  - {error}" for error in self.errors)
        super().__init__(full_message)


class UnknownDeploymentType(ConfigurationError):
    """Raised when an explicit deployment type override is not a known transport."""

    def __init__(self, value: str, supported: List[str]):
        self.value = value
        self.supported = supported
        super().__init__(
            f"The value of deployment type '{value}' is unknown, "
            f"supported values are: {', '.join(supported)}."
        )


class UnsupportedRuntime(ConfigurationError):
    """Raised when an OS, Java version or web container does not map to a known runtime."""

    def __init__(self, field_name: str, value: str, supported: List[str]):
        self.field_name = field_name
        self.value = value
        self.supported = supported
        super().__init__(
            f"Unsupported value '{value}' for '{field_name}', "
            f"supported values are: {', '.join(supported)}."
        )


class AuthenticationError(DeploymentError):
    """Raised when no authenticated client can be built. Never retried."""
    pass


class RemoteStateError(DeploymentError):
    """
    Raised when a provisioning step fails for a reason other than "not found".

    The SDK exception is kept unchanged in ``original_error`` (and chained as
    ``__cause__``); steps after ``step`` were not executed and the steps before
    it are left in place.

    Attributes:
        step: Name of the provisioning step that failed
        original_error: The underlying SDK exception
    """

    def __init__(self, step: str, original_error: Exception):
        self.step = step
        self.original_error = original_error
        super().__init__(f"Provisioning step '{step}' failed: {original_error}")


class FunctionValidationError(DeploymentError):
    """Raised when one or more generated function configurations are invalid."""

    def __init__(self, errors: List[str]):
        self.errors = list(errors)
        message = "Invalid function configuration(s):\n" + "\n".join(
            f"  - {error}" for error in self.errors
        )
        super().__init__(message)


class LocalToolingError(DeploymentError):
    """Raised when a required local tool (e.g. Azure Functions Core Tools) is unavailable."""
    pass


class PublishError(DeploymentError):
    """Raised when pushing the artifact to the app fails."""
    pass
