"""
Deployment type resolution.

Decides which transport is used to push the built artifact into the app.
Resolution is pure and always ends in a concrete DeploymentType.
"""

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional

from appservice_deployer.core.exceptions import UnknownDeploymentType
from appservice_deployer.runtime import OperatingSystem


class DeploymentType(Enum):
    FTP = "ftp"
    ZIP = "zip"
    MSDEPLOY = "msdeploy"
    RUN_FROM_BLOB = "run_from_blob"
    RUN_FROM_ZIP = "run_from_zip"
    DOCKER = "docker"


@dataclass(frozen=True)
class DeploymentDescriptor:
    """
    A resolved transport plus the local directory it publishes from.

    Attributes:
        kind: The transport
        staging_directory: Directory whose content is published
        artifact: Single deployable file (web apps publishing a war/jar/ear)
    """
    kind: DeploymentType
    staging_directory: Path
    artifact: Optional[Path] = None


def parse_deployment_type(value: str) -> DeploymentType:
    """
    Match a user-supplied deployment type case-insensitively.

    Dashes are accepted in place of underscores (``run-from-zip``).

    Raises:
        UnknownDeploymentType: If no transport matches.
    """
    normalized = value.strip().lower().replace("-", "_")
    for member in DeploymentType:
        if member.value == normalized:
            return member
    raise UnknownDeploymentType(value, [member.value for member in DeploymentType])


def resolve_deployment_type(
    explicit_override: Optional[str],
    os: OperatingSystem,
    pricing_tier_specified: bool
) -> DeploymentType:
    """
    Resolve the transport for a function app.

    An explicit override always wins. Otherwise Docker apps use the image,
    Linux apps on a dedicated plan (pricing tier given) run from a zip and
    Linux consumption apps run from a blob. Everything else (Windows) runs
    from a zip.

    Args:
        explicit_override: User supplied deployment type, may be None/blank
        os: Resolved operating system
        pricing_tier_specified: Whether the user explicitly set a pricing tier

    Returns:
        The DeploymentType to use.

    Raises:
        UnknownDeploymentType: If the override is not a known transport.
    """
    if explicit_override and explicit_override.strip():
        return parse_deployment_type(explicit_override)

    if os == OperatingSystem.DOCKER:
        return DeploymentType.DOCKER
    if os == OperatingSystem.LINUX:
        return DeploymentType.RUN_FROM_ZIP if pricing_tier_specified else DeploymentType.RUN_FROM_BLOB
    return DeploymentType.RUN_FROM_ZIP


def resolve_web_app_deployment_type(
    explicit_override: Optional[str],
    os: OperatingSystem
) -> DeploymentType:
    """Web apps: explicit override, else the image for Docker, else a Kudu zip/war deploy."""
    if explicit_override and explicit_override.strip():
        return parse_deployment_type(explicit_override)
    if os == OperatingSystem.DOCKER:
        return DeploymentType.DOCKER
    return DeploymentType.ZIP


def build_deployment_descriptor(
    kind: DeploymentType,
    staging_directory: Path,
    artifact: Optional[Path] = None
) -> DeploymentDescriptor:
    return DeploymentDescriptor(kind=kind, staging_directory=Path(staging_directory), artifact=artifact)
