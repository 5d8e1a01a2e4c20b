"""
Runtime resolution for App Service deployments.

Turns the loosely typed runtime block of the user configuration (operating
system, Java version, web container, container image and registry
credentials) into a canonical, immutable RuntimeDescriptor.

Also hosts the pricing tier table, since tier parsing follows the same
"free-form string -> canonical value" rules.
"""

import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional

from appservice_deployer.core.exceptions import ConfigurationError, UnsupportedRuntime

logger = logging.getLogger(__name__)


class AppFlavor(Enum):
    """Which kind of App Service resource is being deployed."""
    FUNCTION_APP = "functionapp"
    WEB_APP = "webapp"


class OperatingSystem(Enum):
    WINDOWS = "windows"
    LINUX = "linux"
    DOCKER = "docker"


class JavaVersion(Enum):
    JAVA_8 = "8"
    JAVA_11 = "11"
    JAVA_17 = "17"
    JAVA_21 = "21"

    @property
    def major(self) -> int:
        return int(self.value)


class WebContainer(Enum):
    JAVA_SE = "Java SE"
    TOMCAT_85 = "Tomcat 8.5"
    TOMCAT_90 = "Tomcat 9.0"
    TOMCAT_10 = "Tomcat 10.0"
    JBOSS_EAP_7 = "JBoss EAP 7"


DEFAULT_OS = OperatingSystem.WINDOWS
DEFAULT_JAVA_VERSION = JavaVersion.JAVA_8
DEFAULT_WEB_CONTAINER = WebContainer.JAVA_SE


@dataclass(frozen=True)
class PricingTier:
    """A hosting plan SKU: the billing tier and the size within that tier."""
    tier: str
    size: str

    @property
    def is_consumption(self) -> bool:
        return self.tier == "Dynamic"

    def to_sku(self) -> Dict[str, str]:
        return {"name": self.size, "tier": self.tier}


# Keyed by lowercase size name
PRICING_TIERS: Dict[str, PricingTier] = {
    size.lower(): PricingTier(tier, size)
    for tier, sizes in (
        ("Free", ("F1",)),
        ("Shared", ("D1",)),
        ("Basic", ("B1", "B2", "B3")),
        ("Standard", ("S1", "S2", "S3")),
        ("Premium", ("P1", "P2", "P3")),
        ("PremiumV2", ("P1v2", "P2v2", "P3v2")),
        ("PremiumV3", ("P0v3", "P1v3", "P2v3", "P3v3")),
        ("Dynamic", ("Y1",)),
        ("ElasticPremium", ("EP1", "EP2", "EP3")),
    )
    for size in sizes
}


@dataclass(frozen=True)
class RuntimeDescriptor:
    """
    Canonical runtime of the app, resolved once per invocation.

    For Docker the Java version and web container are always None; for
    Windows/Linux the image and registry fields are always None. Function
    apps never carry a web container.

    ``specified`` is False when the configuration had no runtime at all and
    the defaults were filled in. An existing app keeps its own runtime then.
    """
    os: OperatingSystem
    java_version: Optional[JavaVersion] = None
    web_container: Optional[WebContainer] = None
    image: Optional[str] = None
    registry_url: Optional[str] = None
    registry_username: Optional[str] = None
    registry_password: Optional[str] = None
    startup_command: Optional[str] = None
    specified: bool = True

    @property
    def is_docker(self) -> bool:
        return self.os == OperatingSystem.DOCKER

    @property
    def is_linux_based(self) -> bool:
        """Linux and Docker apps both run on reserved (Linux) plans."""
        return self.os in (OperatingSystem.LINUX, OperatingSystem.DOCKER)

    @property
    def has_registry_credentials(self) -> bool:
        return bool(self.registry_username and self.registry_password)


# ==========================================
# Parsing
# ==========================================

def _supported(enum_cls) -> List[str]:
    return [member.value for member in enum_cls]


def parse_operating_system(value: Optional[str]) -> OperatingSystem:
    """Parse an OS name case-insensitively; None or blank yields the default (Windows)."""
    if value is None or not value.strip():
        return DEFAULT_OS
    normalized = value.strip().lower()
    for member in OperatingSystem:
        if member.value == normalized:
            return member
    raise UnsupportedRuntime("os", value, _supported(OperatingSystem))


def parse_java_version(value: Optional[str]) -> JavaVersion:
    """
    Parse a Java version.

    Accepts ``8``, ``1.8``, ``Java 8``, ``java11``, ``17``, ``Java 21`` and similar.
    None or blank yields Java 8.

    Raises:
        UnsupportedRuntime: If the version is not a supported Java major version.
    """
    if value is None or not str(value).strip():
        return DEFAULT_JAVA_VERSION
    normalized = re.sub(r"^java\s*", "", str(value).strip().lower())
    if normalized in ("1.8", "8"):
        normalized = "8"
    for member in JavaVersion:
        if member.value == normalized:
            return member
    raise UnsupportedRuntime(
        "javaVersion", str(value), [f"Java {member.value}" for member in JavaVersion]
    )


def parse_web_container(value: Optional[str]) -> WebContainer:
    """Parse a web container name, ignoring case and whitespace. Blank yields Java SE."""
    if value is None or not value.strip():
        return DEFAULT_WEB_CONTAINER
    normalized = re.sub(r"\s+", "", value).lower()
    for member in WebContainer:
        if re.sub(r"\s+", "", member.value).lower() == normalized:
            return member
    raise UnsupportedRuntime("webContainer", value, _supported(WebContainer))


def parse_pricing_tier(value: Optional[str]) -> Optional[PricingTier]:
    """
    Parse a pricing tier size such as ``P1v2`` or ``y1``.

    Returns:
        The PricingTier, or None when no tier was given.

    Raises:
        ConfigurationError: If the tier is not known.
    """
    if value is None or not value.strip():
        return None
    tier = PRICING_TIERS.get(value.strip().lower())
    if tier is None:
        raise ConfigurationError(
            f"Unsupported pricing tier '{value}', supported values are: "
            f"{', '.join(t.size for t in PRICING_TIERS.values())}."
        )
    return tier


# ==========================================
# Resolution
# ==========================================

def resolve_runtime(
    os: Optional[str] = None,
    java_version: Optional[str] = None,
    web_container: Optional[str] = None,
    image: Optional[str] = None,
    registry_url: Optional[str] = None,
    registry_username: Optional[str] = None,
    registry_password: Optional[str] = None,
    startup_command: Optional[str] = None,
    flavor: AppFlavor = AppFlavor.FUNCTION_APP
) -> RuntimeDescriptor:
    """
    Resolve raw runtime configuration into a RuntimeDescriptor.

    Args:
        os: Operating system name (windows/linux/docker), default windows
        java_version: Java version string, default Java 8
        web_container: Web container name (web apps only), default Java SE
        image: Container image, mandatory for Docker
        registry_url: Private registry URL (Docker only)
        registry_username: Registry user (Docker only)
        registry_password: Registry password (Docker only)
        startup_command: Container startup command (Docker only)
        flavor: Function app or web app

    Returns:
        The resolved RuntimeDescriptor.

    Raises:
        UnsupportedRuntime: If OS, Java version or web container is unknown
        ConfigurationError: If Docker is selected without an image, or with
            only half of the registry credentials
    """
    resolved_os = parse_operating_system(os)

    if resolved_os == OperatingSystem.DOCKER:
        if not image or not image.strip():
            raise ConfigurationError(
                "Please specify a docker image (runtime.image) when os is docker."
            )
        if bool(registry_username) != bool(registry_password):
            raise ConfigurationError(
                "Docker registry credentials require both username and password."
            )
        if java_version or web_container:
            logger.debug("Java version and web container are ignored for docker runtime.")
        return RuntimeDescriptor(
            os=resolved_os,
            image=image.strip(),
            registry_url=registry_url or None,
            registry_username=registry_username or None,
            registry_password=registry_password or None,
            startup_command=startup_command or None,
        )

    if image:
        logger.debug(f"Image '{image}' is ignored for {resolved_os.value} runtime.")

    container = None
    if flavor == AppFlavor.WEB_APP:
        container = parse_web_container(web_container)

    specified = any(
        value is not None and str(value).strip()
        for value in (os, java_version, web_container if flavor == AppFlavor.WEB_APP else None)
    )
    return RuntimeDescriptor(
        os=resolved_os,
        java_version=parse_java_version(java_version),
        web_container=container,
        specified=specified,
    )
