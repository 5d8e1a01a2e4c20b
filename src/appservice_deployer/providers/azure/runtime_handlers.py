"""
Per-OS runtime definitions for App Service sites.

Each operating system maps to one handler in RUNTIME_HANDLERS. A handler
knows the site ``kind`` for a flavor, the site config fields that select
the Java runtime (or container image), and any app settings the runtime
needs. Adding an OS means adding a table entry.

Site config fields use the SDK attribute names (``linux_fx_version``,
``java_version``...) so the same dict serves both the creation body and
the attribute updates applied to an existing Site.
"""

from typing import Any, Dict

from appservice_deployer.constants import (
    DEFAULT_DOCKER_REGISTRY,
    DOCKER_REGISTRY_SERVER_PASSWORD,
    DOCKER_REGISTRY_SERVER_URL,
    DOCKER_REGISTRY_SERVER_USERNAME,
    WEBSITES_ENABLE_APP_SERVICE_STORAGE,
)
from appservice_deployer.core.exceptions import DeploymentError
from appservice_deployer.runtime import (
    AppFlavor,
    JavaVersion,
    OperatingSystem,
    RuntimeDescriptor,
    WebContainer,
)

# Windows site config: (java_container, java_container_version)
_WINDOWS_CONTAINERS = {
    WebContainer.JAVA_SE: ("JAVA", "SE"),
    WebContainer.TOMCAT_85: ("TOMCAT", "8.5"),
    WebContainer.TOMCAT_90: ("TOMCAT", "9.0"),
    WebContainer.TOMCAT_10: ("TOMCAT", "10.0"),
    WebContainer.JBOSS_EAP_7: ("JBOSS", "7"),
}

# Linux web app stack prefix in linux_fx_version
_LINUX_STACKS = {
    WebContainer.JAVA_SE: "JAVA|{java}",
    WebContainer.TOMCAT_85: "TOMCAT|8.5",
    WebContainer.TOMCAT_90: "TOMCAT|9.0",
    WebContainer.TOMCAT_10: "TOMCAT|10.0",
    WebContainer.JBOSS_EAP_7: "JBOSSEAP|7",
}


def _windows_java_version(java_version: JavaVersion) -> str:
    return "1.8" if java_version == JavaVersion.JAVA_8 else java_version.value


def _linux_java_suffix(java_version: JavaVersion) -> str:
    return "jre8" if java_version == JavaVersion.JAVA_8 else f"java{java_version.value}"


class WindowsRuntimeHandler:
    """Windows sites select Java through java_version (+ java_container for web apps)."""

    os = OperatingSystem.WINDOWS

    def kind(self, flavor: AppFlavor) -> str:
        return "functionapp" if flavor == AppFlavor.FUNCTION_APP else "app"

    def site_config(self, runtime: RuntimeDescriptor, flavor: AppFlavor) -> Dict[str, Any]:
        config = {"java_version": _windows_java_version(runtime.java_version)}
        if flavor == AppFlavor.WEB_APP:
            container, version = _WINDOWS_CONTAINERS[runtime.web_container]
            config["java_container"] = container
            config["java_container_version"] = version
        return config

    def app_settings(self, runtime: RuntimeDescriptor) -> Dict[str, str]:
        return {}


class LinuxRuntimeHandler:
    """Linux sites select Java through linux_fx_version."""

    os = OperatingSystem.LINUX

    def kind(self, flavor: AppFlavor) -> str:
        return "functionapp,linux" if flavor == AppFlavor.FUNCTION_APP else "app,linux"

    def site_config(self, runtime: RuntimeDescriptor, flavor: AppFlavor) -> Dict[str, Any]:
        if flavor == AppFlavor.FUNCTION_APP:
            return {"linux_fx_version": f"Java|{runtime.java_version.value}"}
        stack = _LINUX_STACKS[runtime.web_container]
        if runtime.web_container == WebContainer.JAVA_SE:
            fx_version = stack.format(java=f"{runtime.java_version.value}-{_linux_java_suffix(runtime.java_version)}")
        elif runtime.web_container == WebContainer.JBOSS_EAP_7:
            fx_version = f"{stack}-java{runtime.java_version.value}"
        else:
            fx_version = f"{stack}-{_linux_java_suffix(runtime.java_version)}"
        return {"linux_fx_version": fx_version}

    def app_settings(self, runtime: RuntimeDescriptor) -> Dict[str, str]:
        return {}


class DockerRuntimeHandler:
    """Docker sites run a container image, optionally from a private registry."""

    os = OperatingSystem.DOCKER

    def kind(self, flavor: AppFlavor) -> str:
        return "functionapp,linux,container" if flavor == AppFlavor.FUNCTION_APP else "app,linux,container"

    def site_config(self, runtime: RuntimeDescriptor, flavor: AppFlavor) -> Dict[str, Any]:
        config = {"linux_fx_version": f"DOCKER|{runtime.image}"}
        if runtime.startup_command:
            config["app_command_line"] = runtime.startup_command
        return config

    def app_settings(self, runtime: RuntimeDescriptor) -> Dict[str, str]:
        settings = {
            DOCKER_REGISTRY_SERVER_URL: runtime.registry_url or DEFAULT_DOCKER_REGISTRY,
            WEBSITES_ENABLE_APP_SERVICE_STORAGE: "false",
        }
        if runtime.has_registry_credentials:
            settings[DOCKER_REGISTRY_SERVER_USERNAME] = runtime.registry_username
            settings[DOCKER_REGISTRY_SERVER_PASSWORD] = runtime.registry_password
        return settings


RUNTIME_HANDLERS = {
    OperatingSystem.WINDOWS: WindowsRuntimeHandler(),
    OperatingSystem.LINUX: LinuxRuntimeHandler(),
    OperatingSystem.DOCKER: DockerRuntimeHandler(),
}


def get_runtime_handler(os: OperatingSystem):
    """
    Look up the runtime handler for an operating system.

    Raises:
        DeploymentError: If no handler is registered (RuntimeDescriptor only holds known OS values).
    """
    handler = RUNTIME_HANDLERS.get(os)
    if handler is None:
        raise DeploymentError(f"No runtime handler registered for operating system {os}")
    return handler
