"""
Per-OS runtime handler tests.

Test Classes:
    - TestWindowsRuntimeHandler: java_version / java_container site config
    - TestLinuxRuntimeHandler: linux_fx_version stacks
    - TestDockerRuntimeHandler: Image and registry settings
"""

import pytest


def _runtime(os, java="8", container=None, **kwargs):
    from appservice_deployer.runtime import RuntimeDescriptor, OperatingSystem, JavaVersion, WebContainer

    return RuntimeDescriptor(
        os=OperatingSystem(os),
        java_version=JavaVersion(java) if java else None,
        web_container=WebContainer(container) if container else None,
        **kwargs
    )


class TestWindowsRuntimeHandler:

    def test_function_app(self):
        from appservice_deployer.providers.azure.runtime_handlers import get_runtime_handler
        from appservice_deployer.runtime import AppFlavor, OperatingSystem

        handler = get_runtime_handler(OperatingSystem.WINDOWS)

        assert handler.kind(AppFlavor.FUNCTION_APP) == "functionapp"
        assert handler.site_config(_runtime("windows"), AppFlavor.FUNCTION_APP) == {"java_version": "1.8"}
        assert handler.app_settings(_runtime("windows")) == {}

    def test_web_app_with_tomcat(self):
        from appservice_deployer.providers.azure.runtime_handlers import get_runtime_handler
        from appservice_deployer.runtime import AppFlavor, OperatingSystem

        handler = get_runtime_handler(OperatingSystem.WINDOWS)
        config = handler.site_config(_runtime("windows", "11", "Tomcat 9.0"), AppFlavor.WEB_APP)

        assert handler.kind(AppFlavor.WEB_APP) == "app"
        assert config == {"java_version": "11", "java_container": "TOMCAT", "java_container_version": "9.0"}


class TestLinuxRuntimeHandler:

    def test_function_app(self):
        from appservice_deployer.providers.azure.runtime_handlers import get_runtime_handler
        from appservice_deployer.runtime import AppFlavor, OperatingSystem

        handler = get_runtime_handler(OperatingSystem.LINUX)

        assert handler.kind(AppFlavor.FUNCTION_APP) == "functionapp,linux"
        assert handler.site_config(_runtime("linux", "11"), AppFlavor.FUNCTION_APP) == {
            "linux_fx_version": "Java|11"
        }

    @pytest.mark.parametrize("java,container,expected", [
        ("8", "Java SE", "JAVA|8-jre8"),
        ("11", "Java SE", "JAVA|11-java11"),
        ("8", "Tomcat 9.0", "TOMCAT|9.0-jre8"),
        ("17", "Tomcat 10.0", "TOMCAT|10.0-java17"),
        ("11", "JBoss EAP 7", "JBOSSEAP|7-java11"),
    ])
    def test_web_app_stacks(self, java, container, expected):
        from appservice_deployer.providers.azure.runtime_handlers import get_runtime_handler
        from appservice_deployer.runtime import AppFlavor, OperatingSystem

        handler = get_runtime_handler(OperatingSystem.LINUX)
        config = handler.site_config(_runtime("linux", java, container), AppFlavor.WEB_APP)

        assert config == {"linux_fx_version": expected}


class TestDockerRuntimeHandler:

    def test_public_image(self):
        from appservice_deployer.providers.azure.runtime_handlers import get_runtime_handler
        from appservice_deployer.runtime import AppFlavor, OperatingSystem

        handler = get_runtime_handler(OperatingSystem.DOCKER)
        runtime = _runtime("docker", java=None, image="nginx:latest")

        assert handler.kind(AppFlavor.WEB_APP) == "app,linux,container"
        assert handler.site_config(runtime, AppFlavor.WEB_APP) == {"linux_fx_version": "DOCKER|nginx:latest"}
        assert handler.app_settings(runtime) == {
            "DOCKER_REGISTRY_SERVER_URL": "https://index.docker.io",
            "WEBSITES_ENABLE_APP_SERVICE_STORAGE": "false",
        }

    def test_private_registry_with_startup_command(self):
        from appservice_deployer.providers.azure.runtime_handlers import get_runtime_handler
        from appservice_deployer.runtime import AppFlavor, OperatingSystem

        handler = get_runtime_handler(OperatingSystem.DOCKER)
        runtime = _runtime(
            "docker", java=None, image="acr.azurecr.io/app:1",
            registry_url="https://acr.azurecr.io", registry_username="user",
            registry_password="secret", startup_command="java -jar /app.jar",
        )

        settings = handler.app_settings(runtime)
        config = handler.site_config(runtime, AppFlavor.FUNCTION_APP)

        assert settings["DOCKER_REGISTRY_SERVER_URL"] == "https://acr.azurecr.io"
        assert settings["DOCKER_REGISTRY_SERVER_USERNAME"] == "user"
        assert settings["DOCKER_REGISTRY_SERVER_PASSWORD"] == "secret"
        assert config["app_command_line"] == "java -jar /app.jar"
        assert handler.kind(AppFlavor.FUNCTION_APP) == "functionapp,linux,container"
