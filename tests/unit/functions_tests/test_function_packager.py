"""
FunctionMetadataGenerator staging tests.

Test Classes:
    - TestIsInstallExtensionNeeded: Extension install decision
    - TestStage: End-to-end staging layout
    - TestStageValidation: Validation failures stage nothing
"""

import json

import pytest
from pathlib import Path
from unittest.mock import MagicMock


# ==========================================
# Fixtures
# ==========================================

@pytest.fixture
def staging_dir(project):
    return Path(project.build_directory) / "azure-functions" / "my-functions"


@pytest.fixture
def scanner():
    return MagicMock()


@pytest.fixture
def installer():
    return MagicMock()


def _timer():
    from appservice_deployer.functions.bindings import Binding, FunctionEntryPoint

    return FunctionEntryPoint(
        name="cleanup",
        entry_point="com.example.Functions.cleanup",
        bindings=[Binding("timerTrigger", "in", "timerInfo", {"schedule": "0 */5 * * * *"})],
    )


def _http(name="hello"):
    from appservice_deployer.functions.bindings import Binding, FunctionEntryPoint

    return FunctionEntryPoint(
        name=name,
        entry_point=f"com.example.Functions.{name}",
        bindings=[
            Binding("httpTrigger", "in", "req", {"authLevel": "ANONYMOUS", "methods": ["GET"]}),
            Binding("http", "out", "$return"),
        ],
    )


class TestIsInstallExtensionNeeded:

    def test_bundle_skips_install(self):
        from appservice_deployer.functions.packager import is_install_extension_needed

        host_json = {"extensionBundle": {"id": "microsoft.azure.functions.extensionbundle", "version": "[4.*, 5.0.0)"}}

        assert not is_install_extension_needed(host_json, ["queueTrigger"])

    def test_http_only_skips_install(self):
        from appservice_deployer.functions.packager import is_install_extension_needed

        assert not is_install_extension_needed({}, ["httpTrigger", "http"])

    def test_other_bindings_need_install(self):
        from appservice_deployer.functions.packager import is_install_extension_needed
        from appservice_deployer.functions.bindings import BindingKind

        assert is_install_extension_needed(None, [BindingKind.HTTP_TRIGGER, BindingKind.BLOB])
        assert is_install_extension_needed({"extensionBundle": {"id": "Custom.Bundle"}}, ["customBinding"])


class TestStage:

    def test_stages_function_app(self, project, staging_dir, scanner, installer):
        """Timer function without an extension bundle: full layout plus one extension install."""
        from appservice_deployer.functions.packager import FunctionMetadataGenerator

        scanner.find_functions.return_value = [_timer()]

        configs = FunctionMetadataGenerator(project, staging_dir, scanner, installer=installer).stage()

        assert list(configs) == ["cleanup"]
        scanner.find_functions.assert_called_once_with(project.artifact, list(project.dependencies))

        function_json = json.loads((staging_dir / "cleanup" / "function.json").read_text())
        assert function_json["scriptFile"] == "../my-functions.jar"
        assert function_json["entryPoint"] == "com.example.Functions.cleanup"
        assert function_json["bindings"][0]["schedule"] == "0 */5 * * * *"

        assert json.loads((staging_dir / "host.json").read_text()) == {"version": "2.0"}
        local_settings = json.loads((staging_dir / "local.settings.json").read_text())
        assert local_settings["Values"]["FUNCTIONS_WORKER_RUNTIME"] == "java"

        assert (staging_dir / "my-functions.jar").read_bytes() == b"artifact"
        assert sorted(p.name for p in (staging_dir / "lib").iterdir()) == ["gson-2.10.jar"]

        installer.install_extension.assert_called_once_with(staging_dir, Path(project.base_directory))

    def test_http_functions_skip_extension_install(self, project, staging_dir, scanner, installer):
        from appservice_deployer.functions.packager import FunctionMetadataGenerator

        scanner.find_functions.return_value = [_http("hello"), _http("goodbye")]

        configs = FunctionMetadataGenerator(project, staging_dir, scanner, installer=installer).stage()

        assert set(configs) == {"hello", "goodbye"}
        assert (staging_dir / "goodbye" / "function.json").is_file()
        installer.install_extension.assert_not_called()

    def test_default_host_json_declares_bundle(self, project, staging_dir, scanner, installer):
        from appservice_deployer.functions.packager import FunctionMetadataGenerator

        (Path(project.base_directory) / "host.json").unlink()
        scanner.find_functions.return_value = [_timer()]

        FunctionMetadataGenerator(project, staging_dir, scanner, installer=installer).stage()

        host_json = json.loads((staging_dir / "host.json").read_text())
        assert host_json["extensionBundle"]["id"] == "Microsoft.Azure.Functions.ExtensionBundle"
        installer.install_extension.assert_not_called()

    def test_project_local_settings_are_copied(self, project, staging_dir, scanner):
        from appservice_deployer.functions.packager import FunctionMetadataGenerator

        settings = '{"IsEncrypted": false, "Values": {"MY_SETTING": "local"}}'
        (Path(project.base_directory) / "local.settings.json").write_text(settings)
        scanner.find_functions.return_value = [_http()]

        FunctionMetadataGenerator(project, staging_dir, scanner).stage()

        assert (staging_dir / "local.settings.json").read_text() == settings

    def test_empty_local_settings_is_rejected(self, project, staging_dir, scanner):
        from appservice_deployer.functions.packager import FunctionMetadataGenerator
        from appservice_deployer.core.exceptions import ConfigurationError

        (Path(project.base_directory) / "local.settings.json").write_text("")
        scanner.find_functions.return_value = [_http()]

        with pytest.raises(ConfigurationError, match="empty"):
            FunctionMetadataGenerator(project, staging_dir, scanner).stage()

    def test_stale_staging_content_is_removed(self, project, staging_dir, scanner):
        from appservice_deployer.functions.packager import FunctionMetadataGenerator

        (staging_dir / "removedFunction").mkdir(parents=True)
        (staging_dir / "removedFunction" / "function.json").write_text("{}")
        scanner.find_functions.return_value = [_http()]

        FunctionMetadataGenerator(project, staging_dir, scanner).stage()

        assert not (staging_dir / "removedFunction").exists()

    def test_missing_installer_only_warns(self, project, staging_dir, scanner):
        from appservice_deployer.functions.packager import FunctionMetadataGenerator

        scanner.find_functions.return_value = [_timer()]

        assert FunctionMetadataGenerator(project, staging_dir, scanner).stage() is not None

    def test_no_functions(self, project, staging_dir, scanner, installer):
        from appservice_deployer.functions.packager import FunctionMetadataGenerator

        scanner.find_functions.return_value = []

        assert FunctionMetadataGenerator(project, staging_dir, scanner, installer=installer).stage() is None
        assert not staging_dir.exists()


class TestStageValidation:

    def test_invalid_function_stages_nothing(self, project, staging_dir, scanner):
        from appservice_deployer.functions.packager import FunctionMetadataGenerator
        from appservice_deployer.functions.bindings import FunctionEntryPoint
        from appservice_deployer.core.exceptions import FunctionValidationError

        scanner.find_functions.return_value = [
            _http(),
            FunctionEntryPoint(name="broken", entry_point="com.example.Functions.broken", bindings=[]),
        ]

        with pytest.raises(FunctionValidationError) as exc_info:
            FunctionMetadataGenerator(project, staging_dir, scanner).stage()

        assert exc_info.value.errors == ["broken: exactly one trigger binding is required, found 0"]
        assert not staging_dir.exists()

    def test_duplicate_function_names(self, project, staging_dir, scanner):
        from appservice_deployer.functions.packager import FunctionMetadataGenerator
        from appservice_deployer.core.exceptions import FunctionValidationError

        scanner.find_functions.return_value = [_http("hello"), _http("hello")]

        with pytest.raises(FunctionValidationError, match="duplicate function name"):
            FunctionMetadataGenerator(project, staging_dir, scanner).stage()

    def test_custom_validator(self, project, staging_dir, scanner):
        from appservice_deployer.functions.packager import FunctionMetadataGenerator
        from appservice_deployer.core.exceptions import FunctionValidationError

        scanner.find_functions.return_value = [_http()]

        def reject_all(name, config):
            return [f"{name}: rejected"]

        with pytest.raises(FunctionValidationError, match="hello: rejected"):
            FunctionMetadataGenerator(project, staging_dir, scanner, validator=reject_all).stage()
