import os
import sys
import json

import pytest
from pathlib import Path
from unittest.mock import MagicMock

# Make the src layout importable without an editable install
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..", "src")))


@pytest.fixture(autouse=True)
def mock_sleep(monkeypatch):
    """Skip time.sleep calls to speed up tests."""
    monkeypatch.setattr("time.sleep", lambda x: None)


@pytest.fixture(autouse=True)
def no_azure_env(monkeypatch):
    """Keep credentials from the developer machine out of the tests."""
    for name in ("AZURE_CLIENT_ID", "AZURE_CLIENT_SECRET", "AZURE_TENANT_ID", "AZURE_SUBSCRIPTION_ID"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def mock_provider():
    """Create a mock AzureProvider with mocked SDK clients."""
    provider = MagicMock()
    provider.subscription_id = "00000000-0000-0000-0000-000000000001"
    provider.clients = {
        "resource": MagicMock(),
        "storage": MagicMock(),
        "web": MagicMock(),
        "insights": MagicMock(),
    }
    return provider


@pytest.fixture
def target():
    """An AppServiceTarget for a function app in westeurope."""
    from appservice_deployer.core.context import AppServiceTarget

    return AppServiceTarget(
        subscription_id="00000000-0000-0000-0000-000000000001",
        resource_group="rg-functions",
        app_name="my-functions",
        region="westeurope",
    )


@pytest.fixture
def project_dir(tmp_path):
    """
    A project layout with a built artifact, two dependencies and host.json.

    Layout:
        project/host.json
        project/build/libs/my-functions.jar
        project/build/deps/gson-2.10.jar
        project/build/deps/azure-functions-java-library-3.0.0.jar
    """
    base = tmp_path / "project"
    libs = base / "build" / "libs"
    deps = base / "build" / "deps"
    libs.mkdir(parents=True)
    deps.mkdir(parents=True)
    (libs / "my-functions.jar").write_bytes(b"artifact")
    (deps / "gson-2.10.jar").write_bytes(b"gson")
    (deps / "azure-functions-java-library-3.0.0.jar").write_bytes(b"library")
    (base / "host.json").write_text(json.dumps({"version": "2.0"}))
    return base


@pytest.fixture
def project(project_dir):
    from appservice_deployer.core.context import ProjectDescriptor

    return ProjectDescriptor(
        base_directory=project_dir,
        build_directory=project_dir / "build",
        artifact=project_dir / "build" / "libs" / "my-functions.jar",
        dependencies=(
            project_dir / "build" / "deps" / "gson-2.10.jar",
            project_dir / "build" / "deps" / "azure-functions-java-library-3.0.0.jar",
        ),
    )


@pytest.fixture
def make_config():
    """Factory for AppServiceConfig from camelCase JSON-like data."""
    from appservice_deployer.core.config_loader import parse_deploy_config

    def _make(**overrides):
        data = {"appName": "my-functions", "resourceGroup": "rg-functions", "region": "westeurope"}
        data.update(overrides)
        return parse_deploy_config(data)

    return _make
