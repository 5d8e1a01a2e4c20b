"""
DeploymentContext and target descriptor tests.

Test Classes:
    - TestAppServiceTarget: Plan resource group resolution
    - TestDeploymentContext: Staging path, flags and lazy provider
    - TestExceptions: Error message formatting
"""

import pytest
from pathlib import Path
from unittest.mock import patch


class TestAppServiceTarget:
    """AppServiceTarget derived properties."""

    def test_plan_in_same_group_ignores_case(self):
        from appservice_deployer.core.context import AppServiceTarget

        target = AppServiceTarget(
            resource_group="rg-functions", app_name="app", region="westus",
            plan_resource_group="RG-Functions"
        )

        assert not target.plan_in_separate_resource_group

    def test_plan_in_separate_group(self):
        from appservice_deployer.core.context import AppServiceTarget

        target = AppServiceTarget(
            resource_group="rg-functions", app_name="app", region="westus",
            plan_resource_group="rg-plans"
        )

        assert target.plan_in_separate_resource_group
        assert target.effective_plan_resource_group == "rg-plans"

    def test_blank_pricing_tier_is_not_specified(self):
        from appservice_deployer.core.context import AppServiceTarget

        target = AppServiceTarget(resource_group="rg", app_name="app", region="westus", pricing_tier=" ")

        assert not target.pricing_tier_specified


class TestDeploymentContext:
    """DeploymentContext behavior."""

    def test_staging_directory(self, project, make_config):
        from appservice_deployer.core.context import DeploymentContext

        context = DeploymentContext.from_config(project, make_config())

        assert context.staging_directory == project.build_directory / "azure-functions" / "my-functions"

    def test_web_app_staging_folder(self, project, make_config):
        from appservice_deployer.core.context import DeploymentContext

        context = DeploymentContext.from_config(project, make_config(), staging_folder="azure-webapps")

        assert context.staging_directory == Path(project.build_directory) / "azure-webapps" / "my-functions"

    def test_set_flag(self, project, make_config):
        from appservice_deployer.core.context import DeploymentContext

        context = DeploymentContext.from_config(project, make_config())
        context.set_flag("createNewResourceGroup")
        context.set_flag("os", "linux")

        assert context.operation_flags == {"createNewResourceGroup": "true", "os": "linux"}

    def test_provider_is_created_once(self, project, make_config):
        """The provider is initialized on first access and reused afterwards."""
        from appservice_deployer.core.context import DeploymentContext

        credentials = {"azure_subscription_id": "sub-1"}
        context = DeploymentContext.from_config(project, make_config(), credentials)

        with patch("appservice_deployer.providers.azure.provider.AzureProvider") as provider_cls:
            first = context.provider
            second = context.provider

        assert first is second
        provider_cls.assert_called_once()
        provider_cls.return_value.initialize_clients.assert_called_once_with(
            credentials, subscription_id="sub-1", credential_factory=None
        )


class TestExceptions:
    """Exception formatting."""

    def test_configuration_error_lists_errors(self):
        from appservice_deployer.core.exceptions import ConfigurationError

        error = ConfigurationError("Invalid", errors=["a: bad", "b: bad"], config_file="azure-deploy.json")

        assert str(error) == "Invalid (file: azure-deploy.json)\n  - a: bad\n  - b: bad"
        assert error.errors == ["a: bad", "b: bad"]

    def test_remote_state_error_keeps_original(self):
        from appservice_deployer.core.exceptions import RemoteStateError, DeploymentError

        original = RuntimeError("boom")
        error = RemoteStateError("ensure_hosting_plan", original)

        assert isinstance(error, DeploymentError)
        assert error.step == "ensure_hosting_plan"
        assert error.original_error is original

    def test_deployment_error_app_name(self):
        from appservice_deployer.core.exceptions import PublishError

        assert str(PublishError("failed", app_name="app")) == "failed [app=app]"
