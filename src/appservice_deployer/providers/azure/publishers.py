"""
Artifact publishers, one per deployment type.

PUBLISH_HANDLERS maps every DeploymentType to a factory
``(provider, target, descriptor) -> handler``; each handler exposes
``publish(target, staging_path)``. Adding a transport means adding a
handler class and a table entry.

Transports:
    FTP            - Upload the staging tree over FTPS using the publish profile
    ZIP            - Kudu zipdeploy (or publish?type=war|jar|ear for web artifacts)
    MSDEPLOY       - Package in blob storage, then an MSDeploy operation
    RUN_FROM_BLOB  - Package in blob storage, WEBSITE_RUN_FROM_PACKAGE=<SAS URL>
    RUN_FROM_ZIP   - WEBSITE_RUN_FROM_PACKAGE=1, then Kudu zipdeploy
    DOCKER         - Nothing to push, the app runs the configured image
"""

import ftplib
import logging
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, Optional, TYPE_CHECKING
from urllib.parse import urlparse
from xml.etree import ElementTree

from azure.core.exceptions import AzureError, HttpResponseError

from appservice_deployer.constants import (
    AZURE_WEB_JOBS_STORAGE,
    DEPLOYMENT_PACKAGE_CONTAINER,
    RUN_FROM_PACKAGE_CONTAINER,
    WEBSITE_RUN_FROM_PACKAGE,
)
from appservice_deployer.core.context import AppServiceTarget
from appservice_deployer.core.exceptions import DeploymentError, PublishError
from appservice_deployer.deployment_type import DeploymentDescriptor, DeploymentType
from appservice_deployer.functions.archive import zip_directory
from appservice_deployer.providers.azure import deployment_helpers

if TYPE_CHECKING:
    from appservice_deployer.providers.azure.provider import AzureProvider

logger = logging.getLogger(__name__)

WEB_ARTIFACT_TYPES = ("war", "jar", "ear")
RUN_FROM_BLOB_SAS_DAYS = 3650
MSDEPLOY_SAS_DAYS = 1


def _package_name(app_name: str) -> str:
    return f"{app_name}-{datetime.now(timezone.utc).strftime('%Y%m%d%H%M%S')}.zip"


def _storage_connection_string(provider: 'AzureProvider', target: AppServiceTarget) -> str:
    connection_string = deployment_helpers.get_app_setting(
        provider.clients["web"], target.resource_group, target.app_name, AZURE_WEB_JOBS_STORAGE
    )
    if not connection_string:
        raise PublishError(
            f"App setting {AZURE_WEB_JOBS_STORAGE} is required to upload the package to blob storage",
            app_name=target.app_name
        )
    return connection_string


def _kudu_zip_deploy(provider: 'AzureProvider', target: AppServiceTarget, content: bytes, path: str,
                     content_type: str = "application/zip") -> None:
    creds = deployment_helpers.get_publishing_credentials_with_retry(
        provider.clients["web"], target.resource_group, target.app_name
    )
    deployment_helpers.deploy_to_kudu(
        target.app_name,
        content,
        creds.publishing_user_name,
        creds.publishing_password,
        path=path,
        content_type=content_type,
    )


# ==========================================
# Handlers
# ==========================================

class FtpPublishHandler:
    """Uploads the staging tree over FTPS to site/wwwroot."""

    def __init__(self, provider: 'AzureProvider'):
        self.provider = provider

    def _ftp_profile(self, target: AppServiceTarget) -> Dict[str, str]:
        chunks = self.provider.clients["web"].web_apps.list_publishing_profile_xml_with_secrets(
            resource_group_name=target.resource_group,
            name=target.app_name,
            publishing_profile_options={"format": "Ftp"}
        )
        root = ElementTree.fromstring(b"".join(chunks))
        for profile in root.iter("publishProfile"):
            if profile.get("publishMethod", "").upper() == "FTP":
                return {
                    "url": profile.get("publishUrl"),
                    "username": profile.get("userName"),
                    "password": profile.get("userPWD"),
                }
        raise PublishError("No FTP publish profile found", app_name=target.app_name)

    def publish(self, target: AppServiceTarget, staging_path: Path) -> None:
        profile = self._ftp_profile(target)
        url = urlparse(profile["url"] if "://" in profile["url"] else f"ftp://{profile['url']}")
        staging_path = Path(staging_path)

        logger.info(f"  Uploading {staging_path} to {url.hostname}{url.path} via FTP...")
        try:
            with ftplib.FTP_TLS(url.hostname, timeout=300) as ftp:
                ftp.login(profile["username"], profile["password"])
                ftp.prot_p()
                ftp.cwd(url.path or "/")
                uploaded = self._upload_tree(ftp, staging_path)
        except ftplib.all_errors as e:
            logger.error(f"FTP upload failed: {e}")
            raise PublishError(f"FTP upload failed: {e}", app_name=target.app_name) from e
        logger.info(f"  ✓ Uploaded {uploaded} files via FTP")

    @staticmethod
    def _upload_tree(ftp: ftplib.FTP, directory: Path) -> int:
        uploaded = 0
        base = ftp.pwd()
        for root, dirs, files in os.walk(directory):
            dirs.sort()
            relative = Path(root).relative_to(directory).as_posix()
            if relative != ".":
                remote_dir = f"{base.rstrip('/')}/{relative}"
                try:
                    ftp.mkd(remote_dir)
                except ftplib.error_perm as e:
                    # 550: directory exists
                    if not str(e).startswith("550"):
                        raise
                ftp.cwd(remote_dir)
            else:
                ftp.cwd(base)
            for name in sorted(files):
                with open(Path(root) / name, "rb") as f:
                    ftp.storbinary(f"STOR {name}", f)
                uploaded += 1
        ftp.cwd(base)
        return uploaded


class ZipPublishHandler:
    """Kudu zipdeploy of the staging directory, or OneDeploy of a war/jar/ear artifact."""

    def __init__(self, provider: 'AzureProvider', artifact: Optional[Path] = None):
        self.provider = provider
        self.artifact = Path(artifact) if artifact else None

    def publish(self, target: AppServiceTarget, staging_path: Path) -> None:
        artifact_type = self.artifact.suffix.lstrip(".").lower() if self.artifact else ""
        if artifact_type in WEB_ARTIFACT_TYPES:
            content = self.artifact.read_bytes()
            _kudu_zip_deploy(
                self.provider, target, content,
                path=f"api/publish?type={artifact_type}",
                content_type="application/octet-stream"
            )
            return
        _kudu_zip_deploy(self.provider, target, zip_directory(staging_path), path="api/zipdeploy")


class MsDeployPublishHandler:
    """Uploads the package to blob storage and runs an MSDeploy operation against it."""

    def __init__(self, provider: 'AzureProvider', app_name: str):
        self.provider = provider
        self.app_name = app_name

    def publish(self, target: AppServiceTarget, staging_path: Path) -> None:
        connection_string = _storage_connection_string(self.provider, target)
        blob_name = _package_name(self.app_name)
        package_url = deployment_helpers.upload_package_to_blob(
            connection_string, DEPLOYMENT_PACKAGE_CONTAINER, blob_name,
            zip_directory(staging_path), MSDEPLOY_SAS_DAYS
        )

        logger.info(f"  Starting MSDeploy operation for {self.app_name}...")
        try:
            self.provider.clients["web"].web_apps.begin_create_ms_deploy_operation(
                target.resource_group,
                self.app_name,
                {"package_uri": package_url, "skip_app_data": True}
            ).result()
        except HttpResponseError as e:
            logger.error(f"MSDeploy failed: {e.status_code} - {e.message}")
            raise PublishError(f"MSDeploy failed: {e.message}", app_name=self.app_name) from e
        finally:
            deployment_helpers.delete_blob(connection_string, DEPLOYMENT_PACKAGE_CONTAINER, blob_name)
        logger.info(f"  ✓ MSDeploy completed for {self.app_name}")


class RunFromBlobPublishHandler:
    """Points WEBSITE_RUN_FROM_PACKAGE at a blob SAS URL of the package."""

    def __init__(self, provider: 'AzureProvider'):
        self.provider = provider

    def publish(self, target: AppServiceTarget, staging_path: Path) -> None:
        web_client = self.provider.clients["web"]
        connection_string = _storage_connection_string(self.provider, target)
        package_url = deployment_helpers.upload_package_to_blob(
            connection_string, RUN_FROM_PACKAGE_CONTAINER, _package_name(target.app_name),
            zip_directory(staging_path), RUN_FROM_BLOB_SAS_DAYS
        )
        deployment_helpers.update_app_settings(
            web_client, target.resource_group, target.app_name,
            {WEBSITE_RUN_FROM_PACKAGE: package_url}
        )
        try:
            web_client.web_apps.sync_function_triggers(
                resource_group_name=target.resource_group,
                name=target.app_name
            )
        except AzureError as e:
            logger.warning(f"  Failed to sync triggers for {target.app_name}: {e}")
        logger.info(f"  ✓ {target.app_name} runs from blob package")


class RunFromZipPublishHandler:
    """Sets WEBSITE_RUN_FROM_PACKAGE=1 and zip-deploys the package."""

    def __init__(self, provider: 'AzureProvider'):
        self.provider = provider

    def publish(self, target: AppServiceTarget, staging_path: Path) -> None:
        deployment_helpers.update_app_settings(
            self.provider.clients["web"], target.resource_group, target.app_name,
            {WEBSITE_RUN_FROM_PACKAGE: "1"}
        )
        _kudu_zip_deploy(self.provider, target, zip_directory(staging_path), path="api/zipdeploy")


class DockerPublishHandler:
    def publish(self, target: AppServiceTarget, staging_path: Path) -> None:
        logger.info("Skip deployment for docker app service")


PUBLISH_HANDLERS: Dict[DeploymentType, Callable[['AzureProvider', AppServiceTarget, DeploymentDescriptor], Any]] = {
    DeploymentType.FTP: lambda provider, target, descriptor: FtpPublishHandler(provider),
    DeploymentType.ZIP: lambda provider, target, descriptor: ZipPublishHandler(provider, descriptor.artifact),
    DeploymentType.MSDEPLOY: lambda provider, target, descriptor: MsDeployPublishHandler(provider, target.app_name),
    DeploymentType.RUN_FROM_BLOB: lambda provider, target, descriptor: RunFromBlobPublishHandler(provider),
    DeploymentType.RUN_FROM_ZIP: lambda provider, target, descriptor: RunFromZipPublishHandler(provider),
    DeploymentType.DOCKER: lambda provider, target, descriptor: DockerPublishHandler(),
}


def publish_artifact(
    provider: 'AzureProvider',
    target: AppServiceTarget,
    descriptor: DeploymentDescriptor
) -> None:
    """
    Publish the staged artifact with the transport selected in ``descriptor``.

    Raises:
        DeploymentError: If no handler is registered for the transport
        PublishError: If the transport fails
    """
    factory = PUBLISH_HANDLERS.get(descriptor.kind)
    if factory is None:
        raise DeploymentError(f"No publish handler registered for deployment type {descriptor.kind}")

    logger.info(f"Deploying {target.app_name} with deployment type {descriptor.kind.value}")
    handler = factory(provider, target, descriptor)
    handler.publish(target, descriptor.staging_directory)
