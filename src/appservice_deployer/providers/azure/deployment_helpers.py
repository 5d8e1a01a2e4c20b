"""
Shared Azure deployment helpers.

This module provides reusable helper functions for publishing, including
Kudu deployment with retry logic, app setting updates and package upload
to blob storage with a read SAS URL.
"""

import logging
import time
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import requests
from azure.core.exceptions import HttpResponseError
from azure.storage.blob import BlobSasPermissions, BlobServiceClient, generate_blob_sas

from appservice_deployer.constants import KUDU_MAX_RETRIES, KUDU_RETRY_DELAY
from appservice_deployer.core.exceptions import PublishError

logger = logging.getLogger(__name__)


# ==========================================
# Publishing Credentials & Kudu
# ==========================================

def get_publishing_credentials_with_retry(
    web_client: Any,
    resource_group: str,
    app_name: str,
    max_retries: int = 10,
    retry_delay: int = 30
) -> Any:
    """
    Get publishing credentials for an app with retry logic.

    The list_publishing_credentials API can fail with ServiceUnavailable (503)
    while a freshly created app is still initializing.

    Args:
        web_client: Azure WebSiteManagementClient
        resource_group: Resource group name
        app_name: App name
        max_retries: Maximum retry attempts (default 10, ~5 min with 30s delay)
        retry_delay: Seconds to wait between retries (default 30)

    Returns:
        Publishing credentials object with publishing_user_name and publishing_password

    Raises:
        HttpResponseError: If credentials cannot be retrieved after all retries
    """
    for attempt in range(1, max_retries + 1):
        try:
            return web_client.web_apps.begin_list_publishing_credentials(
                resource_group_name=resource_group,
                name=app_name
            ).result()
        except HttpResponseError as e:
            error_str = str(e)
            if ("ServiceUnavailable" in error_str or
                    "503" in error_str or
                    "host runtime" in error_str.lower()) and attempt < max_retries:
                logger.warning(
                    f"  App not ready (attempt {attempt}/{max_retries}), "
                    f"waiting {retry_delay}s..."
                )
                time.sleep(retry_delay)
                continue
            logger.error(f"Failed to get publishing credentials: {e}")
            raise

    raise HttpResponseError(
        f"Failed to get publishing credentials for {app_name} after {max_retries} attempts"
    )


def deploy_to_kudu(
    app_name: str,
    content: bytes,
    publish_username: str,
    publish_password: str,
    path: str = "api/zipdeploy",
    content_type: str = "application/zip",
    max_retries: int = KUDU_MAX_RETRIES,
    retry_delay: int = KUDU_RETRY_DELAY
) -> None:
    """
    Push a package to the app's Kudu (SCM) endpoint with retry.

    Handles transient errors while a new app starts up:
    - 401 Unauthorized: SCM Basic Auth not yet active
    - 503 Service Unavailable: Kudu SCM still starting up

    Args:
        app_name: Name of the app
        content: Package bytes (zip, war, jar or ear)
        publish_username: Publishing username from the app credentials
        publish_password: Publishing password from the app credentials
        path: Kudu API path, ``api/zipdeploy`` or ``api/publish?type=war`` etc.
        content_type: Request content type
        max_retries: Maximum retry attempts (default 15, ~7.5 min with 30s delay)
        retry_delay: Seconds to wait between retries (default 30)

    Raises:
        PublishError: If deployment fails after all retries
    """
    kudu_url = f"https://{app_name}.scm.azurewebsites.net/{path}"

    logger.info(f"  Deploying via Kudu to {kudu_url}...")

    for attempt in range(1, max_retries + 1):
        try:
            response = requests.post(
                kudu_url,
                data=content,
                auth=(publish_username, publish_password),
                headers={"Content-Type": content_type},
                timeout=300
            )

            if response.status_code in (200, 202):
                logger.info(f"  ✓ Package uploaded to {app_name}")
                return
            elif response.status_code in (401, 503) and attempt < max_retries:
                logger.warning(
                    f"  Kudu returned {response.status_code} (attempt {attempt}/{max_retries}), "
                    f"waiting {retry_delay}s for SCM to become ready..."
                )
                time.sleep(retry_delay)
                continue
            else:
                logger.error(f"Kudu deploy failed: {response.status_code} - {response.text}")
                raise PublishError(
                    f"Kudu deploy failed: {response.status_code} - {response.text}", app_name=app_name
                )
        except requests.exceptions.RequestException as e:
            if attempt < max_retries:
                logger.warning(
                    f"  Network error (attempt {attempt}/{max_retries}), "
                    f"waiting {retry_delay}s..."
                )
                time.sleep(retry_delay)
                continue
            logger.error(f"Network error during Kudu deploy: {e}")
            raise PublishError(f"Kudu deploy network error: {e}", app_name=app_name) from e

    raise PublishError(f"Kudu deploy failed: max retries ({max_retries}) exceeded", app_name=app_name)


# ==========================================
# App Settings
# ==========================================

def get_app_setting(web_client: Any, resource_group: str, app_name: str, name: str) -> Optional[str]:
    settings = web_client.web_apps.list_application_settings(
        resource_group_name=resource_group,
        name=app_name
    )
    return (settings.properties or {}).get(name)


def update_app_settings(
    web_client: Any,
    resource_group: str,
    app_name: str,
    updates: Dict[str, str]
) -> None:
    """Overlay ``updates`` on the app's current settings and write them back."""
    current = web_client.web_apps.list_application_settings(
        resource_group_name=resource_group,
        name=app_name
    )
    settings = dict(current.properties or {})
    settings.update(updates)
    web_client.web_apps.update_application_settings(
        resource_group_name=resource_group,
        name=app_name,
        app_settings={"properties": settings}
    )
    logger.info(f"  ✓ App settings updated: {', '.join(updates)}")


# ==========================================
# Blob Storage
# ==========================================

def upload_package_to_blob(
    connection_string: str,
    container_name: str,
    blob_name: str,
    content: bytes,
    sas_valid_days: int
) -> str:
    """
    Upload a package to blob storage and return a read-only SAS URL for it.

    The container is created when missing.

    Args:
        connection_string: Storage account connection string
        container_name: Target container
        blob_name: Target blob name
        content: Package bytes
        sas_valid_days: Lifetime of the SAS token

    Returns:
        ``<blob url>?<sas token>``
    """
    service = BlobServiceClient.from_connection_string(connection_string)
    container = service.get_container_client(container_name)
    if not container.exists():
        container.create_container()
        logger.info(f"  ✓ Blob container created: {container_name}")

    blob = container.get_blob_client(blob_name)
    blob.upload_blob(content, overwrite=True)
    logger.info(f"  ✓ Package uploaded to blob {container_name}/{blob_name}")

    sas_token = generate_blob_sas(
        account_name=blob.account_name,
        container_name=container_name,
        blob_name=blob_name,
        account_key=service.credential.account_key,
        permission=BlobSasPermissions(read=True),
        expiry=datetime.now(timezone.utc) + timedelta(days=sas_valid_days)
    )
    return f"{blob.url}?{sas_token}"


def delete_blob(connection_string: str, container_name: str, blob_name: str) -> None:
    service = BlobServiceClient.from_connection_string(connection_string)
    service.get_blob_client(container=container_name, blob=blob_name).delete_blob()
    logger.debug(f"  Deleted blob {container_name}/{blob_name}")
