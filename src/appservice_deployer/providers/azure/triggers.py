"""
Post-deployment helpers for function apps: start the app, list HTTP triggers.
"""

import logging
import time
from typing import Any, List, TYPE_CHECKING

from azure.core.exceptions import AzureError

from appservice_deployer.constants import (
    LIST_TRIGGERS_MAX_RETRY,
    LIST_TRIGGERS_RETRY_PERIOD_IN_SECONDS,
    PORTAL_URL,
)
from appservice_deployer.core.context import AppServiceTarget

if TYPE_CHECKING:
    from appservice_deployer.providers.azure.provider import AzureProvider

logger = logging.getLogger(__name__)


def start_app_if_stopped(provider: 'AzureProvider', target: AppServiceTarget) -> None:
    """Start the app unless it already reports state ``Running``."""
    web_client = provider.clients["web"]
    site = web_client.web_apps.get(target.resource_group, target.app_name)
    if site is not None and str(getattr(site, "state", "")).lower() == "running":
        return
    logger.info(f"Starting app {target.app_name}...")
    web_client.web_apps.start(resource_group_name=target.resource_group, name=target.app_name)
    logger.info(f"✓ App started: {target.app_name}")


def portal_url(provider: 'AzureProvider', target: AppServiceTarget) -> str:
    return (
        f"{PORTAL_URL}/#@/resource/subscriptions/{provider.subscription_id}"
        f"/resourceGroups/{target.resource_group}/providers/Microsoft.Web/sites/{target.app_name}"
    )


def _http_trigger_bindings(function: Any) -> List[dict]:
    config = getattr(function, "config", None) or {}
    bindings = config.get("bindings", []) if isinstance(config, dict) else []
    return [binding for binding in bindings if str(binding.get("type", "")).lower() == "httptrigger"]


def _is_http_trigger(function: Any) -> bool:
    return bool(_http_trigger_bindings(function))


def _is_anonymous_http_trigger(function: Any) -> bool:
    return any(
        str(binding.get("authLevel", "")).lower() == "anonymous"
        for binding in _http_trigger_bindings(function)
    )


def list_http_trigger_urls(
    provider: 'AzureProvider',
    target: AppServiceTarget,
    max_retries: int = LIST_TRIGGERS_MAX_RETRY,
    retry_delay: int = LIST_TRIGGERS_RETRY_PERIOD_IN_SECONDS
) -> List[str]:
    """
    Sync triggers and list the URLs of anonymous HTTP-triggered functions.

    The function host may need a moment before it reports its functions, so
    this retries; failing to list triggers only warns, the deployment
    itself already succeeded.

    Returns:
        Invoke URLs of anonymous HTTP triggers (empty if they could not be listed).
    """
    web_client = provider.clients["web"]
    for attempt in range(1, max_retries + 1):
        try:
            web_client.web_apps.sync_function_triggers(
                resource_group_name=target.resource_group,
                name=target.app_name
            )
            functions = list(web_client.web_apps.list_functions(
                resource_group_name=target.resource_group,
                name=target.app_name
            ))
            if functions:
                urls = [
                    function.invoke_url_template
                    for function in functions
                    if _is_anonymous_http_trigger(function) and function.invoke_url_template
                ]
                if not urls:
                    logger.info("No anonymous HTTP triggers found in deployed function app")
                    return urls
                logger.info("HTTP Trigger Urls:")
                for url in urls:
                    logger.info(f"  {url}")
                if len(urls) < len([function for function in functions if _is_http_trigger(function)]):
                    logger.info(
                        "Some http trigger urls cannot be displayed because they are non-anonymous. "
                        "To access the non-anonymous triggers, please refer https://aka.ms/azure-functions-key."
                    )
                return urls
            logger.debug(f"No functions reported yet (attempt {attempt}/{max_retries})")
        except AzureError as e:
            logger.debug(f"Listing triggers failed (attempt {attempt}/{max_retries}): {e}")
        if attempt < max_retries:
            time.sleep(retry_delay)

    logger.warning(
        "Failed to list HTTP triggers, please check the function app in the portal: "
        f"{portal_url(provider, target)}"
    )
    return []
