# ==========================================
# 1. Configuration Filenames
# ==========================================
CONFIG_FILE = "azure-deploy.json"
CONFIG_CREDENTIALS_FILE = "config_credentials_azure.json"

# ==========================================
# 2. Function App Project Files
# ==========================================
HOST_JSON = "host.json"
LOCAL_SETTINGS_JSON = "local.settings.json"
FUNCTION_JSON = "function.json"
EXTENSIONS_CSPROJ = "extensions.csproj"
LIB_FOLDER = "lib"

# Staging directories live under <build dir>/<staging folder>/<app name>
STAGING_FOLDER = "azure-functions"
WEBAPP_STAGING_FOLDER = "azure-webapps"

# The function runtime ships its own support library; it is never staged.
FUNCTION_LIBRARY_PREFIX = "azure-functions-java-library-"

DEFAULT_HOST_JSON = (
    '{"version":"2.0","extensionBundle":'
    '{"id":"Microsoft.Azure.Functions.ExtensionBundle","version":"[4.*, 5.0.0)"}}\n'
)
DEFAULT_LOCAL_SETTINGS_JSON = (
    '{ "IsEncrypted": false, "Values": { "FUNCTIONS_WORKER_RUNTIME": "java" } }'
)

EXTENSION_BUNDLE_KEY = "extensionBundle"
EXTENSION_BUNDLE_IDS = (
    "Microsoft.Azure.Functions.ExtensionBundle",
    "Microsoft.Azure.Functions.ExtensionBundle.Preview",
)

# ==========================================
# 3. App Settings
# ==========================================
FUNCTIONS_WORKER_RUNTIME_NAME = "FUNCTIONS_WORKER_RUNTIME"
FUNCTIONS_WORKER_RUNTIME_VALUE = "java"
FUNCTIONS_EXTENSION_VERSION_NAME = "FUNCTIONS_EXTENSION_VERSION"
FUNCTIONS_EXTENSION_VERSION_VALUE = "~4"
APPINSIGHTS_INSTRUMENTATION_KEY = "APPINSIGHTS_INSTRUMENTATIONKEY"
AZURE_WEB_JOBS_STORAGE = "AzureWebJobsStorage"
WEBSITE_CONTENT_CONNECTION_STRING = "WEBSITE_CONTENTAZUREFILECONNECTIONSTRING"
WEBSITE_CONTENT_SHARE = "WEBSITE_CONTENTSHARE"
WEBSITE_RUN_FROM_PACKAGE = "WEBSITE_RUN_FROM_PACKAGE"

DOCKER_REGISTRY_SERVER_URL = "DOCKER_REGISTRY_SERVER_URL"
DOCKER_REGISTRY_SERVER_USERNAME = "DOCKER_REGISTRY_SERVER_USERNAME"
DOCKER_REGISTRY_SERVER_PASSWORD = "DOCKER_REGISTRY_SERVER_PASSWORD"
WEBSITES_ENABLE_APP_SERVICE_STORAGE = "WEBSITES_ENABLE_APP_SERVICE_STORAGE"
DEFAULT_DOCKER_REGISTRY = "https://index.docker.io"

# ==========================================
# 4. Resource Defaults & Naming Rules
# ==========================================
DEFAULT_REGION = "westus"
DEFAULT_PLAN_PREFIX = "asp-"
CONSUMPTION_PRICING_TIER = "Y1"
DEFAULT_WEBAPP_PRICING_TIER = "P1v2"

APP_NAME_PATTERN = r"^[a-zA-Z0-9][a-zA-Z0-9\-]{0,58}[a-zA-Z0-9]$"
RESOURCE_GROUP_PATTERN = r"^[a-zA-Z0-9._\-()]{1,90}$"
APP_SERVICE_PLAN_NAME_PATTERN = r"^[a-zA-Z0-9\-]{1,40}$"
GUID_PATTERN = r"^[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}$"

# Offline list for region sanity checks; an unknown region only warns.
KNOWN_REGIONS = [
    "eastus", "eastus2", "westus", "westus2", "westus3", "centralus",
    "northcentralus", "southcentralus", "westcentralus", "canadacentral",
    "canadaeast", "brazilsouth", "northeurope", "westeurope", "uksouth",
    "ukwest", "francecentral", "germanywestcentral", "italynorth",
    "norwayeast", "swedencentral", "switzerlandnorth", "polandcentral",
    "eastasia", "southeastasia", "japaneast", "japanwest", "koreacentral",
    "koreasouth", "centralindia", "southindia", "westindia",
    "australiaeast", "australiasoutheast", "australiacentral",
    "uaenorth", "southafricanorth", "qatarcentral",
]

PORTAL_URL = "https://ms.portal.azure.com"

# ==========================================
# 5. Publishing
# ==========================================
RUN_FROM_PACKAGE_CONTAINER = "java-functions-run-from-packages"
DEPLOYMENT_PACKAGE_CONTAINER = "java-functions-deployment-packages"
KUDU_MAX_RETRIES = 15
KUDU_RETRY_DELAY = 30
LIST_TRIGGERS_MAX_RETRY = 3
LIST_TRIGGERS_RETRY_PERIOD_IN_SECONDS = 10
