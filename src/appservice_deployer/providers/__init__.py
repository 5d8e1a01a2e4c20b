"""Cloud provider implementations. Only Azure App Service is supported."""
