"""
Azure provider package.

Holds the SDK client wrapper (AzureProvider), the create-or-update engine for
resource group / hosting plan / app, and the artifact publishers.
"""

from .provider import AzureProvider

__all__ = ["AzureProvider"]
