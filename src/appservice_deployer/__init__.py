"""
Provision Azure Function Apps / Web Apps and publish build artifacts to them.

Entry points live in ``appservice_deployer.deploy``.
"""

__version__ = "0.1.0"
