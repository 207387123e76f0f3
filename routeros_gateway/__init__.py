"""RouterOS Gateway - dual-protocol gateway for MikroTik RouterOS devices.

This package exposes one request/response shape over the legacy binary API
and the REST API, and keeps device-side billing and failover automation
(scheduler jobs, address-list entries, simple queues, routes) up to date.
"""

__version__ = "0.1.0"
__author__ = "RouterOS Gateway Contributors"

from routeros_gateway.config import Settings, get_settings, load_settings_from_file, set_settings

__all__ = [
    "Settings",
    "__version__",
    "get_settings",
    "load_settings_from_file",
    "set_settings",
]
