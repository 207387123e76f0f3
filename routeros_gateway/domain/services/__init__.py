"""Domain services for the RouterOS gateway.

Services resolve the router through the directory, open one scoped
protocol session per call and express their work through the session
capability interface only.
"""

from routeros_gateway.domain.services.billing import BillingService
from routeros_gateway.domain.services.directory import (
    HttpRouterDirectory,
    RouterDirectory,
    StaticRouterDirectory,
    create_directory,
    resolve_device,
)
from routeros_gateway.domain.services.failover import FailoverService
from routeros_gateway.domain.services.gateway import GatewayService

__all__ = [
    "BillingService",
    "FailoverService",
    "GatewayService",
    "HttpRouterDirectory",
    "RouterDirectory",
    "StaticRouterDirectory",
    "create_directory",
    "resolve_device",
]
