"""HTTP routes of the service and mounting of the domain routers.

The service itself only serves ``/`` and ``/health``. Business endpoints
are provided as ``APIRouter`` objects by the domain packages and mounted
under one of the recognised prefixes.
"""

from collections.abc import Mapping

from fastapi import APIRouter, FastAPI
from loguru import logger

from src.api.constants import DOMAIN_ROUTE_PREFIXES
from src.core.exceptions import ConfigurationError


def mount_domain_routers(app: FastAPI, routers: Mapping[str, APIRouter]) -> None:
    """Mount domain routers under their prefixes.

    Args:
        app: The FastAPI application instance.
        routers: Router per route prefix (e.g. ``{"/clientes": router}``).

    Raises:
        ConfigurationError: If a prefix is not one of the recognised ones.
    """
    unknown = sorted(set(routers) - set(DOMAIN_ROUTE_PREFIXES))
    if unknown:
        raise ConfigurationError(
            "Unknown domain route prefixes",
            problems=[f"{prefix}: not a recognised route prefix" for prefix in unknown],
        )

    mounted = [prefix for prefix in DOMAIN_ROUTE_PREFIXES if prefix in routers]
    for prefix in mounted:
        app.include_router(routers[prefix], prefix=prefix)
    app.state.domain_prefixes = tuple(mounted)

    logger.debug("Domain routers mounted", prefixes=mounted)
