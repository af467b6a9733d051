from collections.abc import Iterable, Sequence
from typing import Any

from .models import AppRoute, RouteOverride

ROUTER_KEY = "cf-router"


def routing_info(routes: Iterable[AppRoute]) -> dict[str, Any]:
    """Encodes a route table the way the router expects it in a desired LRP."""
    return {ROUTER_KEY: [route.model_dump() for route in routes]}


def routes_from_overrides(overrides: Iterable[RouteOverride], system_domain: str) -> list[AppRoute]:
    """
    Groups overrides by port, keeping the order in which ports first appear
    and the order of hostnames within each port. Duplicates are kept.
    """
    grouped: dict[int, list[str]] = {}
    for override in overrides:
        grouped.setdefault(override.port, []).append(f"{override.hostname_prefix}.{system_domain}")

    return [AppRoute(hostnames=hostnames, port=port) for port, hostnames in grouped.items()]


def default_routes(app_name: str, exposed_ports: Iterable[int], monitor_port: int, system_domain: str) -> list[AppRoute]:
    routes = []
    for port in exposed_ports:
        hostnames = []
        if port == monitor_port:
            hostnames.append(f"{app_name}.{system_domain}")

        hostnames.append(f"{app_name}-{port}.{system_domain}")
        routes.append(AppRoute(hostnames=hostnames, port=port))

    return routes


def compute_routes(
    app_name: str,
    exposed_ports: Iterable[int],
    monitor_port: int,
    overrides: Sequence[RouteOverride],
    system_domain: str,
    no_routes: bool = False,
) -> list[AppRoute]:
    if no_routes:
        return []
    if overrides:
        return routes_from_overrides(overrides, system_domain)
    return default_routes(app_name, exposed_ports, monitor_port, system_domain)
