"""Route export compatible with the Ziggy client-side router."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Iterable

_INT_RE = re.compile(r"[+-]?\d+")


@dataclass(frozen=True)
class Route:
    """A registered application route."""

    method: str
    path: str
    name: str = ""


@dataclass
class ZiggyRoute:
    """A single exported route."""

    uri: str
    methods: list[str] = field(default_factory=list)
    domain: str = ""


@dataclass
class Ziggy:
    """Routing information handed to the browser."""

    domain: str = ""
    port: int = 0
    protocol: str = ""
    url: str = ""
    group: str = ""
    routes: dict[str, ZiggyRoute] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "domain": self.domain,
            "port": self.port,
            "protocol": self.protocol,
            "url": self.url,
            "group": self.group,
            "routes": {
                name: {"uri": route.uri, "methods": list(route.methods), "domain": route.domain}
                for name, route in self.routes.items()
            },
        }


def build_ziggy(protocol: str, hostname: str, routes: Iterable[Route]) -> Ziggy:
    """Build the Ziggy description for a request's protocol and host."""
    host_parts = hostname.split(":")
    ziggy = Ziggy(protocol=protocol, domain=host_parts[0])
    ziggy.url = f"{protocol}://{ziggy.domain}"
    if len(host_parts) > 1 and _INT_RE.fullmatch(host_parts[1]):
        port = int(host_parts[1])
        if port > 0:
            ziggy.port = port
            ziggy.url += f":{port}"

    for route in routes:
        if route.name == "" and route.path == "/":
            continue
        uri = route.path if route.path == "/" else route.path.removeprefix("/")
        existing = ziggy.routes.get(route.name)
        if existing is None:
            ziggy.routes[route.name] = ZiggyRoute(uri=uri, methods=[route.method])
        elif route.method not in existing.methods:
            existing.methods.append(route.method)
    return ziggy