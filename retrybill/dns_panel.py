"""Client of the DNS protection panel used for domain orders."""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Mapping

import requests

logger = logging.getLogger(__name__)

API_PREFIX = "__sc_api"
ZONES_GET = "zones/byCustomer/2/get"
ZONES_CREATE = "zones/byCustomer/2/create"
KEY_HEADER = "CsHsG"

_FRACTION_RE = re.compile(r"\.(\d{6})\d+")


def _parse_time(value: Any) -> datetime | None:
    if value is None or value == "":
        return None
    if not isinstance(value, str):
        raise ValueError(f"invalid time value: {value!r}")
    text = value
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    text = _FRACTION_RE.sub(r".\1", text)
    return datetime.fromisoformat(text)


@dataclass
class DnsRecord:
    """A DNS record of a protected zone."""

    created_on: datetime | None = None
    modified_on: datetime | None = None
    type: str = ""
    name: str = ""
    content: str = ""
    meta: Any = None
    data: Any = None
    id: str = ""
    zone_id: str = ""
    zone_name: str = ""
    ttl: int = 0
    proxied: bool | None = None
    proxiable: bool = False
    locked: bool = False

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "DnsRecord":
        proxied = raw.get("proxied")
        return cls(
            created_on=_parse_time(raw.get("created_on")),
            modified_on=_parse_time(raw.get("modified_on")),
            type=str(raw.get("type") or ""),
            name=str(raw.get("name") or ""),
            content=str(raw.get("content") or ""),
            meta=raw.get("meta"),
            data=raw.get("data"),
            id=str(raw.get("id") or ""),
            zone_id=str(raw.get("zone_id") or ""),
            zone_name=str(raw.get("zone_name") or ""),
            ttl=int(raw.get("ttl") or 0),
            proxied=None if proxied is None else bool(proxied),
            proxiable=bool(raw.get("proxiable", False)),
            locked=bool(raw.get("locked", False)),
        )

    def to_dict(self) -> dict[str, Any]:
        """JSON form with empty fields left out."""
        values = {
            "created_on": self.created_on.isoformat() if self.created_on else None,
            "modified_on": self.modified_on.isoformat() if self.modified_on else None,
            "type": self.type,
            "name": self.name,
            "content": self.content,
            "meta": self.meta,
            "data": self.data,
            "id": self.id,
            "zone_id": self.zone_id,
            "zone_name": self.zone_name,
            "ttl": self.ttl,
            "proxiable": self.proxiable,
            "locked": self.locked,
        }
        result = {key: value for key, value in values.items() if value}
        if self.proxied is not None:
            result["proxied"] = self.proxied
        return result


def _result(payload: Any) -> Mapping[str, Any]:
    if not isinstance(payload, Mapping):
        raise ValueError("DNS panel reply is not a JSON object")
    result = payload.get("result") or {}
    if not isinstance(result, Mapping):
        raise ValueError("DNS panel result is not a JSON object")
    return result


class DnsPanelClient:
    """Reads and creates zones for the panel's customer account."""

    def __init__(
        self,
        base_url: str,
        key: str,
        session: requests.Session | None = None,
    ) -> None:
        self.base_url = base_url
        self.key = key
        self.session = session or requests.Session()

    @classmethod
    def from_env(cls, session: requests.Session | None = None) -> "DnsPanelClient":
        """Client configured by DNS_PANEL_URL and DNS_PANEL_KEY."""
        return cls(
            os.environ.get("DNS_PANEL_URL", ""),
            os.environ.get("DNS_PANEL_KEY", ""),
            session,
        )

    def _url(self, *parts: str) -> str:
        url = "/".join((self.base_url, API_PREFIX, *parts))
        logger.info("%s", url)
        return url

    def _call(self, method: str, url: str) -> Any:
        response = self.session.request(method, url, headers={KEY_HEADER: self.key})
        return response.json()

    @staticmethod
    def _check(domain: str) -> None:
        if not domain:
            raise ValueError("not domain name")

    def zone_info(self, domain: str) -> Any:
        """Zone description of a domain."""
        self._check(domain)
        payload = self._call("GET", self._url(ZONES_GET, domain))
        return _result(payload).get("zone")

    def zone_records(self, domain: str) -> list[DnsRecord]:
        """DNS records of a domain's zone."""
        self._check(domain)
        payload = self._call("GET", self._url(ZONES_GET, domain, "dns_records"))
        records = _result(payload).get("dns_records") or []
        if not isinstance(records, list):
            raise ValueError("dns_records is not a list")
        return [DnsRecord.from_dict(record) for record in records]

    def create_zone(self, domain: str) -> Any:
        """Create a zone for a domain and return its description."""
        self._check(domain)
        payload = self._call("POST", self._url(ZONES_CREATE, domain))
        return _result(payload).get("zone")