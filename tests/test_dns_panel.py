from datetime import timezone

import pytest
import responses

from retrybill.dns_panel import DnsPanelClient, DnsRecord

BASE = "http://localhost:9761"
GET_URL = BASE + "/__sc_api/zones/byCustomer/2/get/example.com"
CREATE_URL = BASE + "/__sc_api/zones/byCustomer/2/create/example.com"


def make_client():
    return DnsPanelClient(BASE, "placeholder")


def test_zone_info_sends_key_and_returns_zone():
    zone = {"name": "example.com", "status": "active"}
    with responses.RequestsMock() as rsps:
        rsps.add(responses.GET, GET_URL, json={"result": {"zone": zone}, "success": True})
        result = make_client().zone_info("example.com")
        assert rsps.calls[0].request.headers["CsHsG"] == "placeholder"
    assert result == zone


def test_zone_info_missing_result_gives_none():
    with responses.RequestsMock() as rsps:
        rsps.add(responses.GET, GET_URL, json={"success": False})
        assert make_client().zone_info("example.com") is None


def test_zone_records_parses_records():
    record = {
        "id": "rec1",
        "type": "A",
        "name": "example.com",
        "content": "192.0.2.1",
        "ttl": 300,
        "proxied": True,
        "created_on": "2024-01-01T00:00:00.123456789Z",
    }
    with responses.RequestsMock() as rsps:
        rsps.add(
            responses.GET,
            GET_URL + "/dns_records",
            json={"result": {"dns_records": [record, {"type": "TXT"}]}, "success": True},
        )
        records = make_client().zone_records("example.com")
    assert len(records) == 2
    first = records[0]
    assert first.content == "192.0.2.1"
    assert first.ttl == 300
    assert first.proxied is True
    assert first.created_on.tzinfo == timezone.utc
    assert first.created_on.year == 2024
    assert records[1].proxied is None
    assert records[1].type == "TXT"


def test_create_zone_uses_post():
    with responses.RequestsMock() as rsps:
        rsps.add(responses.POST, CREATE_URL, json={"result": {"zone": {"id": "z1"}}})
        result = make_client().create_zone("example.com")
        assert rsps.calls[0].request.method == "POST"
    assert result == {"id": "z1"}


@pytest.mark.parametrize("method", ["zone_info", "zone_records", "create_zone"])
def test_empty_domain_rejected(method):
    with responses.RequestsMock() as rsps:
        with pytest.raises(ValueError, match="not domain name"):
            getattr(make_client(), method)("")
        assert len(rsps.calls) == 0


def test_bad_json_raises():
    with responses.RequestsMock() as rsps:
        rsps.add(responses.GET, GET_URL, body="<html>")
        with pytest.raises(ValueError):
            make_client().zone_info("example.com")


def test_from_env(monkeypatch):
    monkeypatch.setenv("DNS_PANEL_URL", BASE)
    monkeypatch.setenv("DNS_PANEL_KEY", "placeholder")
    client = DnsPanelClient.from_env()
    assert client.base_url == BASE
    assert client.key == "placeholder"


def test_record_to_dict_omits_empty_fields():
    record = DnsRecord(type="A", name="example.com", ttl=60, proxied=False)
    data = record.to_dict()
    assert data == {"type": "A", "name": "example.com", "ttl": 60, "proxied": False}
    assert DnsRecord.from_dict(data) == record