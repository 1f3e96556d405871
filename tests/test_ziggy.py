from retrybill.ziggy import Route, ZiggyRoute, build_ziggy


def test_host_with_port():
    ziggy = build_ziggy("https", "example.com:8443", [])
    assert ziggy.domain == "example.com"
    assert ziggy.port == 8443
    assert ziggy.url == "https://example.com:8443"
    assert ziggy.protocol == "https"


def test_host_without_port():
    ziggy = build_ziggy("http", "example.com", [])
    assert ziggy.port == 0
    assert ziggy.url == "http://example.com"


def test_invalid_or_zero_port_is_ignored():
    assert build_ziggy("http", "example.com:abc", []).url == "http://example.com"
    assert build_ziggy("http", "example.com:0", []).port == 0


def test_routes_grouped_by_name():
    routes = [
        Route("GET", "/users", "users"),
        Route("POST", "/users", "users"),
        Route("GET", "/users", "users"),
        Route("GET", "/orders/:id", "orders.show"),
    ]
    ziggy = build_ziggy("http", "example.com", routes)
    assert ziggy.routes == {
        "users": ZiggyRoute(uri="users", methods=["GET", "POST"]),
        "orders.show": ZiggyRoute(uri="orders/:id", methods=["GET"]),
    }


def test_unnamed_root_is_skipped_but_named_root_kept():
    routes = [Route("GET", "/"), Route("GET", "/", "home")]
    ziggy = build_ziggy("http", "example.com", routes)
    assert ziggy.routes == {"home": ZiggyRoute(uri="/", methods=["GET"])}


def test_to_dict():
    ziggy = build_ziggy("http", "example.com:8080", [Route("GET", "/a", "a")])
    assert ziggy.to_dict() == {
        "domain": "example.com",
        "port": 8080,
        "protocol": "http",
        "url": "http://example.com:8080",
        "group": "",
        "routes": {"a": {"uri": "a", "methods": ["GET"], "domain": ""}},
    }