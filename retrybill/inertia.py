"""Server-side adapter for Inertia.js pages rendered through Jinja templates."""

from __future__ import annotations

import dataclasses
import json
from dataclasses import dataclass, field, replace
from typing import Any, Mapping

from jinja2 import BaseLoader, Environment, FileSystemLoader
from markupsafe import Markup

from .assets import hash_dir, vite
from .ziggy import Route, build_ziggy

HEADER_PREFIX = "X-Inertia"
HEADER_VERSION = HEADER_PREFIX + "-Version"
HEADER_LOCATION = HEADER_PREFIX + "-Location"
HEADER_PARTIAL_DATA = HEADER_PREFIX + "-Partial-Data"
HEADER_PARTIAL_COMPONENT = HEADER_PREFIX + "-Partial-Component"

STATUS_OK = 200
STATUS_FOUND = 302
STATUS_SEE_OTHER = 303
STATUS_CONFLICT = 409

_REDIRECT_METHODS = ("PUT", "PATCH", "DELETE")
_BOOL_VALUES = {
    "1": True, "t": True, "T": True, "TRUE": True, "true": True, "True": True,
    "0": False, "f": False, "F": False, "FALSE": False, "false": False, "False": False,
}
_JSON_ESCAPES = {
    "<": "\\u003c",
    ">": "\\u003e",
    "&": "\\u0026",
    "\u2028": "\\u2028",
    "\u2029": "\\u2029",
}
_HTML_ESCAPES = {
    "\0": "\ufffd",
    '"': "&#34;",
    "'": "&#39;",
    "&": "&amp;",
    "<": "&lt;",
    ">": "&gt;",
}


@dataclass
class Config:
    """Settings of the Inertia engine."""

    root: str = "resources/views"
    assets_path: str = "resources/js"
    template: str = "app"
    manifest_root: str = ""
    loader: BaseLoader | None = None


@dataclass
class Page:
    """The page object sent to the client."""

    component: str
    props: dict[str, Any] = field(default_factory=dict)
    url: str = ""
    version: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "component": self.component,
            "props": dict(self.props),
            "url": self.url,
            "version": self.version,
        }


@dataclass
class InertiaRequest:
    """The parts of an incoming HTTP request the engine looks at."""

    method: str = "GET"
    url: str = "/"
    headers: Mapping[str, str] = field(default_factory=dict)
    protocol: str = "http"
    hostname: str = "localhost"
    routes: list[Route] = field(default_factory=list)
    context_props: Any = None


@dataclass
class InertiaResponse:
    """A response produced by the engine: HTML in ``body`` or JSON in ``data``."""

    status: int = STATUS_OK
    headers: dict[str, str] = field(default_factory=dict)
    body: str = ""
    data: Any = None


def _get_header(request: InertiaRequest, name: str, default: str = "") -> str:
    wanted = name.lower()
    for key, value in request.headers.items():
        if key.lower() == wanted and value:
            return value
    return default


def _is_xhr(request: InertiaRequest) -> bool:
    return _get_header(request, "X-Requested-With").lower() == "xmlhttprequest"


def _parse_bool(value: str) -> bool:
    try:
        return _BOOL_VALUES[value]
    except KeyError:
        raise ValueError(f"X-Inertia not parsable: invalid syntax {value!r}") from None


def _json_default(obj: Any) -> Any:
    if hasattr(obj, "to_dict"):
        return obj.to_dict()
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        return dataclasses.asdict(obj)
    if isinstance(obj, (set, frozenset, tuple)):
        return list(obj)
    raise TypeError(f"object of type {type(obj).__name__} is not JSON serializable")


def _marshal(obj: Any, sort_keys: bool = True) -> str:
    text = json.dumps(
        obj,
        ensure_ascii=False,
        separators=(",", ":"),
        sort_keys=sort_keys,
        default=_json_default,
    )
    for char, escaped in _JSON_ESCAPES.items():
        text = text.replace(char, escaped)
    return text


def _html_escape(text: str) -> str:
    return "".join(_HTML_ESCAPES.get(char, char) for char in text)


def _marshal_page(page: Page) -> str:
    return (
        f'{{"component":{_marshal(page.component)},'
        f'"props":{_marshal(page.props)},'
        f'"url":{_marshal(page.url)},'
        f'"version":{_marshal(page.version)}}}'
    )


class Engine:
    """Renders Inertia pages either as JSON or as a full HTML document."""

    def __init__(self, config: Config | None = None) -> None:
        cfg = replace(config) if config is not None else Config()
        if not cfg.assets_path:
            cfg.assets_path = "resources/js"
        if not cfg.root:
            cfg.root = "resources/views"
        if not cfg.template:
            cfg.template = "app"
        self.config = cfg
        self._env = Environment(
            loader=cfg.loader if cfg.loader is not None else FileSystemLoader(cfg.root),
            autoescape=True,
        )
        self.version = ""
        self.props: dict[str, Any] = {}
        self.next_props: dict[str, Any] = {}
        self.params: dict[str, Any] = {}

    def middleware(self, request: InertiaRequest) -> InertiaResponse | None:
        """Check the asset version; return a conflict response or ``None`` to proceed."""
        if not self.config.assets_path:
            raise ValueError("please provide an assets path")
        digest = hash_dir(self.config.assets_path)
        if (
            request.method == "GET"
            and _is_xhr(request)
            and _get_header(request, HEADER_VERSION, "1") != digest
        ):
            return InertiaResponse(
                status=STATUS_CONFLICT,
                headers={HEADER_LOCATION: request.url},
                data={},
            )
        self.version = digest
        return None

    def adjust_redirect(self, method: str, status: int) -> int:
        """Turn a 302 after PUT, PATCH or DELETE into a 303."""
        if method in _REDIRECT_METHODS and status == STATUS_FOUND:
            return STATUS_SEE_OTHER
        return status

    def share(self, name: str, value: Any) -> None:
        self.props[name] = value

    def with_prop(self, name: str, value: Any) -> None:
        """Add a prop to the next rendered page only."""
        self.next_props[name] = value

    def with_view_data(self, name: str, value: Any) -> None:
        """Add a value passed to the HTML template."""
        self.params[name] = value

    def _base_headers(self) -> dict[str, str]:
        return {HEADER_VERSION: self.version} if self.version else {}

    def view(
        self,
        component: str,
        props: Mapping[str, Any] | None,
        request: InertiaRequest,
    ) -> InertiaResponse:
        """Render a component as JSON for Inertia XHR requests, HTML otherwise."""
        render_json = _parse_bool(_get_header(request, HEADER_PREFIX, "false"))
        page = self.partial_reload(component, props, request)
        if render_json and _is_xhr(request):
            headers = self._base_headers()
            headers.update({
                "Vary": "Accept",
                "X-Inertia": "true",
                "Content-Type": "application/json",
            })
            return InertiaResponse(status=STATUS_OK, headers=headers, data=page.to_dict())
        return self.render_html(page, request)

    def partial_reload(
        self,
        component: str,
        props: Mapping[str, Any] | None,
        request: InertiaRequest,
    ) -> Page:
        """Build the page, keeping only the requested props on a partial reload."""
        only: set[str] = set()
        partial = _get_header(request, HEADER_PARTIAL_DATA)
        if partial and _get_header(request, HEADER_PARTIAL_COMPONENT) == component:
            only = set(partial.split(","))

        def wanted(key: str) -> bool:
            return not only or key in only

        page = Page(component=component, url=request.url, version=self.version)
        sources: list[Mapping[str, Any]] = [self.next_props, props or {}]
        if request.context_props is not None:
            if not isinstance(request.context_props, Mapping):
                raise ValueError("X-Inertia: could not convert context props to map")
            sources.append(request.context_props)
        for source in sources:
            page.props.update((key, value) for key, value in source.items() if wanted(key))

        self.next_props = {}
        return page

    def render_html(self, page: Page, request: InertiaRequest) -> InertiaResponse:
        """Render the configured template around the page."""
        inertia_data = _html_escape(_marshal_page(page))
        ziggy = build_ziggy(request.protocol, request.hostname, request.routes)
        ziggy_data = _marshal(ziggy.to_dict(), sort_keys=False)
        assets = self.config.assets_path
        values: dict[str, Any] = {
            "Inertia": Markup(f"<div id='app' data-page='{inertia_data}'></div>"),
            "Ziggy": Markup(f"<script>const Ziggy = {ziggy_data};</script>"),
            "Vite": vite(
                [f"{assets}/app.js", f"{assets}/Pages/{page.component}.vue"],
                self.config.manifest_root,
            ),
        }
        values.update(self.params)

        template = self._env.get_template(f"{self.config.template}.html")
        body = template.render(**values)
        headers = self._base_headers()
        headers.update({"Vary": HEADER_PREFIX, "Content-Type": "text/html; charset=UTF-8"})
        return InertiaResponse(status=STATUS_OK, headers=headers, body=body)