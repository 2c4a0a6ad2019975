"""Turn a templated request description into the fields a signer needs."""

import json
from dataclasses import dataclass, field
from typing import Any, MutableMapping, Mapping, Optional
from urllib.parse import urlsplit

from .config import SigningConfig
from .templating import TemplateRenderer, render as default_render


@dataclass
class CanonicalRequest:
    """Signable view of one outgoing request. Built per call, never shared."""
    method: str
    url: str
    host: str
    path: str
    headers: dict[str, str] = field(default_factory=dict)
    body: Optional[str] = None


def maybe_prepend_base(uri: str, target: Optional[str]) -> str:
    """Prefix root-relative paths with the configured target base URL."""
    if uri.startswith("/"):
        if not target:
            raise ValueError(f"Relative request path {uri!r} needs a configured target")
        return target.rstrip("/") + uri
    return uri


def serialize_json(value: Any) -> str:
    """Serialize a JSON body the way it is sent: compact separators, non-ASCII kept."""
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False)


def _as_text(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, (dict, list)):
        return serialize_json(value)
    return str(value)


def canonicalize(
    request_params: MutableMapping[str, Any],
    context: Mapping[str, Any],
    signing_config: SigningConfig,
    render: TemplateRenderer = default_render,
) -> CanonicalRequest:
    """
    Build the canonical request for one virtual-user request.

    The body is written back to ``request_params`` so the bytes that get sent
    are the bytes that were signed: a raw ``body`` is rendered in place, and a
    ``json`` body is rendered, serialized with :func:`serialize_json` and moved
    to ``body`` (adding ``Content-Type: application/json`` when no content type
    is set).

    Args:
        request_params: Request description (method, uri/url, headers, json/body)
        context: Virtual user context passed to the renderer
        signing_config: Validated signing configuration
        render: Template renderer

    Returns:
        CanonicalRequest for the signer

    Raises:
        ValueError: If the resolved URL has no scheme or host
    """
    raw_uri = request_params.get("uri") or request_params.get("url")
    if not raw_uri:
        raise ValueError("Request has neither 'uri' nor 'url'")

    url = maybe_prepend_base(_as_text(render(raw_uri, context)), signing_config.target)
    parts = urlsplit(url)
    if not parts.scheme or not parts.hostname:
        raise ValueError(f"Cannot sign request to unparsable URL {url!r}")

    host = parts.netloc.rsplit("@", 1)[-1]
    path = parts.path or "/"
    if parts.query:
        path = f"{path}?{parts.query}"

    headers: dict[str, str] = {}
    for name, value in (request_params.get("headers") or {}).items():
        headers[name] = _as_text(render(value, context))
    for name in [h for h in headers if h.lower() == "host"]:
        del headers[name]
    headers["Host"] = host

    body: Optional[str] = None
    if request_params.get("json") is not None:
        body = serialize_json(render(request_params["json"], context))
        request_params["body"] = body
        del request_params["json"]
        if not any(h.lower() == "content-type" for h in headers):
            headers["Content-Type"] = "application/json"
            if request_params.get("headers") is None:
                request_params["headers"] = {}
            request_params["headers"]["Content-Type"] = "application/json"
    elif request_params.get("body"):
        body = _as_text(render(request_params["body"], context))
        request_params["body"] = body

    return CanonicalRequest(
        method=request_params.get("method") or "GET",
        url=url,
        host=host,
        path=path,
        headers=headers,
        body=body,
    )
