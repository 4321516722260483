"""
Pytest configuration and shared fixtures.
"""

import tempfile
from pathlib import Path

import pytest

from ing_switch.models.route import NGINX_ANNOTATION_PREFIX, PathRule, Route
from ing_switch.workspace import Workspace


def build_route(
    name: str = "web",
    namespace: str = "default",
    host: str = "app.example.com",
    path: str = "/",
    path_type: str = "Prefix",
    service: str = "web",
    port: int = 80,
    annotations: dict[str, str] | None = None,
    tls_secrets: tuple[str, ...] = (),
    paths: tuple[PathRule, ...] | None = None,
    extra_annotations: dict[str, str] | None = None,
) -> Route:
    """Build a Route; ``annotations`` are ingress-nginx keys without the prefix."""
    raw = {NGINX_ANNOTATION_PREFIX + k: v for k, v in (annotations or {}).items()}
    raw.update(extra_annotations or {})
    if paths is None:
        paths = (PathRule(host=host, path=path, path_type=path_type, service_name=service, service_port=port),)
    hosts = tuple({p.host for p in paths if p.host}) or ((host,) if host else ())
    return Route(
        namespace=namespace,
        name=name,
        ingress_class="nginx",
        hosts=hosts,
        paths=paths,
        tls_enabled=bool(tls_secrets),
        tls_secrets=tls_secrets,
        annotations=raw,
    )


@pytest.fixture
def make_route():
    """Factory for Route records."""
    return build_route


@pytest.fixture
def checkout_route():
    """shop/checkout: HTTPS redirect plus a 50 rps limit."""
    return build_route(
        name="checkout",
        namespace="shop",
        host="shop.example.com",
        path="/pay",
        service="checkout",
        port=8080,
        annotations={"ssl-redirect": "true", "limit-rps": "50"},
        tls_secrets=("shop-tls",),
    )


@pytest.fixture
def snippet_route():
    """Route relying on a raw nginx configuration snippet."""
    return build_route(
        name="legacy",
        namespace="apps",
        annotations={"configuration-snippet": "more_set_headers 'X-Frame-Options: DENY';"},
    )


@pytest.fixture
def temp_workspace():
    """Create a temporary workspace for testing."""
    with tempfile.TemporaryDirectory() as tmpdir:
        workspace = Workspace(Path(tmpdir))
        workspace.initialize()
        yield workspace


@pytest.fixture
def fixtures_dir():
    """Return path to test fixtures directory."""
    return Path(__file__).parent / "fixtures"


@pytest.fixture
def ingress_list_file(fixtures_dir):
    """Exported `kubectl get ingress -A -o yaml` fixture."""
    return fixtures_dir / "ingresses.yaml"
