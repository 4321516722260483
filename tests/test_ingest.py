"""
Tests for loading route records from Ingress exports and saved route files.
"""

import json

import pytest

from ing_switch.exceptions import RouteInputError
from ing_switch.ingest import load_routes, load_routes_from_text, parse_ingress
from ing_switch.models.route import Route


class TestParseIngress:
    """Tests for converting one Ingress manifest."""

    def test_fields(self):
        """Test hosts, paths, TLS and annotations are read from the manifest."""
        route = parse_ingress(
            {
                "kind": "Ingress",
                "metadata": {
                    "name": "web",
                    "namespace": "shop",
                    "annotations": {
                        "nginx.ingress.kubernetes.io/limit-rps": "10",
                        "kubernetes.io/ingress.class": "nginx",
                    },
                },
                "spec": {
                    "tls": [{"hosts": ["b.example.com"], "secretName": "b-tls"}],
                    "rules": [
                        {
                            "host": "b.example.com",
                            "http": {
                                "paths": [
                                    {
                                        "path": "/",
                                        "pathType": "Prefix",
                                        "backend": {"service": {"name": "b", "port": {"number": 80}}},
                                    }
                                ]
                            },
                        },
                        {"host": "a.example.com"},
                    ],
                },
            }
        )

        assert route.qualified_name == "shop/web"
        assert route.ingress_class == "nginx"
        assert route.hosts == ("a.example.com", "b.example.com")
        assert route.primary_host == "a.example.com"
        assert route.tls_enabled
        assert route.tls_secrets == ("b-tls",)
        assert dict(route.tls_hosts) == {"b-tls": ("b.example.com",)}
        assert route.paths[0].service_name == "b"
        assert route.paths[0].service_port == 80
        assert dict(route.nginx_annotations) == {"limit-rps": "10"}

    def test_defaults_namespace(self):
        """Test a manifest without namespace lands in default."""
        route = parse_ingress({"kind": "Ingress", "metadata": {"name": "web"}})
        assert route.namespace == "default"
        assert route.hosts == ()
        assert not route.tls_enabled

    def test_requires_name(self):
        """Test a manifest without metadata.name is rejected."""
        with pytest.raises(ValueError, match="metadata.name"):
            parse_ingress({"kind": "Ingress", "metadata": {}})


class TestLoadRoutes:
    """Tests for file and text loading."""

    def test_ingress_list_export(self, ingress_list_file):
        """Test a kubectl List export loads sorted by namespace and name."""
        routes = load_routes(ingress_list_file)

        assert [r.qualified_name for r in routes] == ["apps/legacy", "shop/api", "shop/checkout"]
        api = routes[1]
        assert api.paths[0].path == "/api(/|$)(.*)"
        assert api.nginx_annotations["rewrite-target"] == "/$2"

    def test_saved_route_records(self):
        """Test a saved scan result with an ingresses list."""
        text = json.dumps(
            {
                "ingresses": [
                    {
                        "namespace": "shop",
                        "name": "checkout",
                        "hosts": ["shop.example.com"],
                        "paths": [{"path": "/pay", "serviceName": "checkout", "servicePort": 8080}],
                        "tlsEnabled": True,
                        "tlsSecrets": ["shop-tls"],
                        "nginxAnnotations": {"ssl-redirect": "true"},
                    }
                ]
            }
        )
        routes = load_routes_from_text(text)

        assert routes[0].tls_secrets == ("shop-tls",)
        assert routes[0].paths[0].service_port == 8080
        assert dict(routes[0].nginx_annotations) == {"ssl-redirect": "true"}

    def test_multi_document_yaml(self):
        """Test individual Ingress documents separated by ---."""
        text = (
            "kind: Ingress\nmetadata: {name: b, namespace: x}\n"
            "---\n"
            "kind: Ingress\nmetadata: {name: a, namespace: x}\n"
        )
        assert [r.name for r in load_routes_from_text(text)] == ["a", "b"]

    def test_skips_other_kinds(self):
        """Test non-Ingress documents are skipped."""
        text = "kind: Service\nmetadata: {name: svc}\n---\nkind: Ingress\nmetadata: {name: web}\n"
        assert [r.name for r in load_routes_from_text(text)] == ["web"]

    def test_missing_file(self, tmp_path):
        """Test a missing file raises RouteInputError."""
        with pytest.raises(RouteInputError, match="file not found"):
            load_routes(tmp_path / "missing.yaml")

    def test_invalid_yaml(self):
        """Test malformed YAML raises RouteInputError."""
        with pytest.raises(RouteInputError, match="invalid YAML"):
            load_routes_from_text("kind: [unclosed")

    def test_malformed_document(self):
        """Test an Ingress without a name raises RouteInputError."""
        with pytest.raises(RouteInputError):
            load_routes_from_text("kind: Ingress\nmetadata: {}\n")

    def test_duplicate_routes(self):
        """Test the same namespace/name twice is rejected."""
        text = "- {namespace: a, name: web}\n- {namespace: a, name: web}\n"
        with pytest.raises(RouteInputError, match="duplicate route a/web"):
            load_routes_from_text(text)


class TestRouteRecord:
    """Tests for the Route record itself."""

    def test_round_trip(self, checkout_route):
        """Test to_dict/from_dict preserve the record."""
        assert Route.from_dict(checkout_route.to_dict()) == checkout_route

    def test_round_trip_keeps_tls_hosts(self):
        """Test per-secret TLS hosts survive serialization."""
        route = Route(
            namespace="shop",
            name="web",
            hosts=("a.example.com", "b.example.com"),
            tls_enabled=True,
            tls_secrets=("a-tls",),
            tls_hosts={"a-tls": ("a.example.com",)},
        )
        assert dict(Route.from_dict(route.to_dict()).tls_hosts) == {"a-tls": ("a.example.com",)}

    def test_annotations_are_read_only(self, checkout_route):
        """Test annotation maps cannot be modified."""
        with pytest.raises(TypeError):
            checkout_route.nginx_annotations["limit-rps"] = "1"

    def test_complexity_tier(self, make_route):
        """Test the advisory complexity tier."""
        assert make_route().complexity == "simple"
        assert make_route(annotations={"canary": "true"}).complexity == "complex"
        assert make_route(annotations={"proxy-body-size": "8m"}).complexity == "unsupported"
