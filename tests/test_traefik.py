"""
Tests for the Traefik synthesizer.
"""

import yaml

from ing_switch.generate.artifact import ArtifactCategory
from ing_switch.generate.context import FleetContext, SynthesisSettings, TraefikSettings
from ing_switch.generate.traefik import TraefikSynthesizer
from ing_switch.generate.traefik.ingress import MIDDLEWARES_ANNOTATION, build_ingress
from ing_switch.generate.traefik.middleware import plan_middlewares
from ing_switch.generate.traefik.transport import plan_transport, service_annotations
from ing_switch.models.route import NGINX_ANNOTATION_PREFIX, PathRule, Route


def middleware_specs(route):
    return {plan.name: plan.spec for plan in plan_middlewares(route)}


class TestMiddlewares:
    """Tests for Middleware planning."""

    def test_checkout_middlewares(self, checkout_route):
        """Test ssl-redirect and limit-rps become RedirectScheme and RateLimit."""
        specs = middleware_specs(checkout_route)

        assert list(specs) == ["checkout-ssl-redirect", "checkout-ratelimit"]
        assert specs["checkout-ssl-redirect"] == {
            "redirectScheme": {"scheme": "https", "permanent": False}
        }
        assert specs["checkout-ratelimit"] == {
            "rateLimit": {"average": 50, "burst": 250, "period": "1s"}
        }

    def test_force_ssl_redirect_name(self, make_route):
        """Test force-ssl-redirect names the Middleware after itself."""
        specs = middleware_specs(make_route(annotations={"force-ssl-redirect": "true"}))
        assert list(specs) == ["web-force-ssl-redirect"]

    def test_ssl_redirect_is_temporary(self, make_route):
        """Test plain ssl-redirect gives a non-permanent RedirectScheme."""
        specs = middleware_specs(make_route(annotations={"ssl-redirect": "true"}))
        assert specs["web-ssl-redirect"] == {"redirectScheme": {"scheme": "https", "permanent": False}}

    def test_force_ssl_redirect_is_permanent(self, make_route):
        """Test force-ssl-redirect gives a permanent RedirectScheme."""
        specs = middleware_specs(make_route(annotations={"force-ssl-redirect": "true"}))
        assert specs["web-force-ssl-redirect"] == {"redirectScheme": {"scheme": "https", "permanent": True}}

    def test_rate_limit_per_minute_and_burst(self, make_route):
        """Test limit-rpm with a burst multiplier."""
        route = make_route(annotations={"limit-rpm": "60", "limit-burst-multiplier": "2"})
        assert middleware_specs(route)["web-ratelimit"] == {
            "rateLimit": {"average": 60, "burst": 120, "period": "1m"}
        }

    def test_invalid_rate_limit_falls_back(self, make_route):
        """Test an unparseable limit uses the default and notes it."""
        plan = plan_middlewares(make_route(annotations={"limit-rps": "fast"}))[0]
        assert plan.spec["rateLimit"]["average"] == 100
        assert any("not a positive number" in c for c in plan.comments)

    def test_cors_defaults(self, make_route):
        """Test enable-cors alone uses the ingress-nginx defaults."""
        headers = middleware_specs(make_route(annotations={"enable-cors": "true"}))["web-cors"]["headers"]

        assert headers["accessControlAllowOriginList"] == ["*"]
        assert "OPTIONS" in headers["accessControlAllowMethods"]
        assert headers["accessControlAllowCredentials"] is True
        assert headers["accessControlMaxAge"] == 1728000

    def test_forward_auth(self, make_route):
        """Test auth-url becomes forwardAuth with response headers."""
        route = make_route(
            annotations={"auth-url": "http://auth.svc/verify", "auth-response-headers": "X-User"}
        )
        assert middleware_specs(route)["web-auth"] == {
            "forwardAuth": {
                "address": "http://auth.svc/verify",
                "trustForwardHeader": True,
                "authResponseHeaders": ["X-User"],
            }
        }

    def test_basic_auth_strips_namespace(self, make_route):
        """Test basic auth secrets lose their namespace prefix."""
        route = make_route(annotations={"auth-type": "basic", "auth-secret": "ops/htpasswd"})
        assert middleware_specs(route)["web-basicauth"]["basicAuth"]["secret"] == "htpasswd"

    def test_ip_lists(self, make_route):
        """Test allow and deny ranges become separate Middlewares."""
        route = make_route(
            annotations={
                "whitelist-source-range": "10.0.0.0/8, 192.168.0.0/16",
                "denylist-source-range": "10.1.0.0/16",
            }
        )
        specs = middleware_specs(route)
        assert specs["web-ipallowlist"] == {
            "ipAllowList": {"sourceRange": ["10.0.0.0/8", "192.168.0.0/16"]}
        }
        assert specs["web-ipdenylist"] == {"ipDenyList": {"sourceRange": ["10.1.0.0/16"]}}

    def test_rewrite_plain(self, make_route):
        """Test rewrite-target without regex replaces the path."""
        specs = middleware_specs(make_route(annotations={"rewrite-target": "/"}))
        assert specs["web-rewrite"] == {"replacePath": {"path": "/"}}

    def test_rewrite_regex(self, make_route):
        """Test regex rewrites anchor the Ingress path."""
        route = make_route(
            path="/api(/|$)(.*)", annotations={"use-regex": "true", "rewrite-target": "/$2"}
        )
        assert middleware_specs(route)["web-rewrite"] == {
            "replacePathRegex": {"regex": "^/api(/|$)(.*)", "replacement": "/$2"}
        }

    def test_rewrite_regex_when_use_regex_false(self, make_route):
        """Test any use-regex value selects the regex rewrite."""
        route = make_route(path="/api", annotations={"use-regex": "false", "rewrite-target": "/"})
        assert middleware_specs(route)["web-rewrite"] == {
            "replacePathRegex": {"regex": "^/api", "replacement": "/"}
        }

    def test_buffering(self, make_route):
        """Test proxy-body-size becomes a byte limit and 0 disables it."""
        specs = middleware_specs(make_route(annotations={"proxy-body-size": "8m"}))
        assert specs["web-buffering"] == {"buffering": {"maxRequestBodyBytes": 8388608}}
        assert middleware_specs(make_route(annotations={"proxy-body-size": "0"})) == {}

    def test_app_root(self, make_route):
        """Test app-root redirects only the bare root."""
        spec = middleware_specs(make_route(annotations={"app-root": "dashboard"}))["web-app-root"]
        assert spec["redirectRegex"]["replacement"] == "${1}/dashboard"
        assert spec["redirectRegex"]["permanent"] is False

    def test_explicit_redirect_code(self, make_route):
        """Test permanent-redirect with a 302 code is not permanent."""
        route = make_route(
            annotations={
                "permanent-redirect": "https://example.org",
                "permanent-redirect-code": "302",
            }
        )
        spec = middleware_specs(route)["web-redirect"]
        assert spec["redirectRegex"] == {
            "regex": "^.*",
            "replacement": "https://example.org",
            "permanent": False,
        }

    def test_application_order(self, make_route):
        """Test Middlewares follow the fixed application order."""
        route = make_route(
            annotations={
                "upstream-vhost": "internal",
                "rewrite-target": "/",
                "limit-rps": "5",
                "enable-cors": "true",
                "ssl-redirect": "true",
            }
        )
        assert list(middleware_specs(route)) == [
            "web-ssl-redirect",
            "web-cors",
            "web-ratelimit",
            "web-rewrite",
            "web-upstream-vhost",
        ]

    def test_no_middlewares_for_plain_route(self, make_route):
        """Test a route without annotations needs no Middleware."""
        assert plan_middlewares(make_route()) == []


class TestTransport:
    """Tests for ServersTransport planning."""

    def test_timeouts(self, make_route):
        """Test nginx timeouts become forwarding timeouts."""
        route = make_route(
            annotations={"proxy-connect-timeout": "10", "proxy-read-timeout": "120"}
        )
        plan = plan_transport(route)

        assert plan.name == "web-transport"
        assert plan.spec == {
            "forwardingTimeouts": {"dialTimeout": "10s", "responseHeaderTimeout": "120s"}
        }

    def test_no_transport_without_settings(self, make_route):
        """Test no transport is planned for a plain route."""
        assert plan_transport(make_route()) is None

    def test_service_annotations(self, make_route):
        """Test backend protocol, affinity and transport reference."""
        route = make_route(
            namespace="shop",
            annotations={
                "proxy-read-timeout": "30",
                "backend-protocol": "HTTPS",
                "affinity": "cookie",
                "session-cookie-name": "route",
            },
        )
        result = service_annotations(route, plan_transport(route))

        prefix = "traefik.ingress.kubernetes.io/service."
        assert result[prefix + "serverstransport"] == "shop-web-transport@kubernetescrd"
        assert result[prefix + "serversscheme"] == "https"
        assert result[prefix + "sticky.cookie"] == "true"
        assert result[prefix + "sticky.cookie.name"] == "route"


class TestIngress:
    """Tests for the updated Ingress."""

    def test_consumed_annotations_replaced(self, checkout_route):
        """Test consumed annotations are stripped and Middlewares attached in order."""
        manifest = build_ingress(checkout_route, plan_middlewares(checkout_route), None)
        annotations = manifest.body["metadata"]["annotations"]

        assert NGINX_ANNOTATION_PREFIX + "ssl-redirect" not in annotations
        assert NGINX_ANNOTATION_PREFIX + "limit-rps" not in annotations
        assert annotations[MIDDLEWARES_ANNOTATION] == (
            "shop-checkout-ssl-redirect@kubernetescrd,shop-checkout-ratelimit@kubernetescrd"
        )

    def test_unconsumed_annotations_kept(self, snippet_route):
        """Test annotations without a translation stay on the Ingress with a note."""
        manifest = build_ingress(snippet_route, [], None)

        assert NGINX_ANNOTATION_PREFIX + "configuration-snippet" in manifest.body["metadata"]["annotations"]
        assert MIDDLEWARES_ANNOTATION not in manifest.body["metadata"]["annotations"]
        assert any("snippets are not translated" in c for c in manifest.comments)

    def test_spec_keeps_class_rules_and_tls(self, checkout_route):
        """Test ingress class, rules and TLS are carried over."""
        spec = build_ingress(checkout_route, [], None).body["spec"]

        assert spec["ingressClassName"] == "nginx"
        assert spec["rules"][0]["host"] == "shop.example.com"
        path = spec["rules"][0]["http"]["paths"][0]
        assert path["backend"]["service"] == {"name": "checkout", "port": {"number": 8080}}
        assert spec["tls"] == [{"hosts": ["shop.example.com"], "secretName": "shop-tls"}]

    def test_tls_hosts_per_secret(self):
        """Test each TLS secret keeps only the hosts its entry listed."""
        route = Route(
            namespace="shop",
            name="web",
            hosts=("a.example.com", "b.example.com"),
            tls_enabled=True,
            tls_secrets=("a-tls", "b-tls"),
            tls_hosts={"a-tls": ("a.example.com",), "b-tls": ("b.example.com",)},
        )
        spec = build_ingress(route, [], None).body["spec"]

        assert spec["tls"] == [
            {"hosts": ["a.example.com"], "secretName": "a-tls"},
            {"hosts": ["b.example.com"], "secretName": "b-tls"},
        ]

    def test_rules_grouped_by_host(self, make_route):
        """Test paths are grouped per host in first-appearance order."""
        paths = (
            PathRule(host="b.example.com", path="/b", path_type="Prefix", service_name="b", service_port=80),
            PathRule(host="a.example.com", path="/a", path_type="Prefix", service_name="a", service_port=80),
            PathRule(host="b.example.com", path="/c", path_type="Prefix", service_name="c", service_port=80),
        )
        spec = build_ingress(make_route(paths=paths), [], None).body["spec"]

        assert [r["host"] for r in spec["rules"]] == ["b.example.com", "a.example.com"]
        assert [p["path"] for p in spec["rules"][0]["http"]["paths"]] == ["/b", "/c"]

    def test_canary_note(self, make_route):
        """Test canary routes get a weighted TraefikService note."""
        route = make_route(annotations={"canary": "true", "canary-weight": "10"})
        manifest = build_ingress(route, plan_middlewares(route), None)
        assert any("canary weight 10" in c for c in manifest.comments)


class TestTraefikSynthesizer:
    """Tests for the full Traefik artifact set."""

    def test_artifact_layout(self, checkout_route, snippet_route):
        """Test fleet artifacts follow the ordinal directory layout in apply order."""
        context = FleetContext.build([checkout_route, snippet_route])
        paths = [a.relative_path for a in TraefikSynthesizer().synthesize_fleet(context)]

        assert paths == [
            "01-install-traefik/helm-install.sh",
            "01-install-traefik/values.yaml",
            "02-middlewares/shop-checkout-middlewares.yaml",
            "03-ingresses/apps-legacy.yaml",
            "03-ingresses/shop-checkout.yaml",
            "04-verify.sh",
            "05-dns-migration.md",
            "06-cleanup/01-preserve-ingressclass.yaml",
            "06-cleanup/02-remove-nginx.sh",
        ]

    def test_middleware_file_parses(self, checkout_route):
        """Test the Middleware file is valid multi-document YAML."""
        artifacts = TraefikSynthesizer().synthesize_route(
            checkout_route, FleetContext.build([checkout_route])
        )
        middleware_file = artifacts[0]

        assert middleware_file.category is ArtifactCategory.MIDDLEWARE
        docs = [d for d in yaml.safe_load_all(middleware_file.content) if d]
        assert [d["kind"] for d in docs] == ["Middleware", "Middleware"]
        assert all(d["metadata"]["namespace"] == "shop" for d in docs)

    def test_transport_file(self, make_route):
        """Test a ServersTransport file is written when timeouts are set."""
        route = make_route(annotations={"proxy-read-timeout": "60"})
        artifacts = TraefikSynthesizer().synthesize_route(route, FleetContext.build([route]))
        assert [a.relative_path for a in artifacts] == [
            "02-middlewares/default-web-serverstransport.yaml",
            "03-ingresses/default-web.yaml",
        ]

    def test_traefik_namespace_setting(self, make_route):
        """Test the configured Traefik namespace reaches the install script."""
        settings = SynthesisSettings(traefik=TraefikSettings(namespace="edge"))
        context = FleetContext.build([make_route()], settings)
        install = TraefikSynthesizer().synthesize_fleet(context)[0]
        assert "edge" in install.content
