"""Test ingress resolution."""

import pytest

from deploy_engine.core.errors import ClusterIssuerRequired, ValidationError
from deploy_engine.core.models import Cname, Framework, IngressController
from deploy_engine.render.ingress import (
    HttpsEndpoint, cname_secret_name, default_cname, resolve_ingress,
)


class TestResolveIngress:
    """Test http/https partitioning and TLS secret selection."""

    @pytest.fixture
    def cnames(self):
        return [
            Cname(name="plain.theketch.io"),
            Cname(name="theketch.io", secure=True),
            Cname(name="other.theketch.io"),
            Cname(name="app.theketch.io", secure=True),
        ]

    def test_app_secret_takes_precedence(self, cnames):
        """First app secret is used for every secure domain."""
        overlay = resolve_ingress(cnames, ["my-cert", "unused-cert"], "letsencrypt-production", app_name="dashboard")

        assert overlay.http_hosts == ["plain.theketch.io", "other.theketch.io"]
        assert overlay.https_endpoints == [
            HttpsEndpoint("theketch.io", "my-cert", "my-cert-clusterissuer"),
            HttpsEndpoint("app.theketch.io", "my-cert", "my-cert-clusterissuer"),
        ]

    def test_app_secret_without_framework_issuer(self, cnames):
        """App secrets don't need a framework issuer."""
        overlay = resolve_ingress(cnames, ["my-cert"], "", app_name="dashboard")

        assert [e.cluster_issuer for e in overlay.https_endpoints] == ["my-cert-clusterissuer"] * 2

    def test_framework_issuer_used_without_app_secret(self, cnames):
        overlay = resolve_ingress(cnames, [], "letsencrypt-production", app_name="dashboard")

        assert [e.cname for e in overlay.https_endpoints] == ["theketch.io", "app.theketch.io"]
        for endpoint in overlay.https_endpoints:
            assert endpoint.cluster_issuer == "letsencrypt-production"
            assert endpoint.secret_name == cname_secret_name("dashboard", endpoint.cname)

    def test_missing_issuer_fails(self, cnames):
        """Secure domain without app secret or framework issuer is rejected."""
        with pytest.raises(ClusterIssuerRequired):
            resolve_ingress(cnames, [], "", app_name="dashboard")

    def test_missing_issuer_is_validation_error(self):
        with pytest.raises(ValidationError):
            resolve_ingress([Cname(name="a.io", secure=True)], [], "")

    def test_only_plain_domains_need_no_issuer(self):
        overlay = resolve_ingress([Cname(name="a.io"), Cname(name="b.io")], [], "")

        assert overlay.http_hosts == ["a.io", "b.io"]
        assert overlay.https_endpoints == []

    def test_empty_input(self):
        overlay = resolve_ingress([], [], "")
        assert overlay.http_hosts == []
        assert overlay.https_endpoints == []

    def test_secret_name_is_deterministic(self):
        """Same domain gives the same secret across calls."""
        first = resolve_ingress([Cname(name="theketch.io", secure=True)], [], "issuer", app_name="dashboard")
        second = resolve_ingress([Cname(name="theketch.io", secure=True)], [], "issuer", app_name="dashboard")

        assert first.https_endpoints[0].secret_name == second.https_endpoints[0].secret_name
        assert first == second

    def test_secret_name_shape(self):
        name = cname_secret_name("dashboard", "theketch.io")

        assert name.startswith("dashboard-cname-")
        assert len(name) == len("dashboard-cname-") + 10
        assert name != cname_secret_name("dashboard", "app.theketch.io")


class TestDefaultCname:
    def test_uses_service_endpoint(self):
        framework = Framework(
            name="fw", namespace_name="ns",
            ingress_controller=IngressController(service_endpoint="10.10.10.10"),
        )
        assert default_cname("dashboard", framework, "shipa.cloud") == "dashboard.10.10.10.10.shipa.cloud"

    def test_no_endpoint(self):
        framework = Framework(name="fw", namespace_name="ns")
        assert default_cname("dashboard", framework, "shipa.cloud") is None
