# tests/test_render.py
# Tests for mesh/render.py: visual classification and projection

import math
from dataclasses import replace

import pytest

from conftest import conn, svc
from core.config import RenderSettings
from mesh.models import BreakerStatus, CircuitBreaker, HealthStatus, Protocol, Role, TopologySnapshot
from mesh.render import (
    EDGE_COLORS,
    GRAY,
    HEAT_COLORS,
    RED,
    ROLE_COLORS,
    YELLOW,
    EdgeClass,
    EdgeHighlight,
    HeatBucket,
    TrafficClass,
    edge_class,
    heat_bucket,
    node_color,
    node_size,
    project,
    status_color,
    traffic_class,
)


class TestHeatBucket:
    @pytest.mark.parametrize("p95,bucket", [
        (0, HeatBucket.EXCELLENT),
        (49.9, HeatBucket.EXCELLENT),
        (50, HeatBucket.GOOD),
        (99.9, HeatBucket.GOOD),
        (100, HeatBucket.MODERATE),
        (200, HeatBucket.SLOW),
        (499, HeatBucket.SLOW),
        (500, HeatBucket.CRITICAL),
        (5000, HeatBucket.CRITICAL),
    ])
    def test_ladder(self, p95, bucket):
        assert heat_bucket(p95) is bucket

    def test_custom_thresholds(self):
        cfg = RenderSettings(latency_excellent_ms=10)
        assert heat_bucket(20, cfg) is HeatBucket.GOOD


class TestNodes:
    def test_size_is_logarithmic(self):
        assert node_size(0) == 4.0
        assert node_size(99) == pytest.approx(4.0 + 2 * 2.0)
        assert node_size(999) == pytest.approx(4.0 + 3 * 2.0)

    def test_size_custom_scale(self):
        cfg = RenderSettings(base_size=1.0, scale_factor=10.0)
        assert node_size(9, cfg) == pytest.approx(11.0)

    def test_every_role_has_a_color(self):
        assert set(ROLE_COLORS) == set(Role)

    def test_role_color_by_default(self):
        assert node_color(svc("d", "database", p95=900)) == ROLE_COLORS[Role.DATABASE]

    def test_heatmap_mode(self):
        cfg = RenderSettings(latency_heatmap=True)
        assert node_color(svc("d", "database", p95=900), cfg) == HEAT_COLORS[HeatBucket.CRITICAL]
        assert node_color(svc("d", "database", p95=10), cfg) == HEAT_COLORS[HeatBucket.EXCELLENT]

    def test_status_overlay(self):
        assert status_color(svc("a", "backend", status=HealthStatus.ERROR)) == RED
        assert status_color(svc("a", "backend", status=HealthStatus.WARNING)) == YELLOW
        assert status_color(svc("a", "backend", status=HealthStatus.UNKNOWN)) == GRAY
        assert status_color(svc("a", "backend", status=HealthStatus.HEALTHY)) == ROLE_COLORS[Role.BACKEND]

    def test_open_breaker_reads_as_error(self):
        s = svc("a", "backend", status=HealthStatus.HEALTHY,
                circuit_breaker=CircuitBreaker(status=BreakerStatus.OPEN))
        assert status_color(s) == RED


class TestEdges:
    def test_error_beats_security(self):
        c = conn("a", "b", error_rate=6.0, encrypted=True, mtls=True)
        assert edge_class(c) is EdgeClass.ERROR

    def test_mtls_beats_encrypted(self):
        assert edge_class(conn("a", "b", encrypted=True, mtls=True)) is EdgeClass.MTLS

    def test_encrypted_and_plain(self):
        assert edge_class(conn("a", "b", encrypted=True)) is EdgeClass.ENCRYPTED
        assert edge_class(conn("a", "b")) is EdgeClass.PLAIN

    def test_error_threshold_is_strict(self):
        assert edge_class(conn("a", "b", error_rate=5.0)) is EdgeClass.PLAIN

    def test_traffic_class(self):
        assert traffic_class(conn("a", "b", error_rate=7.0)) is TrafficClass.ERROR
        assert traffic_class(conn("a", "b", error_rate=2.0, mtls=True)) is TrafficClass.WARNING
        assert traffic_class(conn("a", "b", mtls=True)) is TrafficClass.MTLS
        assert traffic_class(conn("a", "b")) is TrafficClass.HEALTHY


class TestProject:
    def test_flags_and_sizes(self, scenario_a):
        state = project(scenario_a, critical_path=("fe", "gw", "db"), spofs=frozenset({"gw"}),
                        selected="gw", dependency_paths=(("gw", "db"), ("fe", "gw")))
        gw = state.node("gw")
        base = 4.0 + math.log10(51) * 2.0
        assert gw.size == pytest.approx(base, abs=1e-3)
        assert gw.display_size == pytest.approx(base * 1.5 * 1.3, abs=1e-3)
        assert gw.selected and gw.spof and gw.in_critical_path and gw.in_dependency_path

        fe = state.node("fe")
        assert fe.display_size == fe.size
        assert not fe.selected and not fe.spof

    def test_critical_highlight_wins_over_dependency(self, scenario_a):
        state = project(scenario_a, critical_path=("fe", "gw", "db"), selected="gw",
                        dependency_paths=(("gw", "db"),))
        assert state.edge("gw", "db").highlight is EdgeHighlight.CRITICAL

    def test_dependency_highlight_needs_selection(self, scenario_b):
        deps = (("fe", "gw2"), ("gw2", "db"))
        with_sel = project(scenario_b, critical_path=("fe", "gw", "db"), selected="gw2", dependency_paths=deps)
        assert with_sel.edge("fe", "gw2").highlight is EdgeHighlight.DEPENDENCY
        assert with_sel.edge("fe", "gw").highlight is EdgeHighlight.CRITICAL

        no_sel = project(scenario_b, dependency_paths=deps)
        assert no_sel.edge("fe", "gw2").highlight is EdgeHighlight.NONE
        assert not no_sel.node("gw2").in_dependency_path

    def test_edges_keep_class_color_and_dash(self, shop_mesh):
        state = project(shop_mesh)
        assert state.edge("orders", "users").edge_class is EdgeClass.ERROR
        assert state.edge("orders", "users").color == EDGE_COLORS[EdgeClass.ERROR]
        assert state.edge("web", "ingress").edge_class is EdgeClass.MTLS
        assert state.edge("orders", "db").dashed is False
        assert len(state.edges) == len(shop_mesh.connections)

    def test_grpc_dashed(self, scenario_a):
        grpc = replace(scenario_a, connections=(conn("fe", "gw", protocol=Protocol.GRPC), conn("gw", "db")))
        state = project(grpc)
        assert state.edge("fe", "gw").dashed is True
        assert state.edge("gw", "db").dashed is False

    def test_error_badge_and_heat(self):
        snap = TopologySnapshot(services=(svc("slow", "backend", p95=700, error_rate=8.0),))
        node = project(snap).node("slow")
        assert node.error_badge is True
        assert node.heat is HeatBucket.CRITICAL
        assert node.color == ROLE_COLORS[Role.BACKEND]

    def test_unknown_lookup(self, scenario_a):
        state = project(scenario_a)
        assert state.node("ghost") is None
        assert state.edge("db", "fe") is None
        assert state.heatmap is False
