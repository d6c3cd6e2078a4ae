# tests/test_models.py
# Tests for mesh/models.py

import dataclasses

import pytest

from mesh.models import (
    BreakerStatus,
    Connection,
    Delta,
    HealthStatus,
    Protocol,
    Role,
    Service,
    ServicePatch,
    TopologySnapshot,
)


class TestEnums:
    def test_role_case_insensitive(self):
        assert Role("Database") is Role.DATABASE
        assert Role("GATEWAY") is Role.GATEWAY

    def test_breaker_accepts_underscore(self):
        assert BreakerStatus("half_open") is BreakerStatus.HALF_OPEN
        assert BreakerStatus("HALF-OPEN") is BreakerStatus.HALF_OPEN

    def test_protocol_grpc_spelling(self):
        assert Protocol("gRPC") is Protocol.GRPC

    def test_unknown_value_rejected(self):
        with pytest.raises(ValueError):
            Role("mainframe")
        with pytest.raises(ValueError):
            HealthStatus(42)


class TestService:
    def test_defaults(self):
        s = Service(id="a", name="a", role=Role.BACKEND)
        assert s.namespace == "default"
        assert s.status is HealthStatus.UNKNOWN
        assert s.instances == 1
        assert s.metrics.request_rate == 0.0
        assert s.circuit_breaker.status is BreakerStatus.CLOSED

    def test_frozen(self):
        s = Service(id="a", name="a", role=Role.BACKEND)
        with pytest.raises(dataclasses.FrozenInstanceError):
            s.name = "b"


class TestConnection:
    def test_key(self):
        c = Connection(source="a", target="b")
        assert c.key() == ("a", "b")
        assert c.protocol is Protocol.HTTP
        assert c.security.encrypted is False


class TestTopologySnapshot:
    def test_lookup(self, scenario_a):
        assert scenario_a.service("gw").role is Role.GATEWAY
        assert scenario_a.service("nope") is None
        assert scenario_a.has_service("db")
        assert scenario_a.connection("fe", "gw") is not None
        assert scenario_a.connection("gw", "fe") is None

    def test_adjacency_in_connection_order(self, scenario_b):
        assert [c.target for c in scenario_b.outgoing("fe")] == ["gw", "gw2"]
        assert [c.source for c in scenario_b.incoming("db")] == ["gw", "gw2"]
        assert scenario_b.outgoing("db") == ()

    def test_degree_counts(self, scenario_b):
        assert scenario_b.inbound_count("db") == 2
        assert scenario_b.outbound_count("fe") == 2
        assert scenario_b.inbound_count("fe") == 0

    def test_services_by_role(self, scenario_b):
        assert [s.id for s in scenario_b.services_by_role(Role.GATEWAY)] == ["gw", "gw2"]
        assert scenario_b.services_by_role(Role.CACHE) == []

    def test_version_not_part_of_equality(self, scenario_a):
        bumped = dataclasses.replace(scenario_a, version=7)
        assert bumped == scenario_a
        assert bumped.version == 7

    def test_is_valid_path(self, scenario_a):
        assert scenario_a.is_valid_path(("fe", "gw", "db"))
        assert not scenario_a.is_valid_path(("fe", "db"))
        assert not scenario_a.is_valid_path(("db", "gw"))
        assert not scenario_a.is_valid_path(())
        assert not scenario_a.is_valid_path(("fe", "gw", "fe"))

    def test_empty(self):
        snap = TopologySnapshot()
        assert snap.services == ()
        assert snap.outgoing("x") == ()


class TestDelta:
    def test_is_empty(self):
        assert Delta().is_empty()
        assert not Delta(services=(ServicePatch(id="a"),)).is_empty()
        assert not Delta(removed_connections=(("a", "b"),)).is_empty()
