# tests/conftest.py
# Shared pytest fixtures

import pytest

from core.config import AppSettings, SchedulerSettings
from mesh.models import (
    Connection,
    ConnectionMetrics,
    LatencyPercentiles,
    Protocol,
    Role,
    SecurityPosture,
    Service,
    ServiceMetrics,
    TopologySnapshot,
)
from mesh.store import TopologyStore


def svc(sid: str, role: Role | str, rate: float = 50.0, p95: float = 30.0,
        error_rate: float = 0.0, **kwargs) -> Service:
    """Service with the metrics tests usually care about."""
    return Service(
        id=sid,
        name=kwargs.pop("name", sid),
        role=Role(role),
        metrics=ServiceMetrics(request_rate=rate, error_rate=error_rate,
                               latency=LatencyPercentiles(p50=p95 / 2, p95=p95, p99=p95 * 2)),
        **kwargs,
    )


def conn(source: str, target: str, rate: float = 50.0, error_rate: float = 0.0,
         encrypted: bool = False, mtls: bool = False, **kwargs) -> Connection:
    return Connection(
        source=source,
        target=target,
        security=SecurityPosture(encrypted=encrypted, mtls=mtls),
        metrics=ConnectionMetrics(request_rate=rate, error_rate=error_rate, latency_ms=10.0),
        **kwargs,
    )


@pytest.fixture
def scenario_a():
    """fe → gw → db, every service at 50 req/s"""
    return TopologySnapshot(
        services=(svc("fe", "frontend"), svc("gw", "gateway"), svc("db", "database")),
        connections=(conn("fe", "gw"), conn("gw", "db")),
    )


@pytest.fixture
def scenario_b():
    """Scenario A plus a second gateway fe → gw2 → db with identical traffic"""
    return TopologySnapshot(
        services=(svc("fe", "frontend"), svc("gw", "gateway"), svc("db", "database"),
                  svc("gw2", "gateway")),
        connections=(conn("fe", "gw"), conn("gw", "db"), conn("fe", "gw2"), conn("gw2", "db")),
    )


@pytest.fixture
def disconnected():
    """One service per role and no connections at all"""
    return TopologySnapshot(
        services=tuple(svc(f"s-{r.value}", r, rate=500.0) for r in Role),
        connections=(),
    )


@pytest.fixture
def shop_mesh():
    """web → ingress → {orders, users} → db, orders → cache, with a cycle orders ↔ users"""
    return TopologySnapshot(
        services=(
            svc("web", "frontend", rate=120.0),
            svc("ingress", "gateway", rate=300.0, p95=60.0),
            svc("orders", "backend", rate=200.0, p95=150.0),
            svc("users", "backend", rate=80.0, p95=40.0),
            svc("cache", "cache", rate=900.0, p95=3.0),
            svc("db", "database", rate=400.0, p95=20.0),
        ),
        connections=(
            conn("web", "ingress", rate=120.0, encrypted=True, mtls=True),
            conn("ingress", "orders", rate=200.0, encrypted=True),
            conn("ingress", "users", rate=80.0, mtls=True),
            conn("orders", "users", rate=30.0, error_rate=7.5),
            conn("users", "orders", rate=10.0),
            conn("orders", "db", rate=150.0, protocol=Protocol.TCP),
            conn("users", "db", rate=60.0),
            conn("orders", "cache", rate=400.0),
        ),
    )


@pytest.fixture
def long_chain():
    """fe → s0 → … → s1499 → db, one hop per service"""
    hops = ["fe"] + [f"s{i}" for i in range(1500)] + ["db"]
    return TopologySnapshot(
        services=(svc("fe", "frontend"),)
        + tuple(svc(h, "backend") for h in hops[1:-1])
        + (svc("db", "database"),),
        connections=tuple(conn(a, b) for a, b in zip(hops, hops[1:])),
    )


@pytest.fixture
def store(scenario_a):
    s = TopologyStore()
    s.ingest(scenario_a)
    return s


@pytest.fixture
def instant_settings():
    """Settings with debouncing disabled so every notify recomputes inline."""
    return AppSettings(scheduler=SchedulerSettings(debounce_seconds=0))
