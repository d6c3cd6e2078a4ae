# mesh/serialization.py
# Conversion between feed payload dicts and mesh models.
#
# Feed payloads follow the dashboard's JSON shape (camelCase, nested
# metrics/latency/circuitBreaker/security objects). Snake_case keys are
# accepted too, so the output of `snapshot_to_dict` ingests back unchanged.

from typing import Any

from mesh.models import (
    BreakerStatus,
    CircuitBreaker,
    Connection,
    ConnectionMetrics,
    ConnectionPatch,
    Delta,
    HealthStatus,
    LatencyPercentiles,
    Protocol,
    Role,
    SecurityPosture,
    Service,
    ServiceMetrics,
    ServicePatch,
    TopologySnapshot,
)


def _pick(d: dict, *keys: str, default: Any = None) -> Any:
    """First present key among aliases."""
    for k in keys:
        if k in d and d[k] is not None:
            return d[k]
    return default


def _opt_float(value: Any) -> float | None:
    return None if value is None else float(value)


def _opt_int(value: Any) -> int | None:
    return None if value is None else int(value)


# ---------------------------------------------------------------------------
# Dict → models
# ---------------------------------------------------------------------------

def service_from_dict(d: dict) -> Service:
    """Builds a Service from a feed dict. Raises KeyError/ValueError on bad input."""
    metrics = d.get("metrics") or {}
    latency = metrics.get("latency") or {}
    breaker = _pick(d, "circuitBreaker", "circuit_breaker", default={})
    return Service(
        id=d["id"],
        name=_pick(d, "name", default=d["id"]),
        role=Role(_pick(d, "role", "type")),
        namespace=_pick(d, "namespace", default="default"),
        status=HealthStatus(_pick(d, "status", default="unknown")),
        instances=int(_pick(d, "instances", default=1)),
        version=str(_pick(d, "version", default="")),
        metrics=ServiceMetrics(
            request_rate=float(_pick(metrics, "requestRate", "request_rate", default=0.0)),
            error_rate=float(_pick(metrics, "errorRate", "error_rate", default=0.0)),
            latency=LatencyPercentiles(
                p50=float(_pick(latency, "p50", default=0.0)),
                p95=float(_pick(latency, "p95", default=0.0)),
                p99=float(_pick(latency, "p99", default=0.0)),
            ),
        ),
        circuit_breaker=CircuitBreaker(
            status=BreakerStatus(_pick(breaker, "status", default="closed")),
            failure_threshold=int(_pick(breaker, "failureThreshold", "failure_threshold", default=5)),
            timeout_ms=int(_pick(breaker, "timeout", "timeout_ms", default=30000)),
            last_tripped=_pick(breaker, "lastTripped", "last_tripped"),
        ),
    )


def connection_from_dict(d: dict) -> Connection:
    """Builds a Connection from a feed dict."""
    metrics = d.get("metrics") or {}
    security = d.get("security") or {}
    return Connection(
        source=d["source"],
        target=d["target"],
        protocol=Protocol(_pick(d, "protocol", default="http")),
        security=SecurityPosture(
            encrypted=bool(security.get("encrypted", False)),
            mtls=bool(_pick(security, "mTLS", "mtls", default=False)),
        ),
        metrics=ConnectionMetrics(
            request_rate=float(_pick(metrics, "requestRate", "request_rate", default=0.0)),
            error_rate=float(_pick(metrics, "errorRate", "error_rate", default=0.0)),
            latency_ms=float(_pick(metrics, "latency", "latency_ms", default=0.0)),
        ),
    )


def snapshot_from_dict(d: dict) -> TopologySnapshot:
    """Builds a TopologySnapshot from {"services": [...], "connections": [...]}."""
    return TopologySnapshot(
        services=tuple(service_from_dict(s) for s in d.get("services", [])),
        connections=tuple(connection_from_dict(c) for c in d.get("connections", [])),
    )


def service_patch_from_dict(d: dict) -> ServicePatch:
    """Builds a ServicePatch. Accepts the original ServiceUpdate shape
    (serviceId, circuitBreakerStatus, lastTripped) as well."""
    metrics = d.get("metrics") or {}
    latency = metrics.get("latency") or {}
    breaker = _pick(d, "circuitBreaker", "circuit_breaker", default={})
    role = _pick(d, "role", "type")
    status = _pick(d, "status")
    breaker_status = _pick(d, "circuitBreakerStatus", "breaker_status", default=breaker.get("status"))
    return ServicePatch(
        id=_pick(d, "id", "serviceId", "service_id"),
        name=_pick(d, "name"),
        namespace=_pick(d, "namespace"),
        role=Role(role) if role is not None else None,
        status=HealthStatus(status) if status is not None else None,
        instances=_opt_int(_pick(d, "instances")),
        version=_pick(d, "version"),
        request_rate=_opt_float(_pick(metrics, "requestRate", "request_rate")),
        error_rate=_opt_float(_pick(metrics, "errorRate", "error_rate")),
        latency_p50=_opt_float(latency.get("p50")),
        latency_p95=_opt_float(latency.get("p95")),
        latency_p99=_opt_float(latency.get("p99")),
        breaker_status=BreakerStatus(breaker_status) if breaker_status is not None else None,
        failure_threshold=_opt_int(_pick(breaker, "failureThreshold", "failure_threshold")),
        timeout_ms=_opt_int(_pick(breaker, "timeout", "timeout_ms")),
        last_tripped=_pick(d, "lastTripped", "last_tripped", default=breaker.get("lastTripped")),
    )


def connection_patch_from_dict(d: dict) -> ConnectionPatch:
    """Builds a ConnectionPatch keyed by source/target."""
    metrics = d.get("metrics") or {}
    security = d.get("security") or {}
    protocol = _pick(d, "protocol")
    encrypted = security.get("encrypted")
    mtls = _pick(security, "mTLS", "mtls")
    return ConnectionPatch(
        source=d["source"],
        target=d["target"],
        protocol=Protocol(protocol) if protocol is not None else None,
        encrypted=bool(encrypted) if encrypted is not None else None,
        mtls=bool(mtls) if mtls is not None else None,
        request_rate=_opt_float(_pick(metrics, "requestRate", "request_rate")),
        error_rate=_opt_float(_pick(metrics, "errorRate", "error_rate")),
        latency_ms=_opt_float(_pick(metrics, "latency", "latency_ms")),
    )


def delta_from_dict(d: dict) -> Delta:
    """Builds a Delta from {"services": [...], "connections": [...],
    "removedServices": [...], "removedConnections": [[src, dst], ...]}."""
    removed_conns = _pick(d, "removedConnections", "removed_connections", default=[])
    return Delta(
        services=tuple(service_patch_from_dict(s) for s in d.get("services", [])),
        connections=tuple(connection_patch_from_dict(c) for c in d.get("connections", [])),
        removed_services=tuple(_pick(d, "removedServices", "removed_services", default=[])),
        removed_connections=tuple(
            (c["source"], c["target"]) if isinstance(c, dict) else (c[0], c[1])
            for c in removed_conns
        ),
    )


# ---------------------------------------------------------------------------
# Models → dict
# ---------------------------------------------------------------------------

def service_to_dict(s: Service) -> dict:
    return {
        "id": s.id,
        "name": s.name,
        "namespace": s.namespace,
        "role": s.role.value,
        "status": s.status.value,
        "instances": s.instances,
        "version": s.version,
        "metrics": {
            "requestRate": s.metrics.request_rate,
            "errorRate": s.metrics.error_rate,
            "latency": {
                "p50": s.metrics.latency.p50,
                "p95": s.metrics.latency.p95,
                "p99": s.metrics.latency.p99,
            },
        },
        "circuitBreaker": {
            "status": s.circuit_breaker.status.value,
            "failureThreshold": s.circuit_breaker.failure_threshold,
            "timeout": s.circuit_breaker.timeout_ms,
            "lastTripped": s.circuit_breaker.last_tripped,
        },
    }


def connection_to_dict(c: Connection) -> dict:
    return {
        "source": c.source,
        "target": c.target,
        "protocol": c.protocol.value,
        "security": {"encrypted": c.security.encrypted, "mTLS": c.security.mtls},
        "metrics": {
            "requestRate": c.metrics.request_rate,
            "errorRate": c.metrics.error_rate,
            "latency": c.metrics.latency_ms,
        },
    }


def snapshot_to_dict(snap: TopologySnapshot) -> dict:
    return {
        "version": snap.version,
        "services": [service_to_dict(s) for s in snap.services],
        "connections": [connection_to_dict(c) for c in snap.connections],
    }
