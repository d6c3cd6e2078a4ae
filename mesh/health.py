# mesh/health.py
# Mesh-wide health counters, traffic-flow metrics and bottleneck detection

from dataclasses import dataclass

from mesh.models import BreakerStatus, HealthStatus, Service, TopologySnapshot

# Bottleneck heuristic: slow or failing, busy, and depended upon
BOTTLENECK_P95_MS = 200.0
BOTTLENECK_ERROR_RATE = 5.0
BOTTLENECK_REQUEST_RATE = 100.0
BOTTLENECK_INBOUND = 2


@dataclass(frozen=True)
class MeshHealth:
    """Overview counters for the whole mesh."""
    total_services: int = 0
    healthy_services: int = 0
    warning_services: int = 0
    error_services: int = 0
    unknown_services: int = 0
    open_circuit_breakers: int = 0
    total_connections: int = 0
    encrypted_connections: int = 0
    mtls_connections: int = 0
    avg_latency_ms: float = 0.0              # mean service p95
    avg_error_rate: float = 0.0
    total_request_rate: float = 0.0

    @property
    def mtls_coverage(self) -> float:
        """Percent of connections with mutual TLS."""
        if self.total_connections == 0:
            return 0.0
        return self.mtls_connections / self.total_connections * 100


@dataclass(frozen=True)
class TrafficFlowMetrics:
    total_traffic: float = 0.0
    avg_latency_ms: float = 0.0
    avg_error_rate: float = 0.0
    encrypted_percentage: float = 0.0
    mtls_percentage: float = 0.0


def analyze_mesh_health(snapshot: TopologySnapshot) -> MeshHealth:
    """Counts services by status and connections by security posture.

    An empty mesh reports zeros rather than dividing by zero.
    """
    services, connections = snapshot.services, snapshot.connections
    by_status = {status: 0 for status in HealthStatus}
    for s in services:
        by_status[s.status] += 1

    n = len(services)
    return MeshHealth(
        total_services=n,
        healthy_services=by_status[HealthStatus.HEALTHY],
        warning_services=by_status[HealthStatus.WARNING],
        error_services=by_status[HealthStatus.ERROR],
        unknown_services=by_status[HealthStatus.UNKNOWN],
        open_circuit_breakers=sum(1 for s in services if s.circuit_breaker.status is BreakerStatus.OPEN),
        total_connections=len(connections),
        encrypted_connections=sum(1 for c in connections if c.security.encrypted),
        mtls_connections=sum(1 for c in connections if c.security.mtls),
        avg_latency_ms=round(sum(s.metrics.latency.p95 for s in services) / n, 2) if n else 0.0,
        avg_error_rate=round(sum(s.metrics.error_rate for s in services) / n, 4) if n else 0.0,
        total_request_rate=round(sum(s.metrics.request_rate for s in services), 2),
    )


def traffic_flow_metrics(snapshot: TopologySnapshot) -> TrafficFlowMetrics:
    """Aggregates over connections (not services)."""
    conns = snapshot.connections
    if not conns:
        return TrafficFlowMetrics()
    n = len(conns)
    return TrafficFlowMetrics(
        total_traffic=sum(c.metrics.request_rate for c in conns),
        avg_latency_ms=sum(c.metrics.latency_ms for c in conns) / n,
        avg_error_rate=sum(c.metrics.error_rate for c in conns) / n,
        encrypted_percentage=sum(1 for c in conns if c.security.encrypted) / n * 100,
        mtls_percentage=sum(1 for c in conns if c.security.mtls) / n * 100,
    )


def detect_bottlenecks(snapshot: TopologySnapshot) -> list[Service]:
    """Services that are (slow or failing) and busy and have several dependents."""
    result = []
    for s in snapshot.services:
        degraded = (s.metrics.latency.p95 > BOTTLENECK_P95_MS
                    or s.metrics.error_rate > BOTTLENECK_ERROR_RATE)
        busy = s.metrics.request_rate > BOTTLENECK_REQUEST_RATE
        if degraded and busy and snapshot.inbound_count(s.id) > BOTTLENECK_INBOUND:
            result.append(s)
    return result


def unencrypted_connections(snapshot: TopologySnapshot) -> list[tuple[str, str]]:
    """Connection keys without transport encryption (security alerts)."""
    return [c.key() for c in snapshot.connections if not c.security.encrypted and not c.security.mtls]
