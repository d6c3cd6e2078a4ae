# mesh/models.py
# Models: Service, Connection, TopologySnapshot, patches

from dataclasses import dataclass, field
from enum import Enum
from functools import cached_property
from types import MappingProxyType

Path = tuple[str, ...]


class _LenientEnum(str, Enum):
    """String enum that also accepts values in any letter case."""

    @classmethod
    def _missing_(cls, value):
        if isinstance(value, str):
            lowered = value.strip().lower().replace("_", "-")
            for member in cls:
                if member.value == lowered:
                    return member
        return None


class Role(_LenientEnum):
    FRONTEND = "frontend"
    BACKEND = "backend"
    DATABASE = "database"
    CACHE = "cache"
    GATEWAY = "gateway"
    SIDECAR = "sidecar"


class HealthStatus(_LenientEnum):
    HEALTHY = "healthy"
    WARNING = "warning"
    ERROR = "error"
    UNKNOWN = "unknown"


class BreakerStatus(_LenientEnum):
    CLOSED = "closed"
    HALF_OPEN = "half-open"
    OPEN = "open"


class Protocol(_LenientEnum):
    HTTP = "http"
    GRPC = "grpc"
    TCP = "tcp"
    UDP = "udp"


@dataclass(frozen=True)
class LatencyPercentiles:
    p50: float = 0.0
    p95: float = 0.0
    p99: float = 0.0


@dataclass(frozen=True)
class ServiceMetrics:
    request_rate: float = 0.0                # req/s
    error_rate: float = 0.0                  # percent
    latency: LatencyPercentiles = LatencyPercentiles()


@dataclass(frozen=True)
class CircuitBreaker:
    status: BreakerStatus = BreakerStatus.CLOSED
    failure_threshold: int = 5
    timeout_ms: int = 30000
    last_tripped: str | None = None          # ISO timestamp


@dataclass(frozen=True)
class Service:
    """Graph node: one deployed component of the mesh."""
    id: str
    name: str
    role: Role
    namespace: str = "default"
    status: HealthStatus = HealthStatus.UNKNOWN
    instances: int = 1
    version: str = ""
    metrics: ServiceMetrics = ServiceMetrics()
    circuit_breaker: CircuitBreaker = CircuitBreaker()


@dataclass(frozen=True)
class SecurityPosture:
    encrypted: bool = False
    mtls: bool = False


@dataclass(frozen=True)
class ConnectionMetrics:
    request_rate: float = 0.0                # req/s
    error_rate: float = 0.0                  # percent
    latency_ms: float = 0.0


@dataclass(frozen=True)
class Connection:
    """Graph edge: source calls target."""
    source: str
    target: str
    protocol: Protocol = Protocol.HTTP
    security: SecurityPosture = SecurityPosture()
    metrics: ConnectionMetrics = ConnectionMetrics()

    def key(self) -> tuple[str, str]:
        """Returns the connection key (source, target)."""
        return (self.source, self.target)


@dataclass(frozen=True)
class TopologySnapshot:
    """Immutable point-in-time copy of the service graph.

    Services and connections keep insertion order; every analysis walks them
    in that order, which keeps tie-breaks deterministic. `version` is the
    store counter at the time the snapshot was taken and does not take part
    in equality.
    """
    services: tuple[Service, ...] = ()
    connections: tuple[Connection, ...] = ()
    version: int = field(default=0, compare=False)

    @cached_property
    def _services_by_id(self) -> MappingProxyType:
        return MappingProxyType({s.id: s for s in self.services})

    @cached_property
    def _connections_by_key(self) -> MappingProxyType:
        return MappingProxyType({c.key(): c for c in self.connections})

    @cached_property
    def _outgoing(self) -> MappingProxyType:
        adj: dict[str, list[Connection]] = {}
        for conn in self.connections:
            adj.setdefault(conn.source, []).append(conn)
        return MappingProxyType({k: tuple(v) for k, v in adj.items()})

    @cached_property
    def _incoming(self) -> MappingProxyType:
        adj: dict[str, list[Connection]] = {}
        for conn in self.connections:
            adj.setdefault(conn.target, []).append(conn)
        return MappingProxyType({k: tuple(v) for k, v in adj.items()})

    def service(self, service_id: str) -> Service | None:
        return self._services_by_id.get(service_id)

    def has_service(self, service_id: str) -> bool:
        return service_id in self._services_by_id

    def connection(self, source: str, target: str) -> Connection | None:
        return self._connections_by_key.get((source, target))

    def outgoing(self, service_id: str) -> tuple[Connection, ...]:
        return self._outgoing.get(service_id, ())

    def incoming(self, service_id: str) -> tuple[Connection, ...]:
        return self._incoming.get(service_id, ())

    def inbound_count(self, service_id: str) -> int:
        return len(self.incoming(service_id))

    def outbound_count(self, service_id: str) -> int:
        return len(self.outgoing(service_id))

    def services_by_role(self, role: Role) -> list[Service]:
        return [s for s in self.services if s.role is role]

    def is_valid_path(self, path: Path) -> bool:
        """True if every hop of `path` is an existing connection and no id repeats."""
        if not path or len(set(path)) != len(path) or not all(self.has_service(p) for p in path):
            return False
        return all((a, b) in self._connections_by_key for a, b in zip(path, path[1:]))


@dataclass(frozen=True)
class ServicePatch:
    """Partial service update. `None` keeps the previous value."""
    id: str
    name: str | None = None
    namespace: str | None = None
    role: Role | None = None
    status: HealthStatus | None = None
    instances: int | None = None
    version: str | None = None
    request_rate: float | None = None
    error_rate: float | None = None
    latency_p50: float | None = None
    latency_p95: float | None = None
    latency_p99: float | None = None
    breaker_status: BreakerStatus | None = None
    failure_threshold: int | None = None
    timeout_ms: int | None = None
    last_tripped: str | None = None


@dataclass(frozen=True)
class ConnectionPatch:
    """Partial connection update keyed by (source, target)."""
    source: str
    target: str
    protocol: Protocol | None = None
    encrypted: bool | None = None
    mtls: bool | None = None
    request_rate: float | None = None
    error_rate: float | None = None
    latency_ms: float | None = None

    def key(self) -> tuple[str, str]:
        return (self.source, self.target)


@dataclass(frozen=True)
class Delta:
    """One incremental feed message."""
    services: tuple[ServicePatch, ...] = ()
    connections: tuple[ConnectionPatch, ...] = ()
    removed_services: tuple[str, ...] = ()
    removed_connections: tuple[tuple[str, str], ...] = ()

    def is_empty(self) -> bool:
        return not (self.services or self.connections
                    or self.removed_services or self.removed_connections)


if __name__ == "__main__":
    fe = Service(id="web", name="web-ui", role=Role.FRONTEND,
                 metrics=ServiceMetrics(request_rate=120.0))
    db = Service(id="pg", name="postgres", role=Role("Database"))
    conn = Connection(source="web", target="pg", protocol=Protocol("gRPC"))
    snap = TopologySnapshot(services=(fe, db), connections=(conn,), version=1)
    print(f"Service: {fe}")
    print(f"Connection: {conn}, key={conn.key()}")
    print(f"Snapshot v{snap.version}: services={len(snap.services)} "
          f"connections={len(snap.connections)} valid={snap.is_valid_path(('web', 'pg'))}")
