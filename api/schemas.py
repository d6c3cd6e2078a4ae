# api/schemas.py
# Request bodies for the mesh endpoints (feed JSON shape, camelCase or snake_case)

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from mesh.models import BreakerStatus, HealthStatus, Protocol, Role


class _FeedModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


# ---------------------------------------------------------------------------
# Full snapshot
# ---------------------------------------------------------------------------

class LatencyIn(_FeedModel):
    p50: float = Field(0.0, ge=0)
    p95: float = Field(0.0, ge=0)
    p99: float = Field(0.0, ge=0)


class ServiceMetricsIn(_FeedModel):
    request_rate: float = Field(0.0, ge=0, alias="requestRate")
    error_rate: float = Field(0.0, ge=0, alias="errorRate")
    latency: LatencyIn = LatencyIn()


class CircuitBreakerIn(_FeedModel):
    status: BreakerStatus = BreakerStatus.CLOSED
    failure_threshold: int = Field(5, alias="failureThreshold")
    timeout_ms: int = Field(30000, alias="timeout")
    last_tripped: str | None = Field(None, alias="lastTripped")


class ServiceIn(_FeedModel):
    id: str = Field(min_length=1)
    name: str | None = None
    role: Role = Field(validation_alias=AliasChoices("role", "type"))
    namespace: str = "default"
    status: HealthStatus = HealthStatus.UNKNOWN
    instances: int = Field(1, ge=0)
    version: str = ""
    metrics: ServiceMetricsIn = ServiceMetricsIn()
    circuit_breaker: CircuitBreakerIn = Field(CircuitBreakerIn(), alias="circuitBreaker")


class SecurityIn(_FeedModel):
    encrypted: bool = False
    mtls: bool = Field(False, alias="mTLS")


class ConnectionMetricsIn(_FeedModel):
    request_rate: float = Field(0.0, ge=0, alias="requestRate")
    error_rate: float = Field(0.0, ge=0, alias="errorRate")
    latency: float = Field(0.0, ge=0)


class ConnectionIn(_FeedModel):
    source: str = Field(min_length=1)
    target: str = Field(min_length=1)
    protocol: Protocol = Protocol.HTTP
    security: SecurityIn = SecurityIn()
    metrics: ConnectionMetricsIn = ConnectionMetricsIn()


class SnapshotIn(_FeedModel):
    services: list[ServiceIn] = []
    connections: list[ConnectionIn] = []


# ---------------------------------------------------------------------------
# Delta: every field optional except the keys
# ---------------------------------------------------------------------------

class LatencyPatchIn(_FeedModel):
    p50: float | None = Field(None, ge=0)
    p95: float | None = Field(None, ge=0)
    p99: float | None = Field(None, ge=0)


class ServiceMetricsPatchIn(_FeedModel):
    request_rate: float | None = Field(None, ge=0, alias="requestRate")
    error_rate: float | None = Field(None, ge=0, alias="errorRate")
    latency: LatencyPatchIn | None = None


class CircuitBreakerPatchIn(_FeedModel):
    status: BreakerStatus | None = None
    failure_threshold: int | None = Field(None, alias="failureThreshold")
    timeout_ms: int | None = Field(None, alias="timeout")
    last_tripped: str | None = Field(None, alias="lastTripped")


class ServicePatchIn(_FeedModel):
    id: str = Field(min_length=1, validation_alias=AliasChoices("id", "serviceId", "service_id"))
    name: str | None = None
    role: Role | None = Field(None, validation_alias=AliasChoices("role", "type"))
    namespace: str | None = None
    status: HealthStatus | None = None
    instances: int | None = Field(None, ge=0)
    version: str | None = None
    metrics: ServiceMetricsPatchIn | None = None
    circuit_breaker: CircuitBreakerPatchIn | None = Field(None, alias="circuitBreaker")
    circuit_breaker_status: BreakerStatus | None = Field(None, alias="circuitBreakerStatus")
    last_tripped: str | None = Field(None, alias="lastTripped")


class SecurityPatchIn(_FeedModel):
    encrypted: bool | None = None
    mtls: bool | None = Field(None, alias="mTLS")


class ConnectionMetricsPatchIn(_FeedModel):
    request_rate: float | None = Field(None, ge=0, alias="requestRate")
    error_rate: float | None = Field(None, ge=0, alias="errorRate")
    latency: float | None = Field(None, ge=0)


class ConnectionPatchIn(_FeedModel):
    source: str = Field(min_length=1)
    target: str = Field(min_length=1)
    protocol: Protocol | None = None
    security: SecurityPatchIn | None = None
    metrics: ConnectionMetricsPatchIn | None = None


class ConnectionKeyIn(_FeedModel):
    source: str
    target: str


class DeltaIn(_FeedModel):
    services: list[ServicePatchIn] = []
    connections: list[ConnectionPatchIn] = []
    removed_services: list[str] = Field([], alias="removedServices")
    removed_connections: list[tuple[str, str] | ConnectionKeyIn] = Field([], alias="removedConnections")


class SelectionIn(_FeedModel):
    service_id: str | None = Field(None, validation_alias=AliasChoices("service_id", "serviceId"))
