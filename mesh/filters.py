# mesh/filters.py
# Service list filtering, search and sorting for the services table

from typing import Callable, Literal

from mesh.models import BreakerStatus, HealthStatus, Role, Service

HealthFilter = Literal["all", "healthy", "warning", "error"]

# Error-rate bands (percent) used by the health filter
HEALTHY_MAX_ERROR_RATE = 2.0
WARNING_MAX_ERROR_RATE = 5.0

_SORT_KEYS: dict[str, Callable[[Service], object]] = {
    "name":           lambda s: s.name.lower(),
    "role":           lambda s: s.role.value,
    "namespace":      lambda s: s.namespace.lower(),
    "status":         lambda s: s.status.value,
    "request_rate":   lambda s: s.metrics.request_rate,
    "error_rate":     lambda s: s.metrics.error_rate,
    "latency":        lambda s: s.metrics.latency.p95,
    "circuit_breaker": lambda s: s.circuit_breaker.status.value,
}
_SORT_ALIASES = {"type": "role", "rps": "request_rate", "requestRate": "request_rate",
                 "errorRate": "error_rate", "p95": "latency", "circuitBreaker": "circuit_breaker"}


def filter_services(services: list[Service], role: Role | None = None,
                    query: str | None = None) -> list[Service]:
    """Keeps services of `role` (None = all) whose name/namespace/role contains `query`."""
    result = [s for s in services if role is None or s.role is role]
    if query:
        q = query.lower()
        result = [s for s in result
                  if q in s.name.lower() or q in s.namespace.lower() or q in s.role.value]
    return result


def search_services(services: list[Service], query: str) -> list[Service]:
    """Global search over name, namespace, role, status and version."""
    if not query:
        return list(services)
    q = query.lower()
    return [
        s for s in services
        if q in s.name.lower() or q in s.namespace.lower() or q in s.role.value
        or q in s.status.value or q in s.version.lower()
    ]


def filter_by_health(services: list[Service], health: HealthFilter = "all") -> list[Service]:
    """Health buckets combine reported status, error rate and breaker state."""
    if health == "all":
        return list(services)

    def matches(s: Service) -> bool:
        err = s.metrics.error_rate
        if health == "healthy":
            return s.status is HealthStatus.HEALTHY and err <= HEALTHY_MAX_ERROR_RATE
        if health == "warning":
            return (s.status is HealthStatus.WARNING
                    or HEALTHY_MAX_ERROR_RATE < err <= WARNING_MAX_ERROR_RATE)
        if health == "error":
            return (s.status is HealthStatus.ERROR or err > WARNING_MAX_ERROR_RATE
                    or s.circuit_breaker.status is BreakerStatus.OPEN)
        raise ValueError(f"Unknown health filter: {health}")

    return [s for s in services if matches(s)]


def sort_services(services: list[Service], sort_by: str = "name",
                  order: Literal["asc", "desc"] = "asc") -> list[Service]:
    """Returns a new sorted list; unknown keys sort by name."""
    key = _SORT_KEYS.get(_SORT_ALIASES.get(sort_by, sort_by), _SORT_KEYS["name"])
    return sorted(services, key=key, reverse=(order == "desc"))


def unique_namespaces(services: list[Service]) -> list[str]:
    return sorted({s.namespace for s in services})


def unique_roles(services: list[Service]) -> list[str]:
    return sorted({s.role.value for s in services})
