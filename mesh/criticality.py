# mesh/criticality.py
# Critical path of the mesh and per-service importance

from dataclasses import dataclass

from mesh.models import BreakerStatus, Path, Role, TopologySnapshot
from mesh.paths import find_all_paths

DEFAULT_GATEWAY_WEIGHT = 2.0

# Importance bonus by role (gateways are the entry points, databases hold state)
ROLE_IMPORTANCE: dict[Role, float] = {
    Role.GATEWAY:  100.0,
    Role.DATABASE:  80.0,
    Role.BACKEND:   50.0,
    Role.FRONTEND:  30.0,
    Role.CACHE:     20.0,
    Role.SIDECAR:   20.0,
}

BREAKER_PENALTY: dict[BreakerStatus, float] = {
    BreakerStatus.CLOSED:     0.0,
    BreakerStatus.HALF_OPEN: 25.0,
    BreakerStatus.OPEN:      50.0,
}


@dataclass(frozen=True)
class CriticalPath:
    """The single most critical frontend → database path."""
    path: Path = ()
    score: float = 0.0
    truncated: bool = False


def path_score(snapshot: TopologySnapshot, path: Path,
               gateway_weight: float = DEFAULT_GATEWAY_WEIGHT) -> float:
    """Σ request_rate × role_weight over the services of `path`."""
    total = 0.0
    for sid in path:
        svc = snapshot.service(sid)
        if svc is None:
            continue
        weight = gateway_weight if svc.role is Role.GATEWAY else 1.0
        total += svc.metrics.request_rate * weight
    return total


def select_critical_path(
    snapshot: TopologySnapshot,
    gateway_weight: float = DEFAULT_GATEWAY_WEIGHT,
    max_paths: int | None = None,
    max_depth: int | None = None,
) -> CriticalPath:
    """Highest-scoring path over every (frontend, database) pair.

    Pairs and paths are visited in snapshot order and only a strictly
    higher score replaces the current best, so ties keep the first path
    found. No frontend, no database or no route gives an empty path.
    """
    frontends = snapshot.services_by_role(Role.FRONTEND)
    databases = snapshot.services_by_role(Role.DATABASE)
    if not frontends or not databases:
        return CriticalPath()

    best: Path = ()
    best_score: float | None = None
    truncated = False
    for fe in frontends:
        for db in databases:
            search = find_all_paths(snapshot, fe.id, db.id, max_paths, max_depth)
            truncated = truncated or search.truncated
            for path in search.paths:
                score = path_score(snapshot, path, gateway_weight)
                if best_score is None or score > best_score:
                    best, best_score = path, score

    return CriticalPath(path=best, score=best_score or 0.0, truncated=truncated)


def critical_path(snapshot: TopologySnapshot, **kwargs) -> Path:
    """Shortcut returning only the identifier sequence of the critical path."""
    return select_critical_path(snapshot, **kwargs).path


def service_importance(snapshot: TopologySnapshot, service_id: str) -> float:
    """Heuristic importance score of one service, floored at 0.

    rate/100 + 10 per attached connection + role bonus
    − 5 × error rate − breaker penalty.
    """
    svc = snapshot.service(service_id)
    if svc is None:
        return 0.0
    degree = snapshot.inbound_count(service_id) + snapshot.outbound_count(service_id)
    score = svc.metrics.request_rate / 100
    score += degree * 10
    score += ROLE_IMPORTANCE[svc.role]
    score -= svc.metrics.error_rate * 5
    score -= BREAKER_PENALTY[svc.circuit_breaker.status]
    return max(0.0, score)


def rank_services_by_importance(snapshot: TopologySnapshot) -> list[tuple[str, float]]:
    """(service_id, importance) sorted by importance desc, snapshot order on ties."""
    scored = [(s.id, service_importance(snapshot, s.id)) for s in snapshot.services]
    scored.sort(key=lambda t: t[1], reverse=True)
    return scored
