# mesh/spof.py
# Heuristic single-point-of-failure detection
#
# Four independent rules; any one flags the service. They surface review
# candidates and are intentionally over-inclusive.

from collections import Counter

from core.config import SpofSettings
from mesh.models import Role, Service, TopologySnapshot

RULE_DATABASE_FAN_IN = "database_fan_in"
RULE_GATEWAY_HUB = "gateway_hub"
RULE_HIGH_TRAFFIC = "high_traffic_fan_in"
RULE_SOLE_ROLE = "sole_service_of_role"


def _triggered_rules(
    snapshot: TopologySnapshot,
    svc: Service,
    role_counts: Counter,
    t: SpofSettings,
) -> list[str]:
    inbound = snapshot.inbound_count(svc.id)
    total = inbound + snapshot.outbound_count(svc.id)
    rules: list[str] = []

    if svc.role is Role.DATABASE and inbound > t.database_inbound_threshold:
        rules.append(RULE_DATABASE_FAN_IN)
    if svc.role is Role.GATEWAY and total > t.gateway_connection_threshold:
        rules.append(RULE_GATEWAY_HUB)
    if svc.metrics.request_rate > t.high_traffic_rate and inbound > t.high_traffic_inbound:
        rules.append(RULE_HIGH_TRAFFIC)
    if role_counts[svc.role] == 1 and total > t.sole_role_connection_threshold:
        rules.append(RULE_SOLE_ROLE)
    return rules


def find_single_points_of_failure(
    snapshot: TopologySnapshot,
    thresholds: SpofSettings | None = None,
) -> frozenset[str]:
    """Identifiers of services flagged by at least one SPOF rule."""
    t = thresholds or SpofSettings()
    role_counts = Counter(s.role for s in snapshot.services)
    return frozenset(
        s.id for s in snapshot.services
        if _triggered_rules(snapshot, s, role_counts, t)
    )


def explain_spof(
    snapshot: TopologySnapshot,
    service_id: str,
    thresholds: SpofSettings | None = None,
) -> list[str]:
    """Names of the rules that flag `service_id` (empty if none or unknown)."""
    svc = snapshot.service(service_id)
    if svc is None:
        return []
    role_counts = Counter(s.role for s in snapshot.services)
    return _triggered_rules(snapshot, svc, role_counts, thresholds or SpofSettings())
