# mesh/render.py
# Projection of analysis output into discrete visual classes
#
# Everything here is table lookups keyed by closed enums; the rendering
# surface receives colors, sizes and flags and never re-derives them.

import math
from dataclasses import dataclass
from enum import Enum

from core.config import RenderSettings
from mesh.models import (
    BreakerStatus,
    Connection,
    HealthStatus,
    Path,
    Protocol,
    Role,
    Service,
    TopologySnapshot,
)


class HeatBucket(str, Enum):
    EXCELLENT = "excellent"
    GOOD = "good"
    MODERATE = "moderate"
    SLOW = "slow"
    CRITICAL = "critical"


class EdgeClass(str, Enum):
    ERROR = "error"
    MTLS = "mtls"
    ENCRYPTED = "encrypted"
    PLAIN = "plain"


class EdgeHighlight(str, Enum):
    CRITICAL = "critical"
    DEPENDENCY = "dependency"
    NONE = "none"


class TrafficClass(str, Enum):
    ERROR = "error"
    WARNING = "warning"
    MTLS = "mtls"
    HEALTHY = "healthy"


# ---------------------------------------------------------------------------
# Palettes
# ---------------------------------------------------------------------------
RED = "#ef4444"
YELLOW = "#eab308"
GRAY = "#6b7280"

ROLE_COLORS: dict[Role, str] = {
    Role.FRONTEND: "#3b82f6",
    Role.BACKEND:  "#10b981",
    Role.DATABASE: "#8b5cf6",
    Role.CACHE:    "#f59e0b",
    Role.GATEWAY:  "#06b6d4",
    Role.SIDECAR:  "#64748b",
}

HEAT_COLORS: dict[HeatBucket, str] = {
    HeatBucket.EXCELLENT: "#22c55e",
    HeatBucket.GOOD:      "#84cc16",
    HeatBucket.MODERATE:  "#eab308",
    HeatBucket.SLOW:      "#f97316",
    HeatBucket.CRITICAL:  "#ef4444",
}

EDGE_COLORS: dict[EdgeClass, str] = {
    EdgeClass.ERROR:     "#ef444460",
    EdgeClass.MTLS:      "#10b98160",
    EdgeClass.ENCRYPTED: "#3b82f660",
    EdgeClass.PLAIN:     "#ffffff30",
}

STATUS_COLORS: dict[HealthStatus, str | None] = {
    HealthStatus.ERROR:   RED,
    HealthStatus.WARNING: YELLOW,
    HealthStatus.HEALTHY: None,              # falls back to the role color
    HealthStatus.UNKNOWN: GRAY,
}

SELECTED_SIZE_FACTOR = 1.5
SPOF_SIZE_FACTOR = 1.3


@dataclass(frozen=True)
class NodeRenderState:
    id: str
    role: Role
    color: str
    status_color: str
    heat: HeatBucket
    size: float
    display_size: float
    breaker: BreakerStatus
    error_badge: bool
    selected: bool = False
    in_critical_path: bool = False
    spof: bool = False
    in_dependency_path: bool = False


@dataclass(frozen=True)
class EdgeRenderState:
    source: str
    target: str
    edge_class: EdgeClass
    color: str
    width: float
    dashed: bool
    highlight: EdgeHighlight
    traffic: TrafficClass


@dataclass(frozen=True)
class MeshRenderState:
    nodes: tuple[NodeRenderState, ...] = ()
    edges: tuple[EdgeRenderState, ...] = ()
    heatmap: bool = False

    def node(self, service_id: str) -> NodeRenderState | None:
        return next((n for n in self.nodes if n.id == service_id), None)

    def edge(self, source: str, target: str) -> EdgeRenderState | None:
        return next((e for e in self.edges if e.source == source and e.target == target), None)


# ---------------------------------------------------------------------------
# Node classification
# ---------------------------------------------------------------------------

def heat_bucket(p95_ms: float, cfg: RenderSettings | None = None) -> HeatBucket:
    """Five-step latency ladder on p95."""
    cfg = cfg or RenderSettings()
    if p95_ms < cfg.latency_excellent_ms:
        return HeatBucket.EXCELLENT
    if p95_ms < cfg.latency_good_ms:
        return HeatBucket.GOOD
    if p95_ms < cfg.latency_moderate_ms:
        return HeatBucket.MODERATE
    if p95_ms < cfg.latency_slow_ms:
        return HeatBucket.SLOW
    return HeatBucket.CRITICAL


def node_size(request_rate: float, cfg: RenderSettings | None = None) -> float:
    """base + log10(rate + 1) × scale, so hubs grow slowly."""
    cfg = cfg or RenderSettings()
    return cfg.base_size + math.log10(max(request_rate, 0.0) + 1) * cfg.scale_factor


def node_color(svc: Service, cfg: RenderSettings | None = None) -> str:
    """Role palette, or the latency heat ladder when heatmap mode is on."""
    cfg = cfg or RenderSettings()
    if cfg.latency_heatmap:
        return HEAT_COLORS[heat_bucket(svc.metrics.latency.p95, cfg)]
    return ROLE_COLORS[svc.role]


def status_color(svc: Service) -> str:
    """Health overlay: an open breaker reads as an error."""
    if svc.circuit_breaker.status is BreakerStatus.OPEN:
        return RED
    return STATUS_COLORS[svc.status] or ROLE_COLORS[svc.role]


# ---------------------------------------------------------------------------
# Edge classification
# ---------------------------------------------------------------------------

def edge_class(conn: Connection, cfg: RenderSettings | None = None) -> EdgeClass:
    """error > mTLS > encrypted > plain."""
    cfg = cfg or RenderSettings()
    if conn.metrics.error_rate > cfg.error_rate_high:
        return EdgeClass.ERROR
    if conn.security.mtls:
        return EdgeClass.MTLS
    if conn.security.encrypted:
        return EdgeClass.ENCRYPTED
    return EdgeClass.PLAIN


def traffic_class(conn: Connection, cfg: RenderSettings | None = None) -> TrafficClass:
    cfg = cfg or RenderSettings()
    if conn.metrics.error_rate > cfg.error_rate_high:
        return TrafficClass.ERROR
    if conn.metrics.error_rate > cfg.error_rate_medium:
        return TrafficClass.WARNING
    if conn.security.mtls:
        return TrafficClass.MTLS
    return TrafficClass.HEALTHY


def edge_width(request_rate: float) -> float:
    return math.log10(max(request_rate, 0.0) + 1) * 2


def _path_pairs(paths: list[Path] | tuple[Path, ...]) -> set[frozenset[str]]:
    # unordered, like the renderer's hit test
    return {frozenset(pair) for p in paths for pair in zip(p, p[1:])}


# ---------------------------------------------------------------------------
# Projection
# ---------------------------------------------------------------------------

def project(
    snapshot: TopologySnapshot,
    critical_path: Path = (),
    spofs: frozenset[str] = frozenset(),
    selected: str | None = None,
    dependency_paths: tuple[Path, ...] = (),
    cfg: RenderSettings | None = None,
) -> MeshRenderState:
    """Per-node and per-edge render state for one analysis run."""
    cfg = cfg or RenderSettings()
    critical_nodes = set(critical_path)
    dependency_nodes = {sid for p in dependency_paths for sid in p}
    critical_pairs = _path_pairs([critical_path])
    dependency_pairs = _path_pairs(dependency_paths)

    nodes = []
    for svc in snapshot.services:
        size = node_size(svc.metrics.request_rate, cfg)
        display = size
        is_selected = svc.id == selected
        is_spof = svc.id in spofs
        if is_selected:
            display *= SELECTED_SIZE_FACTOR
        if is_spof:
            display *= SPOF_SIZE_FACTOR
        nodes.append(NodeRenderState(
            id=svc.id,
            role=svc.role,
            color=node_color(svc, cfg),
            status_color=status_color(svc),
            heat=heat_bucket(svc.metrics.latency.p95, cfg),
            size=round(size, 3),
            display_size=round(display, 3),
            breaker=svc.circuit_breaker.status,
            error_badge=svc.metrics.error_rate > cfg.error_rate_high,
            selected=is_selected,
            in_critical_path=svc.id in critical_nodes,
            spof=is_spof,
            in_dependency_path=selected is not None and svc.id in dependency_nodes,
        ))

    edges = []
    for conn in snapshot.connections:
        pair = frozenset(conn.key())
        if pair in critical_pairs:
            highlight = EdgeHighlight.CRITICAL
        elif selected is not None and pair in dependency_pairs:
            highlight = EdgeHighlight.DEPENDENCY
        else:
            highlight = EdgeHighlight.NONE
        cls = edge_class(conn, cfg)
        edges.append(EdgeRenderState(
            source=conn.source,
            target=conn.target,
            edge_class=cls,
            color=EDGE_COLORS[cls],
            width=round(edge_width(conn.metrics.request_rate), 3),
            dashed=conn.protocol is Protocol.GRPC,
            highlight=highlight,
            traffic=traffic_class(conn, cfg),
        ))

    return MeshRenderState(nodes=tuple(nodes), edges=tuple(edges), heatmap=cfg.latency_heatmap)
