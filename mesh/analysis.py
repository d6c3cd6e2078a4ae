# mesh/analysis.py
"""One full analysis run: snapshot + selection → ViewModel.

Pure function of its inputs. The scheduler decides when to call it; nothing
here knows about versions changing or timers.
"""

import logging
import time
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone

from core.config import AppSettings, settings as default_settings
from mesh.criticality import select_critical_path
from mesh.health import MeshHealth, analyze_mesh_health
from mesh.models import Path, TopologySnapshot
from mesh.paths import dependency_paths
from mesh.render import MeshRenderState, project
from mesh.spof import find_single_points_of_failure

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ViewModel:
    """Derived state handed to the rendering surface. Replaced, never patched."""
    version: int = 0
    critical_path: Path = ()
    critical_score: float = 0.0
    spofs: frozenset[str] = frozenset()
    selected_service: str | None = None
    dependency_paths: tuple[Path, ...] = ()
    truncated: bool = False
    render: MeshRenderState = MeshRenderState()
    health: MeshHealth = MeshHealth()
    computed_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


def compute_view_model(
    snapshot: TopologySnapshot,
    selected: str | None = None,
    cfg: AppSettings | None = None,
) -> ViewModel:
    """Runs criticality, SPOF, dependency paths and render projection."""
    cfg = cfg or default_settings
    t0 = time.perf_counter()
    max_paths, max_depth = cfg.paths.max_paths, cfg.paths.max_depth or None

    critical = select_critical_path(
        snapshot,
        gateway_weight=cfg.criticality.gateway_weight,
        max_paths=max_paths,
        max_depth=max_depth,
    )
    spofs = find_single_points_of_failure(snapshot, cfg.spof)

    deps: tuple[Path, ...] = ()
    deps_truncated = False
    if selected is not None:
        search = dependency_paths(snapshot, selected, max_paths, max_depth)
        deps, deps_truncated = search.paths, search.truncated

    render = project(snapshot, critical.path, spofs, selected, deps, cfg.render)
    vm = ViewModel(
        version=snapshot.version,
        critical_path=critical.path,
        critical_score=critical.score,
        spofs=spofs,
        selected_service=selected,
        dependency_paths=deps,
        truncated=critical.truncated or deps_truncated,
        render=render,
        health=analyze_mesh_health(snapshot),
    )
    logger.info(
        "Recomputed view model: critical=%d hops, %d SPOF(s), %d dependency path(s)",
        max(len(critical.path) - 1, 0), len(spofs), len(deps),
        extra={"topology_version": snapshot.version,
               "duration_ms": round((time.perf_counter() - t0) * 1000, 2),
               "truncated": vm.truncated},
    )
    return vm


def view_model_to_dict(vm: ViewModel) -> dict:
    """JSON-ready form of a ViewModel (enums as values, sets as sorted lists)."""
    health = asdict(vm.health)
    health["mtls_coverage"] = round(vm.health.mtls_coverage, 2)
    return {
        "version": vm.version,
        "critical_path": list(vm.critical_path),
        "critical_score": vm.critical_score,
        "spofs": sorted(vm.spofs),
        "selected_service": vm.selected_service,
        "dependency_paths": [list(p) for p in vm.dependency_paths],
        "truncated": vm.truncated,
        "computed_at": vm.computed_at.isoformat(),
        "health": health,
        "render": {
            "heatmap": vm.render.heatmap,
            "nodes": [
                {**asdict(n), "role": n.role.value, "heat": n.heat.value, "breaker": n.breaker.value}
                for n in vm.render.nodes
            ],
            "edges": [
                {**asdict(e), "edge_class": e.edge_class.value, "highlight": e.highlight.value,
                 "traffic": e.traffic.value}
                for e in vm.render.edges
            ],
        },
    }
