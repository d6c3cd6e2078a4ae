# mesh/paths.py
# Bounded depth-first enumeration of simple dependency paths

import logging
from dataclasses import dataclass

from mesh.models import Path, TopologySnapshot

logger = logging.getLogger(__name__)

DEFAULT_MAX_PATHS = 50


@dataclass(frozen=True)
class PathSearch:
    """Result of one path search.

    `truncated` is True when the path or depth budget stopped exploration
    before the graph was fully explored, so `paths` may be incomplete.
    """
    paths: tuple[Path, ...] = ()
    truncated: bool = False

    def __bool__(self) -> bool:
        return bool(self.paths)

    def __len__(self) -> int:
        return len(self.paths)


def _resolve_limits(snapshot: TopologySnapshot, max_paths: int | None,
                    max_depth: int | None) -> tuple[int, int]:
    node_count = len(snapshot.services)
    if max_depth is None or max_depth <= 0:
        max_depth = node_count
    max_depth = min(max_depth, node_count)
    if max_paths is None or max_paths <= 0:
        max_paths = DEFAULT_MAX_PATHS
    return max_paths, max_depth


def find_all_paths(
    snapshot: TopologySnapshot,
    start_id: str,
    end_id: str,
    max_paths: int | None = None,
    max_depth: int | None = None,
) -> PathSearch:
    """All simple paths start_id → end_id along directed connections.

    Outgoing connections are followed in snapshot order, so the result order
    is stable for a given snapshot. A node never repeats within a path.
    Exploration stops after `max_paths` paths (whole call) or `max_depth`
    hops (per branch). Unknown endpoints, start == end and unreachable
    targets all yield an empty result.
    """
    if start_id == end_id or not snapshot.has_service(start_id) or not snapshot.has_service(end_id):
        return PathSearch()

    max_paths, max_depth = _resolve_limits(snapshot, max_paths, max_depth)
    found: list[Path] = []
    truncated = False
    trail: list[str] = [start_id]
    on_trail: set[str] = {start_id}
    # one frame per node on the trail: (node, its remaining outgoing connections)
    stack = [(start_id, iter(snapshot.outgoing(start_id)))]

    while stack:
        node, edges = stack[-1]
        conn = next(edges, None)
        if conn is None:
            stack.pop()
            trail.pop()
            on_trail.discard(node)
            continue
        if len(found) >= max_paths:
            truncated = True
            break
        nxt = conn.target
        if nxt in on_trail:
            continue
        if nxt == end_id:
            found.append(tuple(trail) + (nxt,))
            continue
        # a hop to nxt uses len(trail) hops; continuing needs one more
        if len(trail) >= max_depth:
            truncated = True
            continue
        trail.append(nxt)
        on_trail.add(nxt)
        stack.append((nxt, iter(snapshot.outgoing(nxt))))

    if truncated:
        logger.debug("Path search %s -> %s truncated at %d path(s)",
                     start_id, end_id, len(found), extra={"paths_found": len(found), "truncated": True})
    return PathSearch(paths=tuple(found), truncated=truncated)


def dependency_paths(
    snapshot: TopologySnapshot,
    service_id: str,
    max_paths: int | None = None,
    max_depth: int | None = None,
) -> PathSearch:
    """Paths that traverse `service_id`, in both directions.

    For every outgoing connection: paths from the service to that target.
    For every incoming connection: paths from that source to the service.
    An unknown service has no dependency paths.
    """
    if not snapshot.has_service(service_id):
        return PathSearch()

    paths: list[Path] = []
    truncated = False
    for conn in snapshot.outgoing(service_id):
        result = find_all_paths(snapshot, service_id, conn.target, max_paths, max_depth)
        paths.extend(result.paths)
        truncated = truncated or result.truncated
    for conn in snapshot.incoming(service_id):
        result = find_all_paths(snapshot, conn.source, service_id, max_paths, max_depth)
        paths.extend(result.paths)
        truncated = truncated or result.truncated
    return PathSearch(paths=tuple(paths), truncated=truncated)
