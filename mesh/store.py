# mesh/store.py
# In-memory topology store: the only mutable shared state of the analyzer

import logging
import threading
from dataclasses import dataclass, replace
from typing import Callable, Iterable

from mesh.models import (
    CircuitBreaker,
    Connection,
    ConnectionMetrics,
    ConnectionPatch,
    Delta,
    LatencyPercentiles,
    SecurityPosture,
    Service,
    ServiceMetrics,
    ServicePatch,
    TopologySnapshot,
)

logger = logging.getLogger(__name__)


class TopologyError(ValueError):
    """Base class for rejected topology input."""

    def __init__(self, reasons: list[str]):
        self.reasons = list(reasons)
        super().__init__("; ".join(self.reasons))


class MalformedSnapshotError(TopologyError):
    """A full snapshot is internally inconsistent."""


class MalformedDeltaError(TopologyError):
    """A delta references unknown services/connections or would leave dangling edges."""


@dataclass(frozen=True)
class DeltaResult:
    """Outcome of an accepted delta."""
    version: int
    changed: bool


# ---------------------------------------------------------------------------
# Patch application
# ---------------------------------------------------------------------------

def _keep(new, old):
    return old if new is None else new


def _patch_service(svc: Service, p: ServicePatch) -> Service:
    m, lat, cb = svc.metrics, svc.metrics.latency, svc.circuit_breaker
    return replace(
        svc,
        name=_keep(p.name, svc.name),
        namespace=_keep(p.namespace, svc.namespace),
        role=_keep(p.role, svc.role),
        status=_keep(p.status, svc.status),
        instances=_keep(p.instances, svc.instances),
        version=_keep(p.version, svc.version),
        metrics=ServiceMetrics(
            request_rate=_keep(p.request_rate, m.request_rate),
            error_rate=_keep(p.error_rate, m.error_rate),
            latency=LatencyPercentiles(
                p50=_keep(p.latency_p50, lat.p50),
                p95=_keep(p.latency_p95, lat.p95),
                p99=_keep(p.latency_p99, lat.p99),
            ),
        ),
        circuit_breaker=CircuitBreaker(
            status=_keep(p.breaker_status, cb.status),
            failure_threshold=_keep(p.failure_threshold, cb.failure_threshold),
            timeout_ms=_keep(p.timeout_ms, cb.timeout_ms),
            last_tripped=_keep(p.last_tripped, cb.last_tripped),
        ),
    )


def _new_service(p: ServicePatch) -> Service:
    base = Service(id=p.id, name=p.name, role=p.role)
    return _patch_service(base, p)


def _patch_connection(conn: Connection, p: ConnectionPatch) -> Connection:
    m, sec = conn.metrics, conn.security
    return replace(
        conn,
        protocol=_keep(p.protocol, conn.protocol),
        security=SecurityPosture(
            encrypted=_keep(p.encrypted, sec.encrypted),
            mtls=_keep(p.mtls, sec.mtls),
        ),
        metrics=ConnectionMetrics(
            request_rate=_keep(p.request_rate, m.request_rate),
            error_rate=_keep(p.error_rate, m.error_rate),
            latency_ms=_keep(p.latency_ms, m.latency_ms),
        ),
    )


def validate_topology(services: Iterable[Service], connections: Iterable[Connection]) -> list[str]:
    """Returns the list of consistency problems (empty when the graph is sound)."""
    problems: list[str] = []
    ids: set[str] = set()
    for s in services:
        if s.id in ids:
            problems.append(f"duplicate service id {s.id!r}")
        ids.add(s.id)
    keys: set[tuple[str, str]] = set()
    for c in connections:
        if c.key() in keys:
            problems.append(f"duplicate connection {c.source} -> {c.target}")
        keys.add(c.key())
        if c.source == c.target:
            problems.append(f"self-loop connection on {c.source!r}")
        for end in (c.source, c.target):
            if end not in ids:
                problems.append(f"connection {c.source} -> {c.target} references unknown service {end!r}")
    return problems


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------

class TopologyStore:
    """Authoritative service graph with versioned, immutable read snapshots.

    Writers (`ingest`, `apply_delta`) are serialized by a lock. Readers call
    `current()` and get a frozen TopologySnapshot that never changes under
    them. The version only moves when the graph content actually changes.
    """

    def __init__(self):
        self._services: dict[str, Service] = {}
        self._connections: dict[tuple[str, str], Connection] = {}
        self._version = 0
        self._snapshot = TopologySnapshot()
        self._lock = threading.Lock()
        self._listeners: list[Callable[[int], None]] = []

    @property
    def version(self) -> int:
        return self._version

    def current(self) -> TopologySnapshot:
        """Returns the latest immutable snapshot."""
        return self._snapshot

    def add_listener(self, callback: Callable[[int], None]) -> None:
        """Registers `callback(version)` invoked after every version bump."""
        self._listeners.append(callback)

    def remove_listener(self, callback: Callable[[int], None]) -> None:
        if callback in self._listeners:
            self._listeners.remove(callback)

    # ------------------------------------------------------------------
    def ingest(
        self,
        snapshot: TopologySnapshot | None = None,
        *,
        services: Iterable[Service] = (),
        connections: Iterable[Connection] = (),
    ) -> int:
        """Replaces the whole graph. Returns the (possibly unchanged) version.

        Raises MalformedSnapshotError on duplicate ids/pairs, self-loops or
        connections to unknown services; the store is left untouched.
        """
        if snapshot is not None:
            services, connections = snapshot.services, snapshot.connections
        services, connections = tuple(services), tuple(connections)

        problems = validate_topology(services, connections)
        if problems:
            logger.warning("Rejected snapshot: %d problem(s)", len(problems),
                           extra={"reasons": problems})
            raise MalformedSnapshotError(problems)

        with self._lock:
            new_services = {s.id: s for s in services}
            new_connections = {c.key(): c for c in connections}
            changed = self._commit(new_services, new_connections)
            version = self._version
        if changed:
            logger.info("Ingested snapshot: %d services, %d connections",
                        len(services), len(connections), extra={"topology_version": version})
            self._notify(version)
        return version

    # ------------------------------------------------------------------
    def apply_delta(
        self,
        delta: Delta | Iterable[ServicePatch] = (),
        connection_updates: Iterable[ConnectionPatch] = (),
        removed_services: Iterable[str] = (),
        removed_connections: Iterable[tuple[str, str]] = (),
    ) -> DeltaResult:
        """Merges a partial update into the graph.

        Accepts either a Delta or the separate update lists. Order inside one
        delta: connection removals, service upserts, connection upserts,
        service removals. Raises MalformedDeltaError and keeps the previous
        graph (and version) if any part is invalid.
        """
        if not isinstance(delta, Delta):
            delta = Delta(
                services=tuple(delta),
                connections=tuple(connection_updates),
                removed_services=tuple(removed_services),
                removed_connections=tuple(tuple(k) for k in removed_connections),
            )

        with self._lock:
            services = dict(self._services)
            connections = dict(self._connections)
            problems: list[str] = []

            for key in delta.removed_connections:
                if key not in connections:
                    problems.append(f"cannot remove unknown connection {key[0]} -> {key[1]}")
                else:
                    del connections[key]

            for p in delta.services:
                if p.id in services:
                    services[p.id] = _patch_service(services[p.id], p)
                elif p.name is None or p.role is None:
                    problems.append(f"patch references unknown service {p.id!r}")
                else:
                    services[p.id] = _new_service(p)

            for p in delta.connections:
                key = p.key()
                if p.source == p.target:
                    problems.append(f"self-loop connection on {p.source!r}")
                    continue
                missing = [end for end in key if end not in services]
                if missing:
                    problems.append(
                        f"connection {p.source} -> {p.target} references unknown service "
                        + ", ".join(repr(m) for m in missing))
                    continue
                base = connections.get(key) or Connection(source=p.source, target=p.target)
                connections[key] = _patch_connection(base, p)

            for sid in delta.removed_services:
                if sid not in services:
                    problems.append(f"cannot remove unknown service {sid!r}")
                    continue
                attached = [k for k in connections if sid in k]
                if attached:
                    problems.append(
                        f"cannot remove service {sid!r}: {len(attached)} connection(s) still attached")
                    continue
                del services[sid]

            if problems:
                logger.warning("Rejected delta: %d problem(s)", len(problems),
                               extra={"reasons": problems, "topology_version": self._version})
                raise MalformedDeltaError(problems)

            changed = self._commit(services, connections)
            version = self._version

        if changed:
            logger.debug("Applied delta", extra={"topology_version": version})
            self._notify(version)
        return DeltaResult(version=version, changed=changed)

    # ------------------------------------------------------------------
    def _commit(self, services: dict, connections: dict) -> bool:
        """Swaps in new state if it differs. Caller holds the lock."""
        candidate = TopologySnapshot(
            services=tuple(services.values()),
            connections=tuple(connections.values()),
        )
        if candidate == self._snapshot:
            return False
        self._services = services
        self._connections = connections
        self._version += 1
        self._snapshot = replace(candidate, version=self._version)
        return True

    def _notify(self, version: int) -> None:
        for callback in list(self._listeners):
            try:
                callback(version)
            except Exception:
                logger.exception("Topology listener failed")
