# api/routes/mesh_routes.py
# Mesh endpoints: feed ingestion, selection, topology and analysis reads

from typing import Literal

from fastapi import APIRouter, HTTPException, Query
from fastapi.responses import JSONResponse

from api.schemas import DeltaIn, SelectionIn, SnapshotIn
from core.config import settings
from mesh.analysis import view_model_to_dict
from mesh.filters import filter_by_health, filter_services, sort_services, unique_namespaces, unique_roles
from mesh.models import Role
from mesh.paths import find_all_paths
from mesh.scheduler import RecomputeScheduler
from mesh.serialization import delta_from_dict, service_to_dict, snapshot_from_dict, snapshot_to_dict
from mesh.spof import explain_spof
from mesh.store import MalformedDeltaError, MalformedSnapshotError, TopologyStore

router = APIRouter(prefix="/api/mesh", tags=["mesh"])

# Initialized from server.py lifespan
_store: TopologyStore | None = None
_scheduler: RecomputeScheduler | None = None


def init_stores(store: TopologyStore, scheduler: RecomputeScheduler) -> None:
    """Wires the router to the running store and scheduler."""
    global _store, _scheduler
    _store = store
    _scheduler = scheduler


def get_store() -> TopologyStore:
    if _store is None:
        raise HTTPException(status_code=500, detail="Topology store not initialized")
    return _store


def get_scheduler() -> RecomputeScheduler:
    if _scheduler is None:
        raise HTTPException(status_code=500, detail="Recompute scheduler not initialized")
    return _scheduler


def _feed_dict(body) -> dict:
    return body.model_dump(by_alias=True, mode="json", exclude_none=True)


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------

@router.post("/snapshot")
async def ingest_snapshot(body: SnapshotIn):
    """Replaces the whole topology."""
    store = get_store()
    try:
        version = store.ingest(snapshot_from_dict(_feed_dict(body)))
    except MalformedSnapshotError as e:
        return JSONResponse(status_code=422, content={"detail": "Malformed snapshot", "reasons": e.reasons})
    snap = store.current()
    return {"version": version, "services": len(snap.services), "connections": len(snap.connections)}


@router.patch("/delta")
async def apply_delta(body: DeltaIn):
    """Merges a partial update; rejected as a whole on any bad reference."""
    store = get_store()
    try:
        result = store.apply_delta(delta_from_dict(_feed_dict(body)))
    except MalformedDeltaError as e:
        return JSONResponse(status_code=409, content={"detail": "Malformed delta", "reasons": e.reasons})
    return {"version": result.version, "changed": result.changed}


@router.put("/selection")
async def set_selection(body: SelectionIn):
    """Sets (or clears, with null) the selected service."""
    scheduler = get_scheduler()
    scheduler.set_selected_service(body.service_id)
    known = body.service_id is not None and get_store().current().has_service(body.service_id)
    return {"service_id": body.service_id, "known": known}


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------

@router.get("/topology")
async def topology():
    return snapshot_to_dict(get_store().current())


@router.get("/view")
async def view():
    """Latest view model. Pending changes are computed first."""
    scheduler = get_scheduler()
    vm = scheduler.flush() or scheduler.latest
    if vm is None:
        raise HTTPException(status_code=503, detail="View model not computed yet")
    return view_model_to_dict(vm)


@router.get("/services")
async def list_services(
    role: str | None = None,
    health: Literal["all", "healthy", "warning", "error"] = "all",
    q: str | None = None,
    sort: str = "name",
    order: Literal["asc", "desc"] = "asc",
):
    """Services table: filter by role/health, search, sort.

    Query params:
        role: frontend|backend|database|cache|gateway|sidecar
        health: all|healthy|warning|error
        q: substring of name, namespace or role
        sort: name|role|namespace|status|request_rate|error_rate|latency|circuit_breaker
    """
    try:
        role_filter = Role(role) if role else None
    except ValueError:
        raise HTTPException(status_code=422, detail=f"Unknown role: {role}")

    all_services = list(get_store().current().services)
    services = filter_services(all_services, role_filter, q)
    services = filter_by_health(services, health)
    services = sort_services(services, sort, order)
    return {
        "services": [service_to_dict(s) for s in services],
        "count": len(services),
        "namespaces": unique_namespaces(all_services),
        "roles": unique_roles(all_services),
    }


@router.get("/paths")
async def paths(from_: str = Query(..., alias="from"), to: str = Query(...)):
    """All simple paths between two services (bounded, may be truncated)."""
    search = find_all_paths(get_store().current(), from_, to,
                            settings.paths.max_paths, settings.paths.max_depth or None)
    return {
        "from": from_,
        "to": to,
        "paths": [list(p) for p in search.paths],
        "count": len(search),
        "truncated": search.truncated,
    }


@router.get("/spof/{service_id}")
async def spof(service_id: str):
    """Which SPOF heuristics a service triggers."""
    snap = get_store().current()
    if not snap.has_service(service_id):
        raise HTTPException(status_code=404, detail=f"Service {service_id} not found")
    rules = explain_spof(snap, service_id, settings.spof)
    return {"service_id": service_id, "spof": bool(rules), "rules": rules}
