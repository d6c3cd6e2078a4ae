# api/server.py
# FastAPI server for MeshScope

import asyncio
import concurrent.futures
import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.routes.mesh_routes import router as mesh_router, init_stores
from api.websocket import manager, router as ws_router
from core.config import settings
from core.logging import RequestLoggingMiddleware, setup_logging
from mesh.analysis import ViewModel, view_model_to_dict
from mesh.demo_feed import DemoFeed
from mesh.scheduler import RecomputeScheduler
from mesh.serialization import snapshot_from_dict
from mesh.store import TopologyStore
from scripts.generate_mock_mesh import generate_mesh

logger = logging.getLogger(__name__)

DEMO_SEED = 42


# ---------------------------------------------------------------------------
# Bootstrap: fill the store with a demo mesh if empty
# ---------------------------------------------------------------------------
def _bootstrap(store: TopologyStore) -> dict | None:
    """Ingests the demo mesh into an empty store and returns its payload."""
    if store.current().services:
        return None
    mesh = generate_mesh(DEMO_SEED)
    version = store.ingest(snapshot_from_dict(mesh))
    logger.info("Bootstrapped demo mesh", extra={"topology_version": version})
    return mesh


def _log_broadcast_failure(fut: concurrent.futures.Future) -> None:
    if fut.cancelled():
        return
    exc = fut.exception()
    if exc is not None:
        logger.error("View model broadcast failed: %s", exc, exc_info=exc)


def _broadcaster(loop: asyncio.AbstractEventLoop):
    """Scheduler listener that hands view models to the WebSocket manager on `loop`."""

    def push(vm: ViewModel) -> None:
        fut = asyncio.run_coroutine_threadsafe(manager.broadcast(view_model_to_dict(vm)), loop)
        fut.add_done_callback(_log_broadcast_failure)

    return push


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging(settings.log_level)
    app.state.start_time = time.time()

    store = TopologyStore()
    scheduler = RecomputeScheduler(store, settings)
    scheduler.add_listener(_broadcaster(asyncio.get_running_loop()))
    app.state.store = store
    app.state.scheduler = scheduler
    init_stores(store, scheduler)

    scheduler.start()
    feed = None
    if settings.bootstrap_demo:
        mesh = _bootstrap(store)
        if mesh is not None and settings.demo_feed_interval_seconds > 0:
            feed = DemoFeed(store, mesh, settings.demo_feed_interval_seconds, seed=DEMO_SEED)
            feed.start()
    app.state.demo_feed = feed
    yield
    if feed is not None:
        feed.stop()
    scheduler.stop()


app = FastAPI(title="MeshScope API", version="0.1.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(RequestLoggingMiddleware)

app.include_router(mesh_router)
app.include_router(ws_router)


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@app.get("/api/health")
async def health():
    now = time.time()
    uptime = now - getattr(app.state, "start_time", now)
    store: TopologyStore | None = getattr(app.state, "store", None)
    scheduler: RecomputeScheduler | None = getattr(app.state, "scheduler", None)
    feed: DemoFeed | None = getattr(app.state, "demo_feed", None)

    snap = store.current() if store is not None else None
    return {
        "status": "ok" if store is not None else "starting",
        "version": app.version,
        "uptime_seconds": round(uptime, 1),
        "topology_version": snap.version if snap is not None else None,
        "services": len(snap.services) if snap is not None else 0,
        "connections": len(snap.connections) if snap is not None else 0,
        "websocket_clients": manager.active_count,
        "scheduler": {
            "running": scheduler.running if scheduler is not None else False,
            "recompute_count": scheduler.recompute_count if scheduler is not None else 0,
            "debounce_seconds": scheduler.debounce_seconds if scheduler is not None else None,
        },
        "demo_feed": {
            "running": feed.running if feed is not None else False,
            "updates_applied": feed.updates_applied if feed is not None else 0,
        },
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
