# mesh/scheduler.py
# Decides when the view model must be recomputed and debounces bursts

import logging
import threading
from typing import Callable, Iterable

from core.config import AppSettings, settings as default_settings
from core.logging import bind_context, log_ctx
from mesh.analysis import ViewModel, compute_view_model
from mesh.store import TopologyStore

logger = logging.getLogger(__name__)

_UNSET = object()

Listener = Callable[[ViewModel], None]


class RecomputeScheduler:
    """Recompute loop between the topology store and the view model.

    Tracks the last (version, selection) it computed for. Store changes and
    selection changes call `notify()`, which (re)arms a debounce timer; when
    the feed goes quiet for `debounce_seconds` a single `tick()` runs
    against the latest snapshot. `tick()` can also be driven directly.
    """

    def __init__(
        self,
        store: TopologyStore,
        settings: AppSettings | None = None,
        listeners: Iterable[Listener] = (),
    ):
        """
        Args:
            store: topology store to read snapshots from
            settings: analyzer configuration (defaults to the global settings)
            listeners: callables receiving every freshly computed ViewModel
        """
        self.store = store
        self.settings = settings or default_settings
        self.debounce_seconds = self.settings.scheduler.debounce_seconds
        self.listeners: list[Listener] = list(listeners)
        self.latest: ViewModel | None = None
        self.recompute_count = 0

        self._selected: str | None = None
        self._last_version: object = _UNSET
        self._last_selected: object = _UNSET
        self._timer: threading.Timer | None = None
        self._timer_lock = threading.Lock()
        self._compute_lock = threading.Lock()
        self.running = False

    # ------------------------------------------------------------------
    @property
    def selected_service(self) -> str | None:
        return self._selected

    @property
    def dirty(self) -> bool:
        """True if the store version or selection moved since the last recompute."""
        return self.store.version != self._last_version or self._selected != self._last_selected

    def add_listener(self, listener: Listener) -> None:
        self.listeners.append(listener)

    def start(self) -> None:
        """Subscribes to store changes."""
        if self.running:
            return
        self.running = True
        self.store.add_listener(self._on_store_change)
        logger.info("Recompute scheduler started (debounce %.3fs)", self.debounce_seconds)

    def stop(self) -> None:
        """Unsubscribes and cancels a pending recompute."""
        self.running = False
        self.store.remove_listener(self._on_store_change)
        with self._timer_lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
        logger.info("Recompute scheduler stopped")

    # ------------------------------------------------------------------
    def set_selected_service(self, service_id: str | None) -> None:
        """Selection input. Schedules a recompute only if the value changed."""
        if service_id == self._selected:
            return
        self._selected = service_id
        logger.debug("Selection changed to %s", service_id)
        self.notify()

    def notify(self) -> None:
        """Marks work pending and restarts the debounce window."""
        if self.debounce_seconds <= 0:
            self.tick()
            return
        with self._timer_lock:
            if self._timer is not None:
                self._timer.cancel()
            self._timer = threading.Timer(self.debounce_seconds, self._fire)
            self._timer.daemon = True
            self._timer.start()

    def flush(self) -> ViewModel | None:
        """Runs a pending recompute now instead of waiting for the timer."""
        with self._timer_lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
        return self.tick()

    def tick(self) -> ViewModel | None:
        """Recomputes if version or selection changed. Returns the new ViewModel or None."""
        with self._compute_lock:
            snapshot = self.store.current()
            selected = self._selected
            if snapshot.version == self._last_version and selected == self._last_selected:
                return None

            token = bind_context(topology_version=snapshot.version)
            try:
                vm = compute_view_model(snapshot, selected, self.settings)
            finally:
                log_ctx.reset(token)

            self._last_version = snapshot.version
            self._last_selected = selected
            self.latest = vm
            self.recompute_count += 1

        for listener in list(self.listeners):
            try:
                listener(vm)
            except Exception:
                logger.exception("View model listener failed")
        return vm

    # ------------------------------------------------------------------
    def _on_store_change(self, version: int) -> None:
        self.notify()

    def _fire(self) -> None:
        with self._timer_lock:
            if self._timer is threading.current_thread():
                self._timer = None
        try:
            self.tick()
        except Exception:
            logger.exception("Scheduled recompute failed")
