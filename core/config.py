# core/config.py
"""Centralized configuration for MeshScope.

Every tunable of the topology analyzer lives here, grouped per concern.
Each group reads its own environment prefix so a deployment can retune one
heuristic without touching the others.
"""

from typing import Literal

from pydantic_settings import BaseSettings


class PathSettings(BaseSettings):
    """Path enumeration budget.

    Environment variables:
        MESHSCOPE_PATHS_MAX_PATHS: paths kept per search (default: 50)
        MESHSCOPE_PATHS_MAX_DEPTH: hop limit, 0 = number of services (default: 0)
    """

    max_paths: int = 50
    max_depth: int = 0

    model_config = {"env_prefix": "MESHSCOPE_PATHS_"}


class CriticalitySettings(BaseSettings):
    """Critical path scoring.

    Environment variables:
        MESHSCOPE_CRITICALITY_GATEWAY_WEIGHT: request-rate multiplier for gateways (default: 2.0)
    """

    gateway_weight: float = 2.0

    model_config = {"env_prefix": "MESHSCOPE_CRITICALITY_"}


class SpofSettings(BaseSettings):
    """Single-point-of-failure heuristics.

    Environment variables:
        MESHSCOPE_SPOF_DATABASE_INBOUND_THRESHOLD: inbound connections above which a database is flagged (default: 2)
        MESHSCOPE_SPOF_GATEWAY_CONNECTION_THRESHOLD: total connections above which a gateway is flagged (default: 3)
        MESHSCOPE_SPOF_HIGH_TRAFFIC_RATE: request rate (req/s) counted as high traffic (default: 100)
        MESHSCOPE_SPOF_HIGH_TRAFFIC_INBOUND: inbound connections needed with high traffic (default: 1)
        MESHSCOPE_SPOF_SOLE_ROLE_CONNECTION_THRESHOLD: connections above which the only service of a role is flagged (default: 1)
    """

    database_inbound_threshold: int = 2
    gateway_connection_threshold: int = 3
    high_traffic_rate: float = 100.0
    high_traffic_inbound: int = 1
    sole_role_connection_threshold: int = 1

    model_config = {"env_prefix": "MESHSCOPE_SPOF_"}


class RenderSettings(BaseSettings):
    """Visual bucketing for the rendering surface.

    Latency thresholds are p95 upper bounds in milliseconds, error thresholds
    are percentages.
    """

    latency_heatmap: bool = False
    latency_excellent_ms: float = 50.0
    latency_good_ms: float = 100.0
    latency_moderate_ms: float = 200.0
    latency_slow_ms: float = 500.0
    base_size: float = 4.0
    scale_factor: float = 2.0
    error_rate_high: float = 5.0
    error_rate_medium: float = 1.0

    model_config = {"env_prefix": "MESHSCOPE_RENDER_"}


class SchedulerSettings(BaseSettings):
    """Recompute debouncing.

    Environment variables:
        MESHSCOPE_SCHEDULER_DEBOUNCE_SECONDS: quiet period before a recompute (default: 0.25)
    """

    debounce_seconds: float = 0.25

    model_config = {"env_prefix": "MESHSCOPE_SCHEDULER_"}


class AppSettings(BaseSettings):
    """Application-level configuration.

    `demo_feed_interval_seconds` paces the live updates pushed into the
    bootstrapped demo mesh; 0 turns the feed off.
    """

    environment: Literal["development", "staging", "production"] = "development"
    debug: bool = False
    log_level: str = "INFO"
    bootstrap_demo: bool = True
    demo_feed_interval_seconds: float = 6.0

    paths: PathSettings = PathSettings()
    criticality: CriticalitySettings = CriticalitySettings()
    spof: SpofSettings = SpofSettings()
    render: RenderSettings = RenderSettings()
    scheduler: SchedulerSettings = SchedulerSettings()

    model_config = {"env_prefix": "MESHSCOPE_"}


# Singleton instance, importable from anywhere
settings = AppSettings()
