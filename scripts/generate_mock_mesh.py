#!/usr/bin/env python3
# scripts/generate_mock_mesh.py
# Demo service-mesh topology generator (JSON, feed payload shape)
#
# Usage:
#   python scripts/generate_mock_mesh.py --output data/mock_mesh.json --seed 42

import argparse
import json
import os
import random
from datetime import datetime, timedelta, timezone

# ---------------------------------------------------------------------------
# Services: (name, namespace, role)
# ---------------------------------------------------------------------------
SERVICES = [
    ("web-frontend",   "web",      "frontend"),
    ("admin-ui",       "web",      "frontend"),
    ("nginx-ingress",  "ingress",  "gateway"),
    ("api-gateway",    "ingress",  "gateway"),
    ("api-service",    "apps",     "backend"),
    ("order-service",  "apps",     "backend"),
    ("auth-service",   "apps",     "backend"),
    ("envoy-sidecar",  "apps",     "sidecar"),
    ("redis",          "data",     "cache"),
    ("postgres",       "data",     "database"),
    ("orders-db",      "data",     "database"),
]

# ---------------------------------------------------------------------------
# Connections: (source, target, protocol)
# ---------------------------------------------------------------------------
CONNECTIONS = [
    ("web-frontend",  "nginx-ingress", "HTTP"),
    ("admin-ui",      "api-gateway",   "HTTP"),
    ("nginx-ingress", "api-service",   "HTTP"),
    ("nginx-ingress", "order-service", "HTTP"),
    ("api-gateway",   "api-service",   "gRPC"),
    ("api-gateway",   "auth-service",  "gRPC"),
    ("api-service",   "auth-service",  "gRPC"),
    ("api-service",   "redis",         "TCP"),
    ("api-service",   "postgres",      "TCP"),
    ("order-service", "orders-db",     "TCP"),
    ("order-service", "postgres",      "TCP"),
    ("auth-service",  "postgres",      "TCP"),
    ("order-service", "envoy-sidecar", "gRPC"),
]

# Metric ranges by role: (request_rate, error_rate %, p50, p95, p99)
ROLE_PROFILES = {
    "frontend": ((50, 250),   (0.5, 2.5),  (20, 50), (100, 200), (200, 400)),
    "backend":  ((100, 600),  (0.2, 1.7),  (10, 30), (50, 130),  (150, 300)),
    "database": ((200, 1000), (0.1, 0.6),  (2, 10),  (20, 50),   (50, 100)),
    "cache":    ((500, 1500), (0.05, 0.25), (1, 4),  (5, 15),    (15, 30)),
    "gateway":  ((300, 1000), (1.0, 4.0),  (5, 20),  (30, 80),   (100, 200)),
    "sidecar":  ((100, 400),  (0.1, 0.5),  (1, 3),   (3, 8),     (8, 15)),
}


def _service_id(name: str, namespace: str) -> str:
    return f"{namespace}-{name}"


def _uniform(rng: random.Random, bounds: tuple[float, float], ndigits: int = 2) -> float:
    return round(rng.uniform(*bounds), ndigits)


def _service(rng: random.Random, name: str, namespace: str, role: str, now: datetime) -> dict:
    rate_b, err_b, p50_b, p95_b, p99_b = ROLE_PROFILES[role]
    error_rate = _uniform(rng, err_b)
    p95 = _uniform(rng, p95_b, 1)

    if error_rate > 5:
        breaker = "open"
    elif error_rate > 2:
        breaker = "half-open" if rng.random() > 0.7 else "closed"
    else:
        breaker = "closed"

    if breaker == "open" or error_rate > 5:
        status = "error"
    elif error_rate > 2 or p95 > 200:
        status = "warning"
    else:
        status = "unknown" if rng.random() > 0.95 else "healthy"

    last_tripped = None
    if breaker != "closed":
        last_tripped = (now - timedelta(seconds=rng.uniform(0, 3600))).isoformat()

    return {
        "id": _service_id(name, namespace),
        "name": name,
        "namespace": namespace,
        "version": f"v{rng.randint(1, 3)}.{rng.randint(0, 9)}.{rng.randint(0, 9)}",
        "type": role,
        "status": status,
        "instances": rng.randint(1, 8),
        "metrics": {
            "requestRate": _uniform(rng, rate_b),
            "errorRate": error_rate,
            "latency": {"p50": _uniform(rng, p50_b, 1), "p95": p95, "p99": _uniform(rng, p99_b, 1)},
        },
        "circuitBreaker": {
            "status": breaker,
            "failureThreshold": rng.randint(50, 99),
            "timeout": rng.randint(5000, 30000),
            "lastTripped": last_tripped,
        },
    }


def _connection(rng: random.Random, source: str, target: str, protocol: str) -> dict:
    mtls = rng.random() > 0.4
    return {
        "source": source,
        "target": target,
        "protocol": protocol,
        "security": {"encrypted": mtls or rng.random() > 0.3, "mTLS": mtls},
        "metrics": {
            "requestRate": _uniform(rng, (10, 400)),
            "errorRate": _uniform(rng, (0.0, 7.0)),
            "latency": _uniform(rng, (1, 120), 1),
        },
    }


def generate_mesh(seed: int | None = None, now: datetime | None = None) -> dict:
    """Full topology payload: {"services": [...], "connections": [...], "timestamp": ...}."""
    rng = random.Random(seed)
    now = now or datetime.now(timezone.utc)
    ids = {name: _service_id(name, ns) for name, ns, _ in SERVICES}
    return {
        "services": [_service(rng, name, ns, role, now) for name, ns, role in SERVICES],
        "connections": [_connection(rng, ids[src], ids[dst], proto) for src, dst, proto in CONNECTIONS],
        "timestamp": now.isoformat(),
    }


def generate_service_update(mesh: dict, seed: int | None = None) -> dict:
    """One live update for a random existing service, in the publisher's shape."""
    rng = random.Random(seed)
    service = rng.choice(mesh["services"])
    return {
        "serviceId": service["id"],
        "status": rng.choice(["healthy", "warning", "error"]),
        "metrics": {
            "requestRate": rng.randint(50, 250),
            "errorRate": round(rng.random() * 5, 2),
            "latency": {"p95": rng.randint(50, 200)},
        },
        "circuitBreakerStatus": rng.choice(["closed", "open", "half-open"]),
    }


def main():
    parser = argparse.ArgumentParser(description="Generate a demo service-mesh topology (JSON)")
    parser.add_argument("--output", type=str, default="data/mock_mesh.json",
                        help="Output file (default: data/mock_mesh.json)")
    parser.add_argument("--seed", type=int, default=None, help="Random seed for reproducible output")
    args = parser.parse_args()

    out_dir = os.path.dirname(args.output)
    if out_dir:
        os.makedirs(out_dir, exist_ok=True)

    mesh = generate_mesh(args.seed)
    with open(args.output, "w", encoding="utf-8") as f:
        json.dump(mesh, f, indent=2)

    print(f"Wrote {len(mesh['services'])} services, {len(mesh['connections'])} connections to {args.output}")
    for conn in mesh["connections"]:
        print(f"    {conn['source']:24s} → {conn['target']:24s}  {conn['protocol']:5s} "
              f"{conn['metrics']['requestRate']:7.2f} rps")


if __name__ == "__main__":
    main()
