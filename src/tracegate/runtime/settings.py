"""
TraceGate settings (shared configuration schema).

This module defines the configuration dataclasses used by:
- the event channel (queue bound, flush barrier wait)
- the HTTP workload driver (target service, id domain)
- the harness (warm-up / measurement iteration counts, logging)

"""

import os
from dataclasses import dataclass, field
from typing import Optional


@dataclass(frozen=True)
class ChannelSettings:
    """Event channel configuration."""

    queue_size: int = 65536
    # None waits for the barrier without bound
    flush_timeout_sec: Optional[float] = None
    max_buffered_events: int = 1_000_000


@dataclass(frozen=True)
class WorkloadSettings:
    """
    Target service configuration.

    Notes:
    - Each unit of work is `GET {base_url}/{path}/{path_prefix}{id}`.
    - `id_min`/`id_max` bound the randomized input domain (inclusive).
    """

    base_url: str = "http://localhost:8081"
    path: str = "todo"
    path_prefix: str = ""
    id_min: int = 1
    id_max: int = 20
    timeout_sec: float = 10.0
    expected_status: int = 200
    headers: dict = field(
        default_factory=lambda: {"Content-Type": "application/json"}
    )


@dataclass(frozen=True)
class HarnessSettings:
    """
    High-level harness settings.

    Notes:
    - `warmup_iterations` units are executed and discarded before measuring.
    - `capture_during_warmup` keeps sources enabled while warming up; the
      buffer is reset before measuring either way.
    - `progress_interval` logs progress every N units (0 disables).
    """

    warmup_iterations: int = 20_000
    iterations: int = 10_000
    seed: Optional[int] = None
    capture_during_warmup: bool = False
    progress_interval: int = 1_000
    logs_dir: str = "./logs"
    enable_logging: bool = False
    session_id: str = ""
    channel: ChannelSettings = ChannelSettings()
    workload: WorkloadSettings = WorkloadSettings()


def _opt_float(value: Optional[str]) -> Optional[float]:
    if value is None or value == "":
        return None
    return float(value)


def _opt_int(value: Optional[str]) -> Optional[int]:
    if value is None or value == "":
        return None
    return int(value)


def read_tracegate_env() -> HarnessSettings:
    """
    Read TraceGate configuration from environment variables.

    Unset variables fall back to the dataclass defaults.
    """
    env = os.environ
    channel = ChannelSettings(
        queue_size=int(env.get("TRACEGATE_QUEUE_SIZE", "65536")),
        flush_timeout_sec=_opt_float(env.get("TRACEGATE_FLUSH_TIMEOUT")),
        max_buffered_events=int(
            env.get("TRACEGATE_MAX_BUFFERED_EVENTS", "1000000")
        ),
    )
    workload = WorkloadSettings(
        base_url=env.get("TRACEGATE_BASE_URL", "http://localhost:8081"),
        path=env.get("TRACEGATE_PATH", "todo"),
        path_prefix=env.get("TRACEGATE_PATH_PREFIX", ""),
        id_min=int(env.get("TRACEGATE_ID_MIN", "1")),
        id_max=int(env.get("TRACEGATE_ID_MAX", "20")),
        timeout_sec=float(env.get("TRACEGATE_TIMEOUT", "10.0")),
        expected_status=int(env.get("TRACEGATE_EXPECTED_STATUS", "200")),
    )
    return HarnessSettings(
        warmup_iterations=int(env.get("TRACEGATE_WARMUP_ITERATIONS", "20000")),
        iterations=int(env.get("TRACEGATE_ITERATIONS", "10000")),
        seed=_opt_int(env.get("TRACEGATE_SEED")),
        capture_during_warmup=env.get("TRACEGATE_CAPTURE_WARMUP", "") == "1",
        progress_interval=int(env.get("TRACEGATE_PROGRESS_INTERVAL", "1000")),
        logs_dir=env.get("TRACEGATE_LOGS_DIR", "./logs"),
        enable_logging=env.get("TRACEGATE_ENABLE_LOGGING", "") == "1",
        session_id=env.get("TRACEGATE_SESSION_ID", ""),
        channel=channel,
        workload=workload,
    )
