"""Core configuration & tunable job-orchestration rules.

All settings that may evolve (queue backend and capacity, worker pool size,
reconciliation limits, teardown wait, health thresholds) are centralized here
so they can be adjusted without diving into job logic. Values are read from
environment variables at import time; tests monkeypatch the dicts directly.
"""
from __future__ import annotations

import os


def _env_bool(name: str, default: str = "false") -> bool:
	return os.getenv(name, default).strip().lower() in ("1", "true", "yes")


# --------------------------------- Queue ---------------------------------- #
QUEUE_SETTINGS: dict[str, str | int | float | bool] = {
	# Durable Redis list vs in-process queue (deployment mode)
	"use_redis": _env_bool("QUEUE_USE_REDIS"),
	"redis_url": os.getenv("REDIS_URL", "redis://localhost:6379/0"),
	"work_queue": os.getenv("QUEUE_WORK_KEY", "sources_api_jobs"),
	# Bounded in-process queue + what to do when it is full
	"max_in_memory": int(os.getenv("QUEUE_MAX_IN_MEMORY", "5000")),
	"overflow_policy": os.getenv("QUEUE_OVERFLOW_POLICY", "block"),  # block | drop_oldest | reject
	"block_timeout": float(os.getenv("QUEUE_BLOCK_TIMEOUT", "30")),
	"warn_depth": 1000,
	# Fixed-size worker pool
	"worker_pool_size": int(os.getenv("WORKER_POOL_SIZE", "4")),
	"poll_timeout": 1.0,
	"redis_pop_timeout": 5,
	"redis_health_check_timeout": 2.0,
	# Bounded diagnostics of recent job failures
	"failure_history": 100,
}

# ---------------------------- Retry / Reconcile --------------------------- #
RETRY_CREATE_SETTINGS: dict[str, int] = {
	"retry_max": 5,
	"record_age_limit_minutes": 30,
	"interval_seconds": int(os.getenv("RETRY_CREATE_INTERVAL_SECONDS", "120")),
	# Upper bound on concurrent per-application resends in a single tick
	"resend_max_workers": int(os.getenv("RETRY_CREATE_RESEND_WORKERS", "8")),
	"authentication_limit": 100,
}

# -------------------------------- Superkey -------------------------------- #
SUPERKEY_SETTINGS: dict[str, str | int | float] = {
	"destroy_wait_seconds": 15,
	"delete_url": os.getenv(
		"SUPERKEY_DELETE_URL", "http://localhost:8001/api/sources-superkey-worker/v1/delete"
	),
	"request_timeout": float(os.getenv("SUPERKEY_REQUEST_TIMEOUT", "10")),
	"source_application_limit": 100,
	# Source.app_creation_workflow value for Superkey-managed sources
	"account_authorization_workflow": "account_authorization",
}

# --------------------------------- Events --------------------------------- #
EVENT_SETTINGS: dict[str, str | int] = {
	"stream_key": os.getenv("EVENT_STREAM_KEY", "platform.sources.event-stream"),
	"maxlen": 10000,
}

# --------------------------------- Health --------------------------------- #
HEALTH_SETTINGS: dict[str, int] = {
	"ping_interval_seconds": 30,
	"stale_after_seconds": 30,
}

__all__ = [
	"QUEUE_SETTINGS",
	"RETRY_CREATE_SETTINGS",
	"SUPERKEY_SETTINGS",
	"EVENT_SETTINGS",
	"HEALTH_SETTINGS",
]
