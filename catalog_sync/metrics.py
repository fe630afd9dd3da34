"""Prometheus metrics for reconciliation runs."""

from prometheus_client import REGISTRY, Counter, Histogram, Info, write_to_textfile

# Application info
app_info = Info("catalog_sync", "Catalog price/stock reconciler info")
app_info.info({"version": "0.1.0", "name": "catalog-sync"})

# Fetch metrics
page_fetches_total = Counter(
    "catalog_sync_page_fetches_total",
    "Total number of vendor page fetches",
    ["status"],
)

page_fetch_duration_seconds = Histogram(
    "catalog_sync_page_fetch_duration_seconds",
    "Time spent fetching vendor pages",
    buckets=[0.1, 0.25, 0.5, 1.0, 2.0, 5.0, 10.0, 15.0],
)

# Discovery metrics
discovery_attempts_total = Counter(
    "catalog_sync_discovery_attempts_total",
    "Discovery strategies attempted",
    ["strategy"],
)

discovery_hits_total = Counter(
    "catalog_sync_discovery_hits_total",
    "Products located, by the strategy that located them",
    ["strategy"],
)

# Outcome metrics
reconcile_outcomes_total = Counter(
    "catalog_sync_outcomes_total",
    "Reconciliation outcomes by classification",
    ["status"],
)

storage_updates_total = Counter(
    "catalog_sync_storage_updates_total",
    "Product rows written back to storage",
    ["status"],
)

run_duration_seconds = Histogram(
    "catalog_sync_run_duration_seconds",
    "Wall time of a reconciliation run",
    buckets=[10, 30, 60, 120, 300, 600, 1800, 3600],
)


def record_fetch(status: str, duration: float):
    """Record a page fetch; status is "ok" or a fetch error kind."""
    page_fetches_total.labels(status=status).inc()
    page_fetch_duration_seconds.observe(duration)


def record_discovery_attempt(strategy: str):
    """Record a discovery strategy being tried."""
    discovery_attempts_total.labels(strategy=strategy).inc()


def record_discovery_hit(strategy: str):
    """Record a discovery strategy producing a verified URL."""
    discovery_hits_total.labels(strategy=strategy).inc()


def record_outcome(status: str):
    """Record one product outcome."""
    reconcile_outcomes_total.labels(status=status).inc()


def record_storage_update(success: bool):
    """Record a storage write."""
    status = "success" if success else "error"
    storage_updates_total.labels(status=status).inc()


def record_run(duration: float):
    """Record a completed run."""
    run_duration_seconds.observe(duration)


def write_metrics_file(path: str):
    """Write the registry in text exposition format (node-exporter textfile collector)."""
    write_to_textfile(path, REGISTRY)
