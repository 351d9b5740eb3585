from prometheus_client import CollectorRegistry, Counter, Gauge

# Own registry so importing the app twice (tests, reloads) does not trip over
# duplicated default-registry collectors, and process collectors stay out.
REGISTRY = CollectorRegistry(auto_describe=True)

TOTAL_REQUESTS_SERVED = Counter(
    "klocc_total_requests_served",
    "Total number of requests served at /api/jobs endpoint",
    registry=REGISTRY,
)

TOTAL_REPOSITORIES_SERVED = Counter(
    "klocc_total_repositories_served",
    "Total number of repositories processed and analyzed",
    registry=REGISTRY,
)

JOB_OUTCOMES = Counter(
    "klocc_job_outcomes",
    "Job results by outcome code",
    ["outcome"],
    registry=REGISTRY,
)

CACHED_REPOSITORIES = Gauge(
    "klocc_cached_repositories",
    "Number of repositories currently held in the analysis cache",
    registry=REGISTRY,
)

INFLIGHT_ANALYSES = Gauge(
    "klocc_inflight_analyses",
    "Number of clone-and-count operations currently running",
    registry=REGISTRY,
)
