"""Shared defaults for the engine integration."""

DEFAULT_ENGINE_URL = "http://localhost:8080/engine-rest"
DEFAULT_HTTP_TIMEOUT = 30.0

DEFAULT_EVENTS_TOPIC = "fluxnova-events"
DEFAULT_PROCESSES_TOPIC = "fluxnova-processes"

DEFAULT_WORKER_ID = "customer-service-worker"
DEFAULT_LOCK_DURATION_MS = 30000

# Failed tasks are not retried by the engine; an operator or the process
# definition decides what happens next.
FAILURE_RETRIES = 0
FAILURE_RETRY_TIMEOUT_MS = 0
