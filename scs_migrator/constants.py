"""Constants shared across the Spring Cloud Services migration tool."""

# ---------------------------------------------------------------------------
# Marketplace catalog labels
# ---------------------------------------------------------------------------

# Spring Cloud Services 2.x (legacy, migration candidates)
CIRCUIT_BREAKER_V2_LABEL = "p-circuit-breaker-dashboard"
CONFIG_SERVER_V2_LABEL = "p-config-server"
SERVICE_REGISTRY_V2_LABEL = "p-service-registry"

# Spring Cloud Services 3.x (the circuit breaker dashboard has no 3.x offering)
CONFIG_SERVER_V3_LABEL = "p.config-server"
SERVICE_REGISTRY_V3_LABEL = "p.service-registry"

LEGACY_LABELS = (
    CIRCUIT_BREAKER_V2_LABEL,
    CONFIG_SERVER_V2_LABEL,
    SERVICE_REGISTRY_V2_LABEL,
)

# ---------------------------------------------------------------------------
# Console icons
# ---------------------------------------------------------------------------

ERROR_ICON = "❌"
WARNING_ICON = "⚠️"
SAFE_ICON = "✅"

# ---------------------------------------------------------------------------
# Migration sequencing
# ---------------------------------------------------------------------------

OLD_INSTANCE_SUFFIX = "-old"
RENAME_POLL_ATTEMPTS = 3
RENAME_POLL_DELAY_SECONDS = 1.0

# Last-operation states reported by the Cloud Controller
OPERATION_SUCCEEDED = "succeeded"
OPERATION_FAILED = "failed"
OPERATION_IN_PROGRESS = "in progress"

# ---------------------------------------------------------------------------
# HTTP
# ---------------------------------------------------------------------------

HTTP_OK = 200
HTTP_UNAUTHORIZED = 401
HTTP_FORBIDDEN = 403
HTTP_NOT_FOUND = 404
HTTP_RATE_LIMIT = 429
HTTP_SERVER_ERROR_MIN = 500

DEFAULT_REQUEST_TIMEOUT = 30

# UAA client used by the cf CLI for password grants
UAA_CLIENT_ID = "cf"
UAA_CLIENT_SECRET = ""
