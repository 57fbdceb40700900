import os

# Database Configuration
# Required: the services refuse to start without it (see require_settings)
DB_URL = os.getenv("DATABASE_URL")

# Application Metadata
PROJECT_NAME = "Commerce Webhook Service"
VERSION = "1.0.0"

# Shared secret for the on-demand dispatcher endpoint (x-webhook-secret header)
WEBHOOK_SECRET = os.getenv("WEBHOOK_SECRET")

# CRM (contact notes)
CRM_API_TOKEN = os.getenv("CRM_API_TOKEN")
CRM_API_BASE_URL = os.getenv("CRM_API_BASE_URL", "https://services.leadconnectorhq.com")
CRM_API_VERSION = "2021-07-28"

# Webhook Sweeper Configuration
SWEEP_INTERVAL = int(os.getenv("SWEEP_INTERVAL", 60)) # Sweeper checks the queue every N seconds
MAX_ATTEMPTS = int(os.getenv("MAX_ATTEMPTS", 3)) # Failed passes before a task is marked failed
BATCH_SIZE = int(os.getenv("BATCH_SIZE", 10)) # How many tasks to fetch per sweep
DELIVERY_TIMEOUT = float(os.getenv("DELIVERY_TIMEOUT", 15)) # Seconds per outbound POST
CLAIM_LEASE_SECONDS = int(os.getenv("CLAIM_LEASE_SECONDS", 300)) # In-flight claims older than this are released
RESPONSE_BODY_LIMIT = int(os.getenv("RESPONSE_BODY_LIMIT", 2000)) # Characters of receiver body kept in the log


class ConfigurationError(RuntimeError):
    """Raised at startup when a required setting is missing."""


def require_settings(*names: str) -> None:
    """
    Fails fast if any of the named settings in this module is empty.
    Called from process entry points before anything starts serving.
    """
    missing = [name for name in names if not globals().get(name)]
    if missing:
        raise ConfigurationError(f"Missing required configuration: {', '.join(missing)}")
