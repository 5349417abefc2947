# --------------------------------------------------
# SAMPLING
# --------------------------------------------------

# Minimum spacing between two published samples from the same device
SAMPLER_MIN_INTERVAL_SECONDS = 5.0

# Re-publish the last fix this often while the device is still, so the record
# stays newer than PRESENCE_STALE_AFTER_SECONDS. None disables it.
SAMPLER_HEARTBEAT_SECONDS: float | None = 60.0

# --------------------------------------------------
# PRESENCE
# --------------------------------------------------

# Records older than this are hidden by consumers (never deleted server side).
# None disables the filter.
PRESENCE_STALE_AFTER_SECONDS: float | None = 300.0

# --------------------------------------------------
# RECONCILIATION
# --------------------------------------------------

# Safety-net resync while the change feed is healthy
PRESENCE_FALLBACK_POLL_SECONDS = 30.0

# Resync interval while the change feed is down
PRESENCE_DEGRADED_POLL_SECONDS = 5.0

# --------------------------------------------------
# RETRY / BACKOFF
# --------------------------------------------------

FETCH_MAX_ATTEMPTS = 3
BACKOFF_BASE_SECONDS = 0.5
BACKOFF_MAX_SECONDS = 30.0

# --------------------------------------------------
# VALIDATION
# --------------------------------------------------

LOCATION_NAME_MAX = 100
LOCATION_DESCRIPTION_MAX = 500
DISPLAY_NAME_MAX = 100
