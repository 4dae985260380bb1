"""Default acceptance thresholds."""

DEFAULT_ACTIVITY_TYPE = "Run"
DEFAULT_DISTANCE_TOLERANCE = 0.0  # meters

# Plausibility filter
MAX_AVERAGE_SPEED = 10.0  # m/s, > 36 km/h is unrealistic for running
MAX_ACTIVITY_DISTANCE = 100_000.0  # meters

# Timestamp stage classifications
TOO_EARLY = "too_early"
TOO_LATE = "too_late"
ON_TIME = "valid"

# Challenge windows must fit in datetime (9999-12-31T23:59:59Z)
MAX_TIMESTAMP = 253_402_300_799
