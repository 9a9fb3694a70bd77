"""
Geolocation signal core configuration.
"""

# Reading gate pipeline and liveness
FILTER_CONFIG = {
    "ema_alpha": 0.15,                   # EMA factor (0 = ignore new, 1 = no smoothing)
    "max_acceptable_accuracy_m": 100.0,  # Drop readings worse than this once a baseline exists
    "stationary_speed_m_s": 0.3,         # Reported speed below this counts as stationary
    "snap_after_stable_count": 3,        # Stationary readings before freezing the position
    "min_movement_m": 5.0,               # Smoothed movement needed to publish
    "staleness_timeout_s": 30.0,         # Silence before the signal is flagged stale
}

# Continuous watch (platform options)
WATCH_CONFIG = {
    "high_accuracy": True,
    "max_cached_age_ms": 5000,           # Slightly cached fixes are fine for the watch
    "timeout_ms": 20000,
}

# One-shot recalibration (platform options)
RECALIBRATE_CONFIG = {
    "high_accuracy": True,
    "max_cached_age_ms": 0,              # Never a cached fix
    "timeout_ms": 20000,
}

# Track replay
REPLAY_CONFIG = {
    "tail_s": 35.0,                      # Virtual time to run on after the last event
    "print_states": True,                # Print every public state change
}

# Logging
LOGGING_CONFIG = {
    "level": "INFO",
    "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
}
