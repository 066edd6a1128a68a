"""
Position estimator runtime configuration.
"""

# Estimator parameters (see dr_core.localization.PositionEstimatorConfig)
ESTIMATOR_CONFIG = {
    "buffer_capacity": 50000,         # max samples kept in history
    "estimation_span_m": 500.0,       # traveled distance covered by the window (m)
    "speed_threshold_m_s": 10 / 3.6,  # min speed for anchors and estimation (m/s)
    "outlier_threshold_m": 3.0,       # max anchor residual after alignment (m)
    "giveup_fraction": 1 / 100,       # give up below this share of moving samples
    "min_anchor_fraction": 1 / 20 / 2.5,  # need more anchors than this share
    "gnss_decimation": 10,            # align on every 10th fresh GNSS fix
    "imu_rate_hz": 100.0,             # velocity event rate (Hz)
    "estimation_rate_hz": 50.0,       # processed tick rate (Hz)
}

# Output configuration
OUTPUT_CONFIG = {
    "enable_console_print": True,     # print estimates to the console
    "print_interval": 50,             # print every 50th processed tick
    "print_metrics_summary": True,    # print metrics when the replay ends
}

# Logging configuration
LOGGING_CONFIG = {
    "level": "INFO",
    "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
}
