"""
Configuration module for the journey dispatcher tool.

This module contains the configurable parameters of the command line tool and
the helper utilities: logging, timezone of the dispatch site, geocoding and
output settings. The routing engine itself reads none of these; it only sees
the RoutingRequest it is given.

Config to change: SITE_TIMEZONE, GEOCODING_REGION, OUTPUT_FILE, LOG_LEVEL
"""

import os
import sys
from typing import Dict, Any

import pytz


# ============================================================================
# SITE SETTINGS
# ============================================================================

# Timezone used to interpret scheduled times given without a UTC offset
SITE_TIMEZONE = "Europe/Dublin"


# ============================================================================
# GEOCODING SETTINGS
# ============================================================================

# Google Maps API key (read from the environment, never committed)
GOOGLE_MAPS_API_KEY = os.environ.get("GOOGLE_MAPS_API_KEY", "")

# Region bias for geocoding queries (ccTLD code)
GEOCODING_REGION = "ie"

# Delay between geocoding calls, in seconds
GEOCODING_DELAY = 0.2


# ============================================================================
# OUTPUT SETTINGS
# ============================================================================

# Where the CLI writes the computed payload (None = stdout)
OUTPUT_FILE = None

# Name of the log file (None = console only)
LOG_FILE = None

# Logging level: DEBUG, INFO, WARNING, ERROR, CRITICAL
LOG_LEVEL = "INFO"


# ============================================================================
# UTILITY FUNCTIONS
# ============================================================================

def get_config() -> Dict[str, Any]:
    """
    Package all configuration parameters into a dictionary.

    Returns:
        Dict[str, Any]: Dictionary containing all configuration parameters
    """
    return {
        # Site settings
        "site_timezone": SITE_TIMEZONE,

        # Geocoding settings
        "google_maps_api_key": GOOGLE_MAPS_API_KEY,
        "geocoding_region": GEOCODING_REGION,
        "geocoding_delay": GEOCODING_DELAY,

        # Output settings
        "output_file": OUTPUT_FILE,
        "log_file": LOG_FILE,
        "log_level": LOG_LEVEL,
    }


def validate_config(config_dict: Dict[str, Any] = None) -> bool:
    """
    Validate configuration parameters.

    Checks:
    - The site timezone is a known tz database name
    - The log level is valid
    - The geocoding delay is non-negative

    Args:
        config_dict: Configuration to check (defaults to get_config())

    Returns:
        bool: True if configuration is valid, False otherwise
    """
    config_dict = config_dict if config_dict is not None else get_config()
    valid = True

    if config_dict["site_timezone"] not in pytz.all_timezones_set:
        print(f"Error: Unknown site timezone: {config_dict['site_timezone']}", file=sys.stderr)
        valid = False

    valid_log_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
    if config_dict["log_level"] not in valid_log_levels:
        print(f"Error: Invalid LOG_LEVEL: {config_dict['log_level']} (must be one of {valid_log_levels})", file=sys.stderr)
        valid = False

    if config_dict["geocoding_delay"] < 0:
        print("Error: GEOCODING_DELAY must be non-negative", file=sys.stderr)
        valid = False

    return valid
