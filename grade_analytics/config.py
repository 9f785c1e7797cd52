"""Environment-driven configuration for the grade analytics engine."""

import os
from typing import Dict

from dotenv import load_dotenv

# Load environment variables
load_dotenv()


def parse_thresholds(value: str) -> Dict[str, float]:
    """
    Parse a threshold string like 'high:65,medium:80' into a dict.

    Args:
        value: Comma-separated name:number pairs

    Returns:
        Dict mapping threshold names to floats
    """
    thresholds = {}
    for item in value.split(','):
        if not item.strip():
            continue
        key, number = item.split(':')
        thresholds[key.strip()] = float(number.strip())
    return thresholds


# Risk classification (predicted grade boundaries, in percent)
RISK_THRESHOLDS = parse_thresholds(os.getenv('RISK_THRESHOLDS', 'high:65,medium:80'))
HIGH_RISK_GRADE = RISK_THRESHOLDS.get('high', 65.0)
MEDIUM_RISK_GRADE = RISK_THRESHOLDS.get('medium', 80.0)

# Trend classification (percentage points per assignment)
TREND_THRESHOLDS = parse_thresholds(os.getenv('TREND_THRESHOLDS', 'steep:-5,decline:-1'))
STEEP_DECLINE_SLOPE = TREND_THRESHOLDS.get('steep', -5.0)
DECLINE_SLOPE = TREND_THRESHOLDS.get('decline', -1.0)

# Grade-history variance at which confidence drops to 50
CONFIDENCE_VARIANCE_SCALE = float(os.getenv('CONFIDENCE_VARIANCE_SCALE', '25'))

# Distribution settings
HISTOGRAM_BIN_COUNT = int(os.getenv('HISTOGRAM_BIN_COUNT', '10'))
MIN_BIN_WIDTH = float(os.getenv('MIN_BIN_WIDTH', '1.0'))
OUTLIER_FENCE_MULTIPLIER = float(os.getenv('OUTLIER_FENCE_MULTIPLIER', '1.5'))

# Service settings
MAX_UPLOAD_SIZE_MB = int(os.getenv('MAX_UPLOAD_SIZE_MB', '10'))
MAX_UPLOAD_SIZE = MAX_UPLOAD_SIZE_MB * 1024 * 1024
ALLOW_ORIGINS = os.getenv('ALLOW_ORIGINS', '*').split(',')
DEBUG = os.getenv('DEBUG', 'False').lower() == 'true'
