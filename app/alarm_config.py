"""
Configuration loading and routine report history for the Daybreak app
"""

import os
import json
import logging
from typing import List, Dict, Any
from dotenv import load_dotenv

from daybreak.config import RoutineConfig, DATA_DIR

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)

METRICS_FILE = os.path.join(DATA_DIR, "metrics.json")

# Routine reports kept in the history file
MAX_METRICS = 100


def load_alarm_config() -> RoutineConfig:
    """Load configuration and make sure its data directories exist"""
    config = RoutineConfig.from_env()

    for path in (config.state_file, config.calendar.events_file):
        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)

    return config


def save_metrics(metrics: List[Dict[str, Any]], path: str = METRICS_FILE) -> None:
    """Save routine reports to file"""
    try:
        with open(path, 'w') as f:
            json.dump(metrics, f, indent=2, default=str)
        logger.info(f"Saved {len(metrics)} routine reports to {path}")
    except Exception as e:
        logger.error(f"Failed to save metrics: {e}")


def load_metrics(path: str = METRICS_FILE) -> List[Dict[str, Any]]:
    """Load routine reports from file"""
    try:
        if not os.path.exists(path):
            return []

        with open(path, 'r') as f:
            return json.load(f)
    except Exception as e:
        logger.error(f"Failed to load metrics: {e}")
        return []


def append_metrics(report: Dict[str, Any], path: str = METRICS_FILE) -> None:
    """Add one routine report, keeping the newest ``MAX_METRICS``"""
    metrics = load_metrics(path)
    metrics.append(report)
    save_metrics(metrics[-MAX_METRICS:], path)
