"""FitRank ELO Configuration Settings"""
from pathlib import Path
from dotenv import load_dotenv
import os

# Load environment variables
load_dotenv()

# Project Info
PROJECT_NAME = "FitRank ELO"
VERSION = "1.3.0"

# Paths
BASE_DIR = Path(__file__).resolve().parent.parent

# Database
# Environment detection: local vs production
USE_LOCAL_SUPABASE = os.getenv("USE_LOCAL_SUPABASE", "false").lower() == "true"

if USE_LOCAL_SUPABASE:
    # Local Supabase instance (for development/testing)
    SUPABASE_URL = os.getenv("SUPABASE_URL", "http://localhost:54321")
    SUPABASE_KEY = os.getenv("SUPABASE_KEY")
    SUPABASE_SERVICE_ROLE_KEY = os.getenv("SUPABASE_SERVICE_ROLE_KEY")
else:
    # Production Supabase instance
    SUPABASE_URL = os.getenv("SUPABASE_URL")
    SUPABASE_KEY = os.getenv("SUPABASE_KEY")
    SUPABASE_SERVICE_ROLE_KEY = os.getenv("SUPABASE_SERVICE_ROLE_KEY")

# ELO Recompute Configuration (aligned with src.elo.recompute.RecomputeOptions)
ELO_CONFIG = {
    # Rolling window for eligible entries and population members
    'rolling_days': int(os.getenv("ELO_ROLLING_DAYS", 180)),  # RecomputeOptions.rolling_days
    'weight_strategy': os.getenv("WEIGHT_STRATEGY", "equal"),  # "equal" or "metric_weight"
    'enable_adjustments': os.getenv("ELO_ENABLE_ADJUSTMENTS", "true").lower() in ("true", "1", "yes"),

    # Population sampling
    'min_population_size': int(os.getenv("ELO_MIN_POPULATION_SIZE", 10)),  # RecomputeOptions.min_population_size
    'initial_filter_width': float(os.getenv("ELO_INITIAL_FILTER_WIDTH", 0.10)),  # ±10% bodyweight band
    'max_filter_attempts': int(os.getenv("ELO_MAX_FILTER_ATTEMPTS", 3)),  # band doubles per attempt

    # Event ledger
    'event_change_threshold': float(os.getenv("ELO_EVENT_CHANGE_THRESHOLD", 0.01)),
    'event_retention_days': int(os.getenv("ELO_EVENT_RETENTION_DAYS", 365)),

    # Enrollment baselines (onboarding)
    'base_enrollment_elo': float(os.getenv("ELO_BASE_ENROLLMENT", 1000)),
    'primary_enrollment_elo': float(os.getenv("ELO_PRIMARY_ENROLLMENT", 1100)),
}

# Data Adapter Configuration (Supabase table names)
ELO_TABLES = {
    'ratings': 'user_class_elos',
    'users': 'users',
    'measurement_types': 'metrics',
    'entries': 'user_metric_entries',
    'events': 'elo_events',
}

# Supabase caps `in_` filters by URL length
DATA_ADAPTER_CONFIG = {
    'in_batch_size': 150,
    'page_size': 1000,
}

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
DEBUG_MODE = os.getenv("DEBUG_MODE", "false").lower() == "true"
