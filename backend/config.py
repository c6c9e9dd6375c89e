"""
config.py
---------
Central configuration for the itinerary construction pipeline.
Every tunable threshold is read from the environment with a typed default;
secrets are never hard-coded.
"""

import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from the backend directory (if it exists) so env vars in that file
# are picked up by os.getenv() below.
_env_path = Path(__file__).parent / ".env"
if _env_path.exists():
    load_dotenv(_env_path, override=True)


def _flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes")


# ── LLM (day theming) ────────────────────────────────────────────────────────
# The theming pass is cosmetic. With USE_STUB_LLM=true no API call is made and
# the deterministic plan is used.
USE_STUB_LLM: bool = _flag("USE_STUB_LLM", "true")
LLM_MODEL_NAME: str = os.getenv("LLM_MODEL_NAME", "gemini-1.5-flash")
LLM_API_KEY: str = os.getenv("GEMINI_API_KEY", "")
LLM_TIMEOUT_SECONDS: float = float(os.getenv("LLM_TIMEOUT_SECONDS", "30"))

# ── Fetch collaborator ───────────────────────────────────────────────────────
FETCH_TIMEOUT_SECONDS: float = float(os.getenv("FETCH_TIMEOUT_SECONDS", "25"))
FETCH_MAX_WORKERS: int = int(os.getenv("FETCH_MAX_WORKERS", "8"))
HTTP_REQUEST_TIMEOUT: int = int(os.getenv("HTTP_REQUEST_TIMEOUT", "10"))
GEOCODER_URL: str = os.getenv("GEOCODER_URL", "https://nominatim.openstreetmap.org/search")
GEOCODER_USER_AGENT: str = os.getenv("GEOCODER_USER_AGENT", "itinerary-pipeline/1.0")

# ── Candidate pool ───────────────────────────────────────────────────────────
DEDUP_RADIUS_KM: float = float(os.getenv("DEDUP_RADIUS_KM", "0.1"))        # 100 m
MUST_SEE_BONUS: float = 100.0
FAR_ACTIVITY_KM: float = float(os.getenv("FAR_ACTIVITY_KM", "30"))
SHORT_TRIP_DAYS: int = 3
CONTEXT_FIT_BOUND: float = 6.0
PREFERENCE_DEPTH_BOUND: float = 4.0
STREET_FOOD_MAX_COST: float = 15.0
UNBOOKABLE_COST_CAP: float = 15.0
UNBOOKABLE_COST_THRESHOLD: float = 30.0
DEFAULT_MIN_DURATION_MIN: int = 30

# ── Day clusterer ────────────────────────────────────────────────────────────
KMEANS_ITERATIONS: int = int(os.getenv("KMEANS_ITERATIONS", "20"))
CLUSTER_DAY_TRIP_KM: float = float(os.getenv("CLUSTER_DAY_TRIP_KM", "30"))

# ── Capacity rebalancer (all durations in minutes unless named _HOURS) ───────
DAY_START_HOUR: float = 9.0
DAY_END_HOUR: float = 22.0
BASELINE_DAY_HOURS: float = 12.0
DAY_TRIP_HOURS: float = 12.0
DAY_TRIP_THRESHOLD_KM: float = float(os.getenv("DAY_TRIP_THRESHOLD_KM", "20"))
MEAL_OVERHEAD_MIN: int = 180
TRAVEL_OVERHEAD_MIN: int = 30
DEFAULT_ACTIVITY_MIN: int = 60
HEAVY_ACTIVITY_MIN: int = 90
MAX_HEAVY_PER_DAY: int = 2
PHASE_ITERATION_CAP: int = int(os.getenv("PHASE_ITERATION_CAP", "20"))
OUTDOOR_LATE_START_HOUR: float = 14.0
ARRIVAL_BUFFER_FLIGHT_HOURS: float = 1.5
ARRIVAL_BUFFER_GROUND_HOURS: float = 0.5
DEPARTURE_BUFFER_FLIGHT_HOURS: float = 3.0
DEPARTURE_BUFFER_GROUND_HOURS: float = 1.0
DEPARTURE_DAY_START_HOUR: float = 8.0

# ── Meal assigner ────────────────────────────────────────────────────────────
# (ideal, hard, absolute) radius per meal type, km
MEAL_RADIUS_KM: dict[str, tuple[float, float, float]] = {
    "breakfast": (0.5, 0.8, 1.2),
    "lunch":     (0.6, 0.9, 1.2),
    "dinner":    (0.6, 0.9, 1.2),
}
MEAL_MIN_CANDIDATES: int = 3
MEAL_BUDGET_MIN_POOL: int = 4
DINNER_LAST_ACTIVITY_WEIGHT: float = 0.8       # remainder goes to the hotel
BREAKFAST_FRIENDLY_BONUS: float = 3.0

# ── Hotel selector ───────────────────────────────────────────────────────────
HOTEL_BUDGET_TOLERANCE: float = 1.3
HOTEL_MIN_CANDIDATES: int = 3
HOTEL_RELAXED_POOL_SIZE: int = 10
HOTEL_DISTANCE_BANDS_KM: tuple[float, ...] = (5.0, 8.0, 12.0)
HOTEL_DISTANCE_EXPONENT: float = 2.15
HOTEL_OVER_BUDGET_WEIGHT: float = 4.0
HOTEL_MAX_PER_NIGHT: dict[str, float] = {
    "economic": 60.0,
    "moderate": 120.0,
    "comfort":  250.0,
    "luxury":   1000.0,
}
HOTEL_DEFAULT_MAX_PER_NIGHT: float = 150.0

# ── Observability ────────────────────────────────────────────────────────────
STRUCTURED_LOG_ENABLED: bool = _flag("STRUCTURED_LOG_ENABLED", "true")
LOGS_DIR: str = os.getenv("LOGS_DIR", str(Path(__file__).parent / "logs"))
LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

# ── HTTP API ─────────────────────────────────────────────────────────────────
API_HOST: str = os.getenv("API_HOST", "0.0.0.0")
API_PORT: int = int(os.getenv("API_PORT", "8000"))
CORS_ORIGINS: list[str] = [
    o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()
]
