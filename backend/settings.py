import logging
import os

# Basic settings helper to read environment configuration.

logger = logging.getLogger(__name__)

FALLBACK_USER_AGENT = "food-finder/0.1 (contact: example@example.com)"


def _as_bool(val: str | None, default: bool = False) -> bool:
    if val is None:
        return default
    return val.lower() in ("1", "true", "yes", "on")


def _as_float(val: str | None, default: float) -> float:
    if val is None or not val.strip():
        return default
    try:
        return float(val)
    except ValueError:
        logger.warning("Ignoring non-numeric setting value %r; using %s", val, default)
        return default


def _as_int(val: str | None, default: int) -> int:
    return int(_as_float(val, float(default)))


class Settings:
    def __init__(self) -> None:
        # Upstream services
        self.NOMINATIM_BASE_URL: str = os.getenv(
            "NOMINATIM_BASE_URL", "https://nominatim.openstreetmap.org"
        ).rstrip("/")
        self.NOMINATIM_MIN_INTERVAL: float = _as_float(os.getenv("NOMINATIM_MIN_INTERVAL"), 1.1)
        self.NOMINATIM_REFERER: str | None = os.getenv("NOMINATIM_REFERER")
        self.OVERPASS_URL: str = os.getenv(
            "OVERPASS_URL", "https://overpass-api.de/api/interpreter"
        )
        self.OVERPASS_QUERY_TIMEOUT: int = _as_int(os.getenv("OVERPASS_QUERY_TIMEOUT"), 25)
        self.OSRM_BASE_URL: str = os.getenv(
            "OSRM_BASE_URL", "https://router.project-osrm.org"
        ).rstrip("/")
        self.HTTP_TIMEOUT_SECONDS: float = _as_float(os.getenv("HTTP_TIMEOUT_SECONDS"), 25.0)

        user_agent = os.getenv("FOOD_FINDER_USER_AGENT") or os.getenv("NOMINATIM_USER_AGENT")
        self.USER_AGENT_IS_FALLBACK: bool = user_agent is None
        self.USER_AGENT: str = user_agent or FALLBACK_USER_AGENT

        # Search behaviour
        self.SEARCH_RADIUS_M: int = _as_int(os.getenv("SEARCH_RADIUS_M"), 2000)
        self.RESULT_LIMIT: int = _as_int(os.getenv("RESULT_LIMIT"), 10)
        self.SEARCH_DEBOUNCE_SECONDS: float = _as_float(os.getenv("SEARCH_DEBOUNCE_SECONDS"), 0.5)
        self.DEVICE_LOCATION_TIMEOUT_SECONDS: float = _as_float(
            os.getenv("DEVICE_LOCATION_TIMEOUT_SECONDS"), 15.0
        )

        # Fallback origin when device location is unavailable (Kathmandu)
        self.DEFAULT_LATITUDE: float = _as_float(os.getenv("DEFAULT_LATITUDE"), 27.7172)
        self.DEFAULT_LONGITUDE: float = _as_float(os.getenv("DEFAULT_LONGITUDE"), 85.3240)
        self.DEFAULT_LOCATION_NAME: str = os.getenv("DEFAULT_LOCATION_NAME", "Kathmandu")

        self.LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()
        self.CORS_ALLOW_ORIGINS: list[str] = [
            o.strip() for o in os.getenv("CORS_ALLOW_ORIGINS", "*").split(",") if o.strip()
        ]
        self.SESSIONS_ENABLED: bool = _as_bool(os.getenv("SESSIONS_ENABLED"), True)
        # Sessions untouched for this long are closed on the next sweep (0 disables)
        self.SESSION_IDLE_TTL_SECONDS: float = _as_float(
            os.getenv("SESSION_IDLE_TTL_SECONDS"), 1800.0
        )


settings = Settings()
