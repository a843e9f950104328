from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

load_dotenv()  # loads .env if present
load_dotenv(".env.local")


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return int(raw.strip())


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return float(raw.strip())


@dataclass(frozen=True)
class Settings:
    supabase_url: Optional[str] = None
    supabase_service_role_key: Optional[str] = None
    mapbox_access_token: Optional[str] = None
    apify_token: Optional[str] = None
    ticketmaster_actor_id: Optional[str] = None

    runs_dir: str = "data/runs"
    request_timeout_s: int = 30

    # Empirical ceiling hints: the search API tends to stop paginating
    # around page 6-7 / ~1200-1400 items per query.
    near_limit_page: int = 5
    near_limit_items: int = 1000

    geocoding_max_attempts: int = 3
    geocoding_backoff_s: float = 1.0
    geocoding_min_delay_s: float = 0.1

    import_time_budget_s: float = 120.0

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            supabase_url=os.getenv("SUPABASE_URL") or os.getenv("NEXT_PUBLIC_SUPABASE_URL"),
            supabase_service_role_key=(
                os.getenv("SUPABASE_SERVICE_ROLE_KEY") or os.getenv("SUPABASE_SERVICE_KEY")
            ),
            mapbox_access_token=os.getenv("MAPBOX_ACCESS_TOKEN"),
            apify_token=os.getenv("APIFY_TOKEN"),
            ticketmaster_actor_id=os.getenv("TICKETMASTER_ACTOR_ID"),
            runs_dir=os.getenv("RUNS_DIR", "data/runs"),
            request_timeout_s=_env_int("REQUEST_TIMEOUT_SECONDS", 30),
            near_limit_page=_env_int("CRAWL_NEAR_LIMIT_PAGE", 5),
            near_limit_items=_env_int("CRAWL_NEAR_LIMIT_ITEMS", 1000),
            geocoding_max_attempts=_env_int("GEOCODING_MAX_ATTEMPTS", 3),
            geocoding_backoff_s=_env_float("GEOCODING_BACKOFF_SECONDS", 1.0),
            geocoding_min_delay_s=_env_float("GEOCODING_MIN_DELAY_SECONDS", 0.1),
            import_time_budget_s=_env_float("IMPORT_TIME_BUDGET_SECONDS", 120.0),
        )

    def require(self, *fields: str) -> None:
        """
        Fail fast if any of the named settings is missing.

        Raises EnvironmentError listing every missing variable, so a
        misconfigured deployment is fixed in one pass.
        """
        missing = [f.upper() for f in fields if not getattr(self, f)]
        if missing:
            raise EnvironmentError(
                f"Missing required environment variables: {', '.join(missing)}. "
                "Copy .env.example to .env and fill in your credentials."
            )
