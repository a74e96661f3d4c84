"""Configuration management using pydantic-settings."""
from typing import List, Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # EA Pro Clubs API
    ea_base_url: str = "https://proclubs.ea.com/api"
    default_platform: str = "common-gen5"
    ea_timeout_seconds: float = 15.0

    # Optional edge relay (EA blocks most datacenter IPs)
    # Requests go to f"{ea_proxy_url}?url=<encoded EA url>" when set
    ea_proxy_url: Optional[str] = None

    # Cache settings
    cache_enabled: bool = True

    # Database
    database_url: str = "sqlite:///./proclubs.db"

    # Discord OAuth
    discord_client_id: Optional[str] = None
    discord_client_secret: Optional[str] = None
    discord_redirect_uri: str = "http://localhost:8000/api/auth/callback"

    # Sessions
    session_cookie_name: str = "proclubs_session"
    session_max_age_days: int = 30
    session_cookie_secure: bool = False

    # Rate limiting
    write_rate_limit: int = 10
    search_rate_limit: int = 30
    rate_limit_window_seconds: int = 60

    # Homepage rotation
    featured_club_ids: List[str] = []
    featured_club_count: int = 6

    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
