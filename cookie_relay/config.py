import os
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

# Project root, where the .env file lives
ROOT_DIR = Path(__file__).parent.parent

# Values shipped in .env.example that mean "not configured yet"
_PLACEHOLDERS = {
    'your_supabase_url_here',
    'your_service_role_key_here',
    'your_jwt_secret_here',
}

EXTENSION_ORIGIN_REGEX = r"chrome-extension:\/\/[a-z]+"


def _env_str(name: str, default: Optional[str] = None) -> Optional[str]:
    value = os.getenv(name)
    if not value or value in _PLACEHOLDERS:
        return default
    return value


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, default))
    except ValueError:
        logger.warning(f"{name} is not an integer, using default {default}")
        return default


def _env_float(name: str) -> Optional[float]:
    value = os.getenv(name)
    if not value:
        return None
    try:
        parsed = float(value)
    except ValueError:
        logger.warning(f"{name} is not a number, ignoring it")
        return None
    return parsed if parsed > 0 else None


@dataclass
class Settings:
    supabase_url: Optional[str] = None
    supabase_service_role_key: Optional[str] = None
    jwt_secret: Optional[str] = None
    app_env: str = 'development'
    allowed_origins: List[str] = field(default_factory=list)
    rate_limit_max: int = 100
    rate_limit_window_seconds: int = 15 * 60
    sync_domain_timeout_seconds: Optional[float] = None
    max_body_bytes: int = 10 * 1024 * 1024
    cookie_records_table: str = 'cookie_records'
    domain_index_table: str = 'user_domains'
    profiles_table: str = 'profiles'
    log_level: str = 'INFO'
    log_dir: Optional[str] = None

    @property
    def is_production(self) -> bool:
        return self.app_env.lower() == 'production'

    @property
    def supabase_configured(self) -> bool:
        return bool(self.supabase_url and self.supabase_service_role_key)


def load_settings(env_file: Optional[Path] = None) -> Settings:
    """Load .env from the project root (or ``env_file``) and read settings from the environment."""
    load_dotenv(dotenv_path=env_file or ROOT_DIR / '.env')

    origins = [o.strip() for o in os.getenv('ALLOWED_ORIGINS', '').split(',') if o.strip()]

    settings = Settings(
        supabase_url=_env_str('SUPABASE_URL'),
        supabase_service_role_key=_env_str('SUPABASE_SERVICE_ROLE_KEY'),
        jwt_secret=_env_str('SUPABASE_JWT_SECRET'),
        app_env=os.getenv('APP_ENV', 'development'),
        allowed_origins=origins,
        rate_limit_max=_env_int('RATE_LIMIT_MAX', 100),
        rate_limit_window_seconds=_env_int('RATE_LIMIT_WINDOW_SECONDS', 15 * 60),
        sync_domain_timeout_seconds=_env_float('SYNC_DOMAIN_TIMEOUT_SECONDS'),
        max_body_bytes=_env_int('MAX_BODY_BYTES', 10 * 1024 * 1024),
        cookie_records_table=os.getenv('COOKIE_RECORDS_TABLE', 'cookie_records'),
        domain_index_table=os.getenv('DOMAIN_INDEX_TABLE', 'user_domains'),
        profiles_table=os.getenv('PROFILES_TABLE', 'profiles'),
        log_level=os.getenv('LOG_LEVEL', 'INFO').upper(),
        log_dir=os.getenv('LOG_DIR', os.path.join('tmp', 'logs')) or None,
    )

    logger.debug("=== COOKIE RELAY SETTINGS ===")
    logger.debug(f"SUPABASE_URL: {'✅ SET' if settings.supabase_url else '❌ NOT SET OR PLACEHOLDER'}")
    logger.debug(f"SUPABASE_SERVICE_ROLE_KEY: {'✅ SET' if settings.supabase_service_role_key else '❌ NOT SET OR PLACEHOLDER'}")
    logger.debug(f"SUPABASE_JWT_SECRET: {'✅ SET' if settings.jwt_secret else '❌ NOT SET OR PLACEHOLDER'}")
    logger.debug(f"APP_ENV: {settings.app_env}")
    logger.debug("=============================")
    return settings
