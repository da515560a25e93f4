from pydantic_settings import BaseSettings
from dotenv import load_dotenv, find_dotenv
from os import getenv
from typing import Optional

_env_path = find_dotenv()  # locate a .env file in this folder or parent folders
if _env_path:
    load_dotenv(_env_path)


class Settings(BaseSettings):
    # Database related
    # DATABASE_URL wins over the individual postgres settings when present
    DATABASE_URL: Optional[str] = getenv('DATABASE_URL')
    DB_HOST_IP: Optional[str] = getenv('DB_HOST_IP')
    DB_USER: Optional[str] = getenv('DB_USER')
    DB_PASSWORD: Optional[str] = getenv('DB_PASSWORD')
    DB_NAME: Optional[str] = getenv('DB_NAME')

    # OpenAgenda (external events source)
    OPENAGENDA_API_KEY: Optional[str] = getenv('OPENAGENDA_API_KEY')
    OPENAGENDA_BASE_URL: str = getenv('OPENAGENDA_BASE_URL', 'https://api.openagenda.com')
    AGENDATRAD_UID: Optional[str] = getenv('AGENDATRAD_UID')
    LOCALENDIARI_UID: Optional[str] = getenv('LOCALENDIARI_UID')
    OPENAGENDA_TIMEOUT: float = float(getenv('OPENAGENDA_TIMEOUT', '10'))

    # Cache lifetimes, in seconds
    PAGINATION_CACHE_TTL: float = float(getenv('PAGINATION_CACHE_TTL', '300'))
    CACHE_SWEEP_INTERVAL: int = int(getenv('CACHE_SWEEP_INTERVAL', '300'))
    EVENTS_CACHE_TTL: float = float(getenv('EVENTS_CACHE_TTL', '600'))
    INTERNAL_EVENTS_CACHE_TTL: float = float(getenv('INTERNAL_EVENTS_CACHE_TTL', '2700'))
    PAGINATOR_SESSION_TTL: float = float(getenv('PAGINATOR_SESSION_TTL', '1800'))

    # events older than this (by end date) are removed by the daily cleanup job
    EVENTS_RETENTION_DAYS: int = int(getenv('EVENTS_RETENTION_DAYS', '60'))

    # Bearer tokens issued by the identity provider
    AUTH_JWT_SECRET: Optional[str] = getenv('AUTH_JWT_SECRET')
    AUTH_JWT_ALGORITHM: str = getenv('AUTH_JWT_ALGORITHM', 'HS256')
    AUTH_ROLE_CLAIM: str = getenv('AUTH_ROLE_CLAIM', 'role')

    # the scheduler is skipped entirely when disabled (tests, one-off scripts)
    SCHEDULER_ENABLED: bool = getenv('SCHEDULER_ENABLED', 'true').lower() in ('1', 'true', 'yes')

settings = Settings()
