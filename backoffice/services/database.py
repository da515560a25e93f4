from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, scoped_session
from sqlalchemy.pool import StaticPool
from backoffice.config.settings import settings


def database_url() -> str:
    if settings.DATABASE_URL:
        return settings.DATABASE_URL
    return f"postgresql+psycopg2://{settings.DB_USER}:{settings.DB_PASSWORD}@{settings.DB_HOST_IP}:5432/{settings.DB_NAME}"


def build_engine(url: str):
    """create an engine for `url`; sqlite (tests, local runs) gets a single shared connection."""
    if url.startswith("sqlite"):
        return create_engine(
            url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
            echo=False
        )
    return create_engine(
        url,
        pool_pre_ping=True,
        pool_size=10,
        max_overflow=20,
        pool_timeout=30,
        echo=False
    )


engine = build_engine(database_url())

# session factory (scoped session if multithreaded or async)
SessionLocal = scoped_session(sessionmaker(autocommit=False, autoflush=False, bind=engine))
