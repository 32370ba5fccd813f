from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from teamchat.core.config import settings


def build_engine(database_url: str):
    if database_url.startswith("sqlite"):
        # Storage calls run in worker threads, so SQLite must allow cross-thread use
        return create_engine(database_url, connect_args={"check_same_thread": False})
    return create_engine(
        database_url,
        pool_size=20,
        max_overflow=10,
        pool_pre_ping=True,  # Test connections before using them to detect stale connections
        pool_recycle=3600,
        pool_timeout=60,
    )


engine = build_engine(settings.DATABASE_URL)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()
