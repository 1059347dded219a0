from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from app.core.config import settings


if settings.DATABASE_URL.startswith("sqlite"):
    engine = create_engine(
        settings.DATABASE_URL,
        connect_args={"check_same_thread": False},  # only for SQLite
    )
else:
    engine = create_engine(
        settings.DATABASE_URL,
        pool_size=50,  # 50 persistent connections in the pool
        max_overflow=30,  # 30 additional temporary connections (total: 80)
        pool_pre_ping=True,  # Test connections before using them to detect stale connections
        pool_recycle=3600,  # Recycle connections after 1 hour to prevent stale connections
        pool_timeout=60  # Wait up to 60 seconds for an available connection
    )
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def dialect_insert(db, table):
    """INSERT construct supporting ON CONFLICT for the session's backend."""
    from sqlalchemy.dialects import postgresql, sqlite

    if db.get_bind().dialect.name == "postgresql":
        return postgresql.insert(table)
    return sqlite.insert(table)
