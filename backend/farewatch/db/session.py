"""
Database session and engine.
"""
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from farewatch.config import settings

_pool_kwargs = (
    {}
    if settings.database_url.startswith("sqlite")
    else {"pool_size": 8, "max_overflow": 10, "pool_recycle": 300, "pool_timeout": 30}
)

engine = create_engine(settings.database_url, pool_pre_ping=True, **_pool_kwargs)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
