import logging
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from exampractice.core.config import DATABASE_URL

logger = logging.getLogger(__name__)

# sqlite connections are shared with the request threadpool
_connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}

engine = create_engine(DATABASE_URL, future=True, pool_pre_ping=True, connect_args=_connect_args)
SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False, future=True)

def get_db():
    db = SessionLocal()
    try:
        yield db
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()

def init_db():
    from exampractice.models.orm import Base
    Base.metadata.create_all(bind=engine)
    logger.info(f"Database ready ({engine.dialect.name}, {len(Base.metadata.tables)} tables)")

def close_db():
    engine.dispose()
    logger.info("Database connections closed")
