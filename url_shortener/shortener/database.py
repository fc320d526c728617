from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base
from shortener.config import settings
import os

TESTING = os.environ.get("TESTING", "False") == "True"

if TESTING:
    DATABASE_URL = "sqlite:///./test.db"
    # Click workers write from their own threads; the timeout lets them queue on the file lock.
    engine = create_engine(
        DATABASE_URL,
        connect_args={"check_same_thread": False, "timeout": 30},
    )
else:
    DATABASE_URL = settings.DATABASE_URL
    engine = create_engine(
        DATABASE_URL,
        pool_size=20,
        max_overflow=20,
        pool_timeout=60,
        pool_recycle=3600,
        pool_pre_ping=True,
    )

SessionLocal = sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)

Base = declarative_base()
