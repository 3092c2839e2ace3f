from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool
import logging
import os
from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)

# Full URL wins over the individual settings below (tests use sqlite)
DATABASE_URL = os.getenv("DATABASE_URL")

# PostgreSQL configuration
DB_USER = os.getenv("DB_USER")
DB_PASSWORD = os.getenv("DB_PASSWORD")
DB_HOST = os.getenv("DB_HOST", "localhost")
DB_PORT = os.getenv("DB_PORT", "5432")
DB_NAME = os.getenv("DB_NAME")

# Google Cloud SQL configuration
INSTANCE_CONNECTION_NAME = os.getenv("INSTANCE_CONNECTION_NAME")

POOL_OPTIONS = {
    "pool_size": 12,
    "max_overflow": 20,
    "pool_timeout": 30,
    "pool_recycle": 1000,
}

if DATABASE_URL and DATABASE_URL.startswith("sqlite"):
    engine = create_engine(
        DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    logger.info("Using SQLite database: %s", DATABASE_URL)
elif DATABASE_URL:
    engine = create_engine(DATABASE_URL, **POOL_OPTIONS)
    logger.info("Using database from DATABASE_URL")
elif INSTANCE_CONNECTION_NAME:
    from google.cloud.sql.connector import Connector

    # Google Cloud SQL Connector for production
    def getconn():
        connector = Connector()
        conn = connector.connect(
            INSTANCE_CONNECTION_NAME,
            "pg8000",
            user=DB_USER,
            password=DB_PASSWORD,
            db=DB_NAME
        )
        return conn

    engine = create_engine("postgresql+pg8000://", creator=getconn, **POOL_OPTIONS)
    logger.info("Connected to Google Cloud SQL: %s", INSTANCE_CONNECTION_NAME)
else:
    # Local PostgreSQL connection for development
    engine = create_engine(
        f"postgresql+pg8000://{DB_USER}:{DB_PASSWORD}@{DB_HOST}:{DB_PORT}/{DB_NAME}",
        **POOL_OPTIONS
    )
    logger.info("Connected to local PostgreSQL: %s:%s/%s", DB_HOST, DB_PORT, DB_NAME)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    """Dependency for getting database session"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
