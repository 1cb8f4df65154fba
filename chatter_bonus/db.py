import os
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base
from dotenv import load_dotenv
import urllib.parse

# Load .env file with explicit UTF-8 encoding
load_dotenv(encoding='utf-8')

DATABASE_URL = os.getenv("DATABASE_URL") or "sqlite:///./chatter_bonus.db"
if DATABASE_URL.startswith("postgres"):
    # Re-encode the URL so credentials with special characters survive
    parsed = urllib.parse.urlparse(DATABASE_URL)
    DATABASE_URL = urllib.parse.urlunparse(parsed)

DB_STATEMENT_TIMEOUT_MS = int(os.getenv("DB_STATEMENT_TIMEOUT_MS") or "5000")

connect_args = None
if DATABASE_URL.startswith("postgres"):
    connect_args = {"options": f"-c timezone=utc -c statement_timeout={DB_STATEMENT_TIMEOUT_MS}"}

engine = create_engine(DATABASE_URL, connect_args=connect_args or {})
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)
Base = declarative_base()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
