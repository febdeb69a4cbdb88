# vale_cashback/db/get_db.py
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from vale_cashback.core import config

engine = create_engine(config.DATABASE_URL, echo=False, future=True, pool_pre_ping=True)

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine
)

def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
