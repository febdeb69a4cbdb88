# vale_cashback/db/init_db.py
from vale_cashback.db.base import Base
from vale_cashback.db.get_db import engine as default_engine

# Register every table on Base.metadata
from vale_cashback.models import (  # noqa: F401
    cashback,
    commission_settings,
    merchant,
    notification,
    qr_code,
    referral,
    transaction,
    transfer,
    user,
    withdrawal,
)


def init_db(engine=None):
    Base.metadata.create_all(bind=engine or default_engine)


if __name__ == "__main__":
    init_db()
    print("Database tables created")
