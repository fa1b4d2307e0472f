#!/usr/bin/env python3
"""
Create all tables (accounts, generation_jobs, credit_ledger, compensation_log).
Optionally seed one account: python -m scripts.init_db --account <id> --credits 10
or: PYTHONPATH=. python scripts/init_db.py
"""
import argparse
import os
import sys

# project root on PYTHONPATH
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from app.db.base import Base
from app.db.session import SessionLocal, engine
from app.models import account, compensation, credit_ledger, generation_job  # noqa: F401
from app.models.account import Account
from app.models.credit_ledger import LedgerOperation
from app.services.ledger.service import LedgerService


def main():
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--account", help="account id to create if missing")
    parser.add_argument("--credits", type=int, default=0, help="initial credit grant for --account")
    args = parser.parse_args()

    Base.metadata.create_all(bind=engine)
    print("Tables created.")
    if not args.account:
        return

    db = SessionLocal()
    try:
        if db.query(Account).filter(Account.id == args.account).one_or_none() is None:
            db.add(Account(id=args.account, credits=0))
            db.flush()
        if args.credits > 0:
            LedgerService(db).credit(
                args.account, args.credits, reference="init_db", operation=LedgerOperation.GRANT
            )
        db.commit()
        print(f"Account {args.account}: {LedgerService(db).get_balance(args.account)} credits")
    finally:
        db.close()


if __name__ == "__main__":
    main()
