"""
Script to seed the database with a demo widget tenant.
Run with: python seed_db.py

Prints the tenant id to put in the widget embed snippet (data-tenant-id).
"""
from dotenv import load_dotenv

# Load environment variables before settings are read
load_dotenv()

from sqlalchemy.orm import Session  # noqa: E402

from app.db.session import SessionLocal, init_db  # noqa: E402
from app.seed.seed_data import seed_db  # noqa: E402


def main():
    print("Creating tables...")
    init_db()

    db: Session = SessionLocal()
    try:
        tenant = seed_db(db)
        print(f'Embed with: <script src="/widget.js" data-tenant-id="{tenant.id}"></script>')
    finally:
        db.close()


if __name__ == "__main__":
    main()
