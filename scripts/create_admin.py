#!/usr/bin/env python3
"""
Script to create the first admin user (or promote an existing account).
"""
import sys
from getpass import getpass
from pathlib import Path

# Add parent directory to the system path
sys.path.insert(0, str(Path(__file__).parent.parent))

from database.connection import Database
from services.identity_service import IdentityService
from core.exceptions import BCMSError
import config


def create_admin():
    """Create an admin user."""
    config.db = Database(
        database_url=config.DATABASE_URL,
        pool_size=config.DB_POOL_SIZE,
        max_overflow=config.DB_MAX_OVERFLOW
    )
    config.db.create_tables()

    print("Creating admin user...")
    print("=" * 50)

    email = input("Email: ").strip()
    password = getpass("Password: ").strip()
    full_name = input("Full name (optional): ").strip() or None

    if not email or not password:
        print("Error: Email and password are required")
        sys.exit(1)

    try:
        with config.db.get_session() as db:
            user = IdentityService.bootstrap_admin(
                db=db,
                email=email,
                password=password,
                full_name=full_name
            )
            print("\n✓ Admin user ready!")
            print(f"  ID: {user.id}")
            print(f"  Email: {user.email}")
            print("  Role: admin")
            print("\nYou can now login at: POST /api/auth/login")
    except BCMSError as e:
        print(f"\n✗ Error: {e.message}")
        sys.exit(1)


if __name__ == "__main__":
    create_admin()
