"""Create the first admin account, or reset an existing admin's password.

    python -m scripts.create_admin --email owner@example.com --name "Site Owner"

The password is prompted for unless --password is given.
"""

import argparse
import getpass
import sys

from auth.config import AuthConfig
from auth.credentials import AdminCredentialStore, build_fallback_storage
from auth.security_logger import SecurityLogger, SecurityEvent
from core.storage import PersistentStorage
from main import load_settings
from utils.logging import setup_logging


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Create or update an admin account.")
    parser.add_argument("--email", required=True)
    parser.add_argument("--name", help="Display name (default: \"Admin User\" for new admins)")
    parser.add_argument("--password", help="Prompted for when omitted")
    parser.add_argument(
        "--reset-password",
        action="store_true",
        help="Replace the password of an existing admin instead of leaving it untouched.",
    )
    return parser.parse_args(argv)


def run(args: argparse.Namespace, storage: PersistentStorage) -> int:
    """Create or update the admin. Returns a process exit code."""
    store = AdminCredentialStore(storage, build_fallback_storage(AuthConfig()))
    security_logger = SecurityLogger(storage)
    existing = store.find_by_email(args.email)

    if existing and not args.reset_password:
        print(f"Admin already exists: {existing.email} ({existing.name})")
        print("Use --reset-password to set a new password.")
        return 0

    password = args.password or getpass.getpass("Password: ")
    if not password:
        print("A password is required.", file=sys.stderr)
        return 1

    if existing:
        admin = store.save_admin(existing.email, args.name or existing.name, password=password, admin_id=existing.id)
        security_logger.log(SecurityEvent.PASSWORD_RESET, email=admin.email, user_id=admin.id)
        print(f"Password reset for {admin.email}")
        return 0

    admin = store.save_admin(args.email, args.name or "Admin User", password=password)
    security_logger.log(SecurityEvent.ADMIN_CREATED, email=admin.email, user_id=admin.id)
    print(f"Admin created: {admin.email} ({admin.name})")
    return 0


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    settings = load_settings()
    setup_logging(settings.log_level)

    storage = PersistentStorage(settings.database_url)
    if not storage.init():
        print("Could not connect to the database. Check DATABASE_URL.", file=sys.stderr)
        return 1

    try:
        return run(args, storage)
    finally:
        storage.shutdown()


if __name__ == "__main__":
    sys.exit(main())
