"""Admin credential store.

Admin records live in the admin_users table. While the database is
unreachable, lookups are answered from a ReadOnlyFallbackStorage holding a
single configured fallback admin, so the site owner can still sign in.

Passwords are hashed with bcrypt. Hashing happens explicitly in save_admin(),
and only when a new password is supplied; an existing hash is never
re-hashed.
"""

import logging
from uuid import UUID, uuid4

import bcrypt

from auth.config import AuthConfig
from auth.exceptions import InvalidCredentialsError
from auth.types import AdminCredential, AdminUser
from core.exceptions import NotFoundError, StorageUnavailableError, ValidationError
from core.storage import PersistentStorage, ReadOnlyFallbackStorage
from utils.timezone import now_utc

logger = logging.getLogger(__name__)

BCRYPT_ROUNDS = 10
# bcrypt only looks at the first 72 bytes.
BCRYPT_MAX_BYTES = 72

FALLBACK_ADMIN_ID = "fallback-admin"
ADMIN_COLLECTION = "admin_users"


def normalize_email(email: str) -> str:
    return email.strip().lower()


def _password_bytes(password: str) -> bytes:
    return password.encode("utf-8")[:BCRYPT_MAX_BYTES]


def hash_password(password: str) -> str:
    """Salted bcrypt hash of ``password``."""
    return bcrypt.hashpw(_password_bytes(password), bcrypt.gensalt(rounds=BCRYPT_ROUNDS)).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """True if ``password`` matches ``password_hash``. Malformed hashes never match."""
    try:
        return bcrypt.checkpw(_password_bytes(password), password_hash.encode("utf-8"))
    except ValueError:
        return False


def build_fallback_storage(config: AuthConfig) -> ReadOnlyFallbackStorage:
    """
    Fallback storage holding the configured fallback admin.

    Empty when no fallback password is configured, in which case nobody can
    sign in while the database is down.
    """
    if not config.fallback_admin_password:
        return ReadOnlyFallbackStorage()

    return ReadOnlyFallbackStorage({
        ADMIN_COLLECTION: [{
            "id": FALLBACK_ADMIN_ID,
            "email": normalize_email(config.fallback_admin_email),
            "name": config.fallback_admin_name,
            "password_hash": hash_password(config.fallback_admin_password),
        }]
    })


def _to_credential(row: dict) -> AdminCredential:
    return AdminCredential(
        id=str(row["id"]),
        email=row["email"],
        name=row["name"],
        password_hash=row["password_hash"],
    )


class AdminCredentialStore:
    """Lookup, verification and persistence of admin credentials."""

    def __init__(self, storage: PersistentStorage, fallback: ReadOnlyFallbackStorage):
        self._storage = storage
        self._fallback = fallback

    def _from_fallback(self, **filters) -> AdminCredential | None:
        row = self._fallback.find_one(ADMIN_COLLECTION, **filters)
        return _to_credential(row) if row else None

    def find_by_email(self, email: str) -> AdminCredential | None:
        """Admin by email (case-insensitive)."""
        email = normalize_email(email)

        if self._storage.available:
            try:
                row = self._storage.execute_single(
                    """SELECT id, email, name, password_hash
                       FROM admin_users WHERE email = %s""",
                    (email,),
                )
                return _to_credential(row) if row else None
            except StorageUnavailableError:
                logger.warning("Database unavailable during admin lookup; using fallback admin")

        return self._from_fallback(email=email)

    def find_by_id(self, admin_id: str) -> AdminCredential | None:
        """
        Admin by id.

        The fallback admin (whose id is not a UUID) is only found while the
        database is unavailable, so its tokens stop working once it is back.
        """
        if self._storage.available:
            try:
                uid = UUID(admin_id)
            except ValueError:
                uid = None

            if uid is None:
                if self._storage.ping():
                    return None
                logger.warning("Database unavailable during admin lookup; using fallback admin")
            else:
                try:
                    row = self._storage.execute_single(
                        """SELECT id, email, name, password_hash
                           FROM admin_users WHERE id = %s""",
                        (uid,),
                    )
                    return _to_credential(row) if row else None
                except StorageUnavailableError:
                    logger.warning("Database unavailable during admin lookup; using fallback admin")

        return self._from_fallback(id=admin_id)

    def verify(self, email: str, password: str) -> AdminUser:
        """
        Check an email/password pair.

        Raises:
            InvalidCredentialsError: Unknown email or wrong password (same error for both).
        """
        credential = self.find_by_email(email)
        if credential is None or not verify_password(password, credential.password_hash):
            raise InvalidCredentialsError()
        return credential.public()

    def save_admin(
        self,
        email: str,
        name: str,
        password: str | None = None,
        admin_id: str | None = None,
    ) -> AdminUser:
        """
        Create or update an admin in the database.

        When ``admin_id`` is None a new admin is created and ``password`` is
        required. When updating, the stored hash is replaced only if a new
        ``password`` is given.

        Raises:
            ValidationError: Creating without a password.
            NotFoundError: Updating an admin that does not exist.
            StorageUnavailableError: Database not connected.
        """
        email = normalize_email(email)
        now = now_utc()

        if admin_id is None:
            if not password:
                raise ValidationError("Password is required for a new admin")
            row = self._storage.execute_returning(
                """INSERT INTO admin_users (id, email, name, password_hash, created_at, updated_at)
                   VALUES (%s, %s, %s, %s, %s, %s)
                   RETURNING id, email, name, password_hash""",
                (uuid4(), email, name, hash_password(password), now, now),
            )[0]
            logger.info("Created admin %s", email)
            return _to_credential(row).public()

        if password:
            rows = self._storage.execute_returning(
                """UPDATE admin_users
                   SET email = %s, name = %s, password_hash = %s, updated_at = %s
                   WHERE id = %s
                   RETURNING id, email, name, password_hash""",
                (email, name, hash_password(password), now, admin_id),
            )
        else:
            rows = self._storage.execute_returning(
                """UPDATE admin_users
                   SET email = %s, name = %s, updated_at = %s
                   WHERE id = %s
                   RETURNING id, email, name, password_hash""",
                (email, name, now, admin_id),
            )

        if not rows:
            raise NotFoundError("Admin not found")
        return _to_credential(rows[0]).public()
