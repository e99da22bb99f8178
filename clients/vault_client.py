"""
Production secrets from HashiCorp Vault.

Only used when VAULT_ADDR is set; development reads secrets from the
environment. Logs in with AppRole and reads KV v2 documents under the
``encore/`` mount path:

    encore/database   url
    encore/auth       jwt_secret, jwt_refresh_secret
"""

import logging
from typing import Any, Dict, Mapping

import hvac
from hvac.exceptions import Forbidden, InvalidPath, Unauthorized, VaultError

logger = logging.getLogger(__name__)

SECRET_ROOT = "encore"


class VaultClient:
    """AppRole-authenticated reader for the app's KV documents."""

    def __init__(
        self,
        addr: str,
        role_id: str,
        secret_id: str,
        namespace: str | None = None,
    ):
        self.addr = addr
        self._documents: Dict[str, Dict[str, Any]] = {}

        self.client = hvac.Client(url=addr, namespace=namespace) if namespace else hvac.Client(url=addr)
        try:
            login = self.client.auth.approle.login(role_id=role_id, secret_id=secret_id)
        except VaultError as e:
            logger.error("Vault AppRole login failed: %s", e)
            raise PermissionError(f"Vault AppRole login failed: {e}") from e

        self.client.token = login["auth"]["client_token"]
        if not self.client.is_authenticated():
            raise PermissionError("Vault rejected the AppRole token")
        logger.info("Authenticated with Vault at %s", addr)

    @classmethod
    def from_env(cls, env: Mapping[str, str]) -> "VaultClient":
        """
        Build from VAULT_ADDR, VAULT_ROLE_ID, VAULT_SECRET_ID and the optional
        VAULT_NAMESPACE.

        Raises:
            ValueError: If a required variable is missing.
        """
        missing = [name for name in ("VAULT_ADDR", "VAULT_ROLE_ID", "VAULT_SECRET_ID") if not env.get(name)]
        if missing:
            raise ValueError(f"Missing Vault configuration: {', '.join(missing)}")
        return cls(
            env["VAULT_ADDR"],
            env["VAULT_ROLE_ID"],
            env["VAULT_SECRET_ID"],
            namespace=env.get("VAULT_NAMESPACE") or None,
        )

    def read(self, name: str) -> Dict[str, Any]:
        """
        The whole KV document ``encore/<name>``, fetched once per client.

        Raises:
            PermissionError: If the document is missing or not readable by
                this role.
        """
        if name in self._documents:
            return self._documents[name]

        path = f"{SECRET_ROOT}/{name}"
        try:
            response = self.client.secrets.kv.v2.read_secret_version(path=path, raise_on_deleted_version=True)
        except InvalidPath as e:
            raise PermissionError(f"No secret at '{path}'") from e
        except (Unauthorized, Forbidden) as e:
            logger.error("Vault denied read of %s: %s", path, e)
            raise PermissionError(f"Access to '{path}' denied") from e

        document = response["data"]["data"]
        self._documents[name] = document
        return document

    def get_secret(self, name: str, field: str) -> str:
        """
        One field of ``encore/<name>``.

        Raises:
            KeyError: If the document has no such field.
        """
        document = self.read(name)
        if field not in document:
            raise KeyError(f"'{SECRET_ROOT}/{name}' has no field '{field}' (has: {', '.join(sorted(document))})")
        return document[field]


def get_database_url(vault: VaultClient) -> str:
    return vault.get_secret("database", "url")


def get_jwt_secrets(vault: VaultClient) -> Dict[str, str]:
    """Access and refresh signing secrets, keyed as AuthConfig fields."""
    return {field: vault.get_secret("auth", field) for field in ("jwt_secret", "jwt_refresh_secret")}
