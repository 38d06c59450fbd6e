"""
Vault Client Utility for Re-index Auditing

Reads the index service's basic-auth credentials from a HashiCorp Vault
KV v2 engine, so comparisons against a protected index need no password
in config files or on the command line.

Usage:
    with VaultClient() as vault:
        credentials = vault.get_index_credentials("solr/reader")
"""

import logging
import os
from typing import Any, Dict, Optional

import hvac
from hvac.exceptions import InvalidPath, VaultError

logger = logging.getLogger(__name__)

DEFAULT_CREDENTIALS_PATH = "index-credentials"
CREDENTIAL_KEYS = ("username", "password")


class VaultClient:
    """Read-only access to index credentials stored in Vault."""

    def __init__(
        self,
        vault_url: Optional[str] = None,
        vault_token: Optional[str] = None,
        verify_ssl: bool = True,
        mount_point: str = "secret"
    ):
        """
        Connect to Vault.

        Args:
            vault_url: Vault server URL (defaults to VAULT_ADDR env var)
            vault_token: Vault token (defaults to VAULT_TOKEN env var)
            verify_ssl: Whether to verify the server certificate
            mount_point: Mount point of the KV v2 engine

        Raises:
            ValueError: If no URL or token is available
            VaultError: If the token is rejected or Vault is unreachable
        """
        self.vault_url = vault_url or os.getenv("VAULT_ADDR")
        self.vault_token = vault_token or os.getenv("VAULT_TOKEN")
        self.mount_point = mount_point

        for value, source in ((self.vault_url, "VAULT_ADDR"), (self.vault_token, "VAULT_TOKEN")):
            if not value:
                raise ValueError(f"No Vault setting given and {source} is not set")

        self.client = self._connect(verify_ssl)

    def _connect(self, verify_ssl: bool) -> hvac.Client:
        try:
            client = hvac.Client(url=self.vault_url, token=self.vault_token, verify=verify_ssl)
            authenticated = client.is_authenticated()
        except Exception as e:
            raise VaultError(f"Cannot reach Vault at {self.vault_url}: {e}") from e

        if not authenticated:
            raise VaultError(f"Vault at {self.vault_url} rejected the token")

        logger.debug(f"Authenticated against Vault at {self.vault_url}")
        return client

    def read_secret(self, path: str) -> Dict[str, Any]:
        """
        Read the latest version of a KV v2 secret.

        Raises:
            InvalidPath: If nothing is stored at the path
            VaultError: If the read fails for any other reason
        """
        try:
            response = self.client.secrets.kv.v2.read_secret_version(
                path=path,
                mount_point=self.mount_point
            )
        except InvalidPath:
            logger.error(f"No Vault secret at {self.mount_point}/{path}")
            raise
        except Exception as e:
            raise VaultError(f"Reading {self.mount_point}/{path} failed: {e}") from e

        if not response or "data" not in response:
            raise InvalidPath(f"No data at {self.mount_point}/{path}")
        return response["data"].get("data") or {}

    def get_index_credentials(self, path: str = DEFAULT_CREDENTIALS_PATH) -> Dict[str, str]:
        """
        Read the username and password for the index service.

        Args:
            path: Secret path holding "username" and "password" keys

        Returns:
            Dict with exactly the username and password

        Raises:
            ValueError: If the secret lacks a username or password
            VaultError: If the secret cannot be read
        """
        secret = self.read_secret(path)

        missing = [key for key in CREDENTIAL_KEYS if not secret.get(key)]
        if missing:
            raise ValueError(f"Secret at {path} is missing {', '.join(missing)}")

        logger.info(f"Using index credentials from Vault path {path}")
        return {key: secret[key] for key in CREDENTIAL_KEYS}

    def close(self):
        self.client = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
