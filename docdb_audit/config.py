"""
Runtime configuration for audits.

Environment variables are loaded from Azure Key Vault when ``KEYVAULT_NAME`` is
set, with optional per-user overrides, and fall back to a ``.env`` file.
Variables that are already set are never overwritten, so CLI overrides win.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from .errors import ConfigError

logger = logging.getLogger(__name__)

# Known env vars to fetch from Key Vault (in lookup order for per-user)
ENV_VARS = (
    "DATABASE_URL",
    "DATABASE_NAME",
    "API_AUTH_TOKEN",
    "AUDIT_SAMPLE_SIZE",
    "AUDIT_RELATIONSHIP_SAMPLE_SIZE",
    "AUDIT_MAX_WORKERS",
    "AUDIT_QUERY_RETRIES",
    "AUDIT_RULES_PATH",
)


def _env_to_secret_name(env_key: str) -> str:
    """Convert env var name to Key Vault secret name (underscores -> hyphens)."""
    return env_key.replace("_", "-")


def _load_from_dotenv() -> None:
    """Load all vars from .env as fallback."""
    for base in (Path.cwd(), Path(__file__).resolve().parent.parent):
        env_path = base / ".env"
        if env_path.exists():
            load_dotenv(env_path, override=False)
            return


def load_env() -> None:
    """
    Load env vars from Azure Key Vault (or .env fallback).
    - KEYVAULT_NAME: vault name (required for Key Vault)
    - AZURE_USER_NAME: optional; use {VAR}-{USER} secrets first, then {VAR}
    - Does not overwrite existing os.environ values (allows CLI overrides)
    """
    # KEYVAULT_NAME itself may live in .env
    _load_from_dotenv()

    vault_name = os.environ.get("KEYVAULT_NAME", "").strip()
    user_name = os.environ.get("AZURE_USER_NAME", "").strip().upper()
    if not vault_name:
        return

    from azure.core.exceptions import AzureError
    from azure.identity import DefaultAzureCredential
    from azure.keyvault.secrets import SecretClient

    try:
        credential = DefaultAzureCredential()
        url = f"https://{vault_name}.vault.azure.net/"
        client = SecretClient(vault_url=url, credential=credential)
    except (AzureError, ValueError) as e:
        logger.warning(f"Could not open Key Vault '{vault_name}': {e}")
        return

    for var in ENV_VARS:
        if var in os.environ:
            continue  # Do not overwrite (CLI override)
        secret_names = []
        base_name = _env_to_secret_name(var)
        if user_name:
            secret_names.append(f"{base_name}-{user_name}")
        secret_names.append(base_name)
        for name in secret_names:
            try:
                secret = client.get_secret(name)
            except AzureError:
                continue
            if secret and secret.value:
                os.environ[var] = secret.value
                break


def _env_int(name: str, default: int, minimum: int = 0) -> int:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from None
    if value < minimum:
        raise ConfigError(f"{name} must be >= {minimum}, got {value}")
    return value


def default_max_workers() -> int:
    return max(1, min(8, os.cpu_count() or 1))


@dataclass(frozen=True)
class AuditConfig:
    """Tunables for one audit run.

    Sample sizes bound the cost of the audit; findings are only as complete
    as the sample. ``query_retries`` is the number of extra attempts for a
    single collection query, never for the whole run.
    """

    sample_size: int = 10
    relationship_sample_size: int = 100
    max_workers: int = field(default_factory=default_max_workers)
    query_retries: int = 1
    issue_cap: int = 50
    orphan_sample_cap: int = 5
    sample_value_cap: int = 5
    database_name: Optional[str] = None

    def __post_init__(self):
        for name in ("sample_size", "relationship_sample_size", "max_workers"):
            if getattr(self, name) < 1:
                raise ConfigError(f"{name} must be >= 1")
        for name in ("query_retries", "issue_cap", "orphan_sample_cap", "sample_value_cap"):
            if getattr(self, name) < 0:
                raise ConfigError(f"{name} must be >= 0")

    @classmethod
    def from_env(cls) -> "AuditConfig":
        return cls(
            sample_size=_env_int("AUDIT_SAMPLE_SIZE", 10, minimum=1),
            relationship_sample_size=_env_int("AUDIT_RELATIONSHIP_SAMPLE_SIZE", 100, minimum=1),
            max_workers=_env_int("AUDIT_MAX_WORKERS", default_max_workers(), minimum=1),
            query_retries=_env_int("AUDIT_QUERY_RETRIES", 1),
            database_name=os.environ.get("DATABASE_NAME") or None,
        )

    def with_overrides(self, **overrides) -> "AuditConfig":
        """Return a copy with the non-None overrides applied."""
        values = {k: v for k, v in overrides.items() if v is not None}
        return replace(self, **values)
