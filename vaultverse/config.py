"""
Config system - Layered typed configuration with validation.

Merge order (later overrides earlier):
1. JSON config files
2. .env file (VAULT_* keys only)
3. Environment variables (VAULT_* prefix)
4. Manual overrides

Nested keys use a double underscore: ``VAULT_TOKENS__ACCESS_TOKEN_TTL=600``
sets ``tokens.access_token_ttl``.
"""

from __future__ import annotations

import json
import os
import re
import secrets
from dataclasses import dataclass, field, fields
from glob import glob
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import dotenv_values

from vaultverse.auth.tokens import KeyAlgorithm, TokenConfig
from vaultverse.crypto.hashing import MAX_PBKDF2_ITERATIONS
from vaultverse.faults import Fault, FaultDomain, Severity


# Values kept verbatim (hex keys would otherwise parse as numbers)
RAW_STRING_KEYS = {"master_key", "token_secret"}

MIN_TOKEN_SECRET_LENGTH = 32


class ConfigError(Fault):
    """Raised when configuration validation fails."""
    domain = FaultDomain.CONFIG
    code = "CONFIG_001"
    severity = Severity.FATAL
    message = "Invalid configuration"

    def __init__(self, reason: str | None = None, **context):
        super().__init__(message=reason or type(self).message, **context)


# ============================================================================
# Typed config
# ============================================================================

@dataclass
class HashingConfig:
    """Credential hasher work factor (deployment constant)."""
    algorithm: str = "argon2id"
    time_cost: int = 2
    memory_cost: int = 65536
    parallelism: int = 4
    iterations: int = 600000


@dataclass
class LockoutConfig:
    max_attempts: int = 5
    lockout_duration: int = 1800  # seconds


@dataclass
class ExportConfig:
    """Vault export passphrase policy and scrypt cost."""
    min_passphrase_length: int = 8
    kdf_n: int = 2**15
    kdf_r: int = 8
    kdf_p: int = 1


@dataclass
class SecurityConfig:
    master_key: str = field(repr=False)
    token_secret: str = field(repr=False)
    hashing: HashingConfig = field(default_factory=HashingConfig)
    tokens: TokenConfig = field(default_factory=TokenConfig)
    lockout: LockoutConfig = field(default_factory=LockoutConfig)
    export: ExportConfig = field(default_factory=ExportConfig)

    def __post_init__(self):
        if not isinstance(self.master_key, str) or not re.fullmatch(r"[0-9a-fA-F]{64}", self.master_key):
            raise ConfigError("master_key must be 64 hex characters (32 bytes)")
        if not isinstance(self.token_secret, str) or len(self.token_secret) < MIN_TOKEN_SECRET_LENGTH:
            raise ConfigError(f"token_secret must be at least {MIN_TOKEN_SECRET_LENGTH} characters")

        if self.hashing.algorithm not in ("argon2id", "pbkdf2_sha256"):
            raise ConfigError(f"Unsupported hashing algorithm: {self.hashing.algorithm}")
        if not 0 < self.hashing.iterations <= MAX_PBKDF2_ITERATIONS:
            raise ConfigError(f"hashing.iterations must be between 1 and {MAX_PBKDF2_ITERATIONS}")
        if self.tokens.algorithm != KeyAlgorithm.HS256:
            raise ConfigError("token_secret configuration only supports HS256")
        if self.tokens.access_token_ttl <= 0 or self.tokens.refresh_token_ttl <= 0:
            raise ConfigError("Token TTLs must be positive")
        if self.lockout.max_attempts < 1 or self.lockout.lockout_duration <= 0:
            raise ConfigError("Lockout threshold and duration must be positive")
        if self.export.min_passphrase_length < 1:
            raise ConfigError("min_passphrase_length must be positive")


class ConfigLoader:
    """
    Loads and merges configuration from multiple sources with precedence:
    overrides > environment variables > .env file > config files > defaults
    """

    def __init__(self, env_prefix: str = "VAULT_"):
        self.env_prefix = env_prefix
        self.config_data: Dict[str, Any] = {}

    @classmethod
    def load(
        cls,
        paths: Optional[list[str]] = None,
        env_prefix: str = "VAULT_",
        env_file: Optional[str] = None,
        overrides: Optional[Dict[str, Any]] = None,
    ) -> "ConfigLoader":
        """
        Load configuration from multiple sources.

        Args:
            paths: List of JSON config file paths (glob patterns supported)
            env_prefix: Prefix for environment variables
            env_file: Path to .env file
            overrides: Manual overrides (highest precedence)

        Returns:
            Configured ConfigLoader instance
        """
        loader = cls(env_prefix=env_prefix)

        for pattern in paths or []:
            loader._load_from_files(pattern)

        if env_file:
            loader._load_env_file(env_file)

        loader._load_from_env()

        if overrides:
            loader._merge_dict(loader.config_data, overrides)

        return loader

    def _load_from_files(self, pattern: str):
        for path_str in sorted(glob(pattern)):
            path = Path(path_str)
            if path.suffix == ".json":
                self._load_json_file(path)

    def _load_json_file(self, path: Path):
        """Load config from JSON file."""
        try:
            with open(path) as f:
                data = json.load(f)
        except json.JSONDecodeError as exc:
            raise ConfigError(f"Invalid JSON in {path}: {exc}") from exc

        if not isinstance(data, dict):
            raise ConfigError(f"Config file {path} must hold an object")
        self._merge_dict(self.config_data, data)

    def _load_env_file(self, path: str):
        """Load config from .env file."""
        if not Path(path).exists():
            return

        for key, value in dotenv_values(path).items():
            if key.startswith(self.env_prefix) and value is not None:
                self._set_nested(key, value)

    def _load_from_env(self):
        """Load config from environment variables."""
        for key, value in os.environ.items():
            if key.startswith(self.env_prefix):
                self._set_nested(key, value)

    def _set_nested(self, key: str, value: str):
        """Convert VAULT_TOKENS__ACCESS_TOKEN_TTL to nested dict."""
        key = key[len(self.env_prefix):]
        parts = key.lower().split("__")

        current = self.config_data
        for part in parts[:-1]:
            if not isinstance(current.get(part), dict):
                current[part] = {}
            current = current[part]

        leaf = parts[-1]
        current[leaf] = value if leaf in RAW_STRING_KEYS else self._parse_value(value)

    def _parse_value(self, value: str) -> Any:
        """Parse string value to appropriate type."""
        if value.lower() in ("true", "yes"):
            return True
        if value.lower() in ("false", "no"):
            return False

        try:
            if "." in value:
                return float(value)
            return int(value)
        except ValueError:
            pass

        if value.startswith(("{", "[")):
            try:
                return json.loads(value)
            except json.JSONDecodeError:
                pass

        return value

    def _merge_dict(self, target: dict, source: dict):
        """Deep merge source into target."""
        for key, value in source.items():
            if key in target and isinstance(target[key], dict) and isinstance(value, dict):
                self._merge_dict(target[key], value)
            else:
                target[key] = value

    def get(self, path: str, default: Any = None) -> Any:
        """Get config value by dot-separated path."""
        current = self.config_data

        for part in path.split("."):
            if isinstance(current, dict) and part in current:
                current = current[part]
            else:
                return default

        return current

    def get_security_config(self) -> SecurityConfig:
        """
        Build and validate the typed security configuration.

        Raises:
            ConfigError: Missing secrets, unknown keys or invalid values
        """
        data = self.config_data
        for required in ("master_key", "token_secret"):
            if not data.get(required):
                raise ConfigError(f"Missing required setting: {required}")

        return SecurityConfig(
            master_key=str(data["master_key"]),
            token_secret=str(data["token_secret"]),
            hashing=self._section(HashingConfig, "hashing"),
            tokens=self._section(TokenConfig, "tokens"),
            lockout=self._section(LockoutConfig, "lockout"),
            export=self._section(ExportConfig, "export"),
        )

    def _section(self, config_class: type, name: str):
        """Instantiate dataclass config with validation."""
        data = self.config_data.get(name, {})
        if not isinstance(data, dict):
            raise ConfigError(f"Config section '{name}' must be an object")

        known = {f.name: f for f in fields(config_class)}
        unknown = set(data) - set(known)
        if unknown:
            raise ConfigError(f"Unknown keys in '{name}': {', '.join(sorted(unknown))}")

        for key, value in data.items():
            expected = type(getattr(config_class(), key))
            if expected is int and (isinstance(value, bool) or not isinstance(value, int)):
                raise ConfigError(f"Config field '{name}.{key}' expected int, got {type(value).__name__}")
            if expected is str and not isinstance(value, str):
                raise ConfigError(f"Config field '{name}.{key}' expected str, got {type(value).__name__}")

        return config_class(**data)


def get_security_config(
    paths: Optional[list[str]] = None,
    env_file: Optional[str] = None,
    overrides: Optional[Dict[str, Any]] = None,
) -> SecurityConfig:
    """Load and validate configuration in one step."""
    return ConfigLoader.load(paths=paths, env_file=env_file, overrides=overrides).get_security_config()


def generate_token_secret(nbytes: int = 64) -> str:
    """Fresh random token signing secret."""
    return secrets.token_urlsafe(nbytes)
