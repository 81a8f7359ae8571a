"""Configuration for the Ethereum node client.

Loads settings from a YAML file, expands ``${VAR_NAME}`` placeholders from
the environment so that mnemonics and passwords need not be written to disk,
and validates the result with pydantic.
"""

from __future__ import annotations

import os
import re
from pathlib import Path

import yaml
from pydantic import BaseModel, Field

DEFAULT_CONFIG_FILE = "eth-node-client.yaml"
CONFIG_ENV_VAR = "ETH_NODE_CLIENT_CONFIG"


# ---------------------------------------------------------------------------
# Environment-variable expansion helper
# ---------------------------------------------------------------------------

_ENV_VAR_RE = re.compile(r"\$\{([^}]+)\}")


def _expand_env_vars(value: str) -> str:
    """Replace ``${VAR_NAME}`` placeholders with their environment values.

    If the variable is not set the placeholder is left as-is.
    """

    def _replace(match: re.Match) -> str:
        var_name = match.group(1)
        return os.environ.get(var_name, match.group(0))

    return _ENV_VAR_RE.sub(_replace, value)


def _expand_env_recursive(obj: object) -> object:
    """Walk an arbitrary nested structure and expand env vars in strings."""
    if isinstance(obj, str):
        return _expand_env_vars(obj)
    if isinstance(obj, dict):
        return {k: _expand_env_recursive(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_expand_env_recursive(item) for item in obj]
    return obj


# ---------------------------------------------------------------------------
# Pydantic v2 models
# ---------------------------------------------------------------------------


class NodeConfig(BaseModel):
    """Connection to the upstream node."""

    url: str = "http://127.0.0.1:8545"
    request_timeout: float = 30.0
    poll_interval: float = 2.0  # replay streams, seconds between polls
    poa: bool = False           # inject ExtraDataToPOAMiddleware


class AccountConfig(BaseModel):
    """Secrets for one derivation tree (collection or user deposits)."""

    mnemonic: str = ""
    passphrase: str = ""        # BIP-39 seed passphrase
    account_password: str = ""  # node keystore password, authorizes sends

    def __repr__(self) -> str:
        return "AccountConfig(<secret>)"

    __str__ = __repr__


class ReplayConfig(BaseModel):
    block_count: int = Field(default=12, ge=0)


class ClientConfig(BaseModel):
    """Root configuration object."""

    node: NodeConfig = Field(default_factory=NodeConfig)
    collection: AccountConfig = Field(default_factory=AccountConfig)
    user: AccountConfig = Field(default_factory=AccountConfig)
    replay: ReplayConfig = Field(default_factory=ReplayConfig)


# ---------------------------------------------------------------------------
# Public helpers
# ---------------------------------------------------------------------------


def default_config_path() -> Path:
    """Return ``$ETH_NODE_CLIENT_CONFIG`` or ``./eth-node-client.yaml``."""
    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        return Path(env_path)
    return Path.cwd() / DEFAULT_CONFIG_FILE


def load_config(path: Path) -> ClientConfig:
    """Load and validate a client configuration from a YAML file.

    Environment variable placeholders (``${VAR}``) are expanded before
    validation.
    """
    raw_text = path.read_text(encoding="utf-8")
    raw_data = yaml.safe_load(raw_text) or {}
    expanded = _expand_env_recursive(raw_data)
    return ClientConfig.model_validate(expanded)


def save_config(config: ClientConfig, path: Path) -> None:
    """Serialize a :class:`ClientConfig` to a YAML file."""
    path.parent.mkdir(parents=True, exist_ok=True)
    data = config.model_dump(mode="python", exclude_none=True)
    with open(path, "w", encoding="utf-8") as fh:
        yaml.dump(data, fh, default_flow_style=False, sort_keys=False)
