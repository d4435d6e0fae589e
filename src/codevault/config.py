"""codevault configuration loader.

Priority (high → low):
  1. CLI flags           (handled at the call site, not in this module)
  2. Environment variables  (CODEVAULT_EMBEDDING_MODEL, CODEVAULT_VECTOR_DB,
     CODEVAULT_METADATA_DB)
  3. Config file: ``--config`` path, else ``~/.codevault/config.yaml``
  4. Hardcoded defaults

Config files must never contain API keys; use environment variables instead.
All YAML reads use yaml.safe_load(), never yaml.load().
"""

from __future__ import annotations

import os
import re
import warnings
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_GLOBAL_CONFIG_DIR: Path = Path.home() / ".codevault"
_GLOBAL_CONFIG_PATH: Path = _GLOBAL_CONFIG_DIR / "config.yaml"

# Fields that suggest an API key; forbidden in config files.
# Matches: api_key, apikey, api-key, api_secret, _token (suffix), standalone token,
# standalone secret, _secret (suffix), password, passwd, credential(s).
# Does NOT match legitimate config keys like batch_size or api_base.
_API_KEY_RE: re.Pattern[str] = re.compile(
    r"api[_\-]?(?:key|secret)"  # api_key, api-key, api_secret, apikey
    r"|_token$"                  # github_token, access_token, auth_token (suffix)
    r"|^token$"                  # exactly "token" (standalone)
    r"|_secret$"                 # my_secret, client_secret (suffix)
    r"|^secret$"                 # exactly "secret" (standalone)
    r"|passw(?:ord|d)"           # password, passwd
    r"|credential",              # credential, credentials
    re.IGNORECASE,
)

# Known top-level sections; unknown keys produce a warning
_KNOWN_SECTIONS: frozenset[str] = frozenset(["embedding", "vector_store", "metadata"])


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class ConfigError(ValueError):
    """Raised when a config file contains an invalid or forbidden value."""


# ---------------------------------------------------------------------------
# Data model
# ---------------------------------------------------------------------------


@dataclass
class EmbeddingCfg:
    """Embedding model configuration (config.yaml: embedding:)."""

    model: str = "openai/text-embedding-3-small"
    dimensions: int = 1536
    api_base: str | None = None  # e.g. http://localhost:11434 for ollama
    batch_size: int = 64


@dataclass
class VectorStoreCfg:
    """Vector store configuration (config.yaml: vector_store:)."""

    path: Path = field(default_factory=lambda: _GLOBAL_CONFIG_DIR / "vectors.db")
    batch_size: int = 1000


@dataclass
class MetadataCfg:
    """Metadata tracker configuration (config.yaml: metadata:)."""

    db_path: Path = field(default_factory=lambda: _GLOBAL_CONFIG_DIR / "metadata.db")


@dataclass
class CodevaultConfig:
    """Root configuration object, built by load_config()."""

    embedding: EmbeddingCfg = field(default_factory=EmbeddingCfg)
    vector_store: VectorStoreCfg = field(default_factory=VectorStoreCfg)
    metadata: MetadataCfg = field(default_factory=MetadataCfg)


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------


def _check_no_api_keys(data: dict[str, Any], source: Path) -> None:
    """Raise ConfigError if *data* contains any API-key-like key names."""

    def _scan(obj: Any, path: str) -> None:
        if isinstance(obj, dict):
            for k, v in obj.items():
                full = f"{path}.{k}" if path else k
                if _API_KEY_RE.search(str(k)):
                    raise ConfigError(
                        f"Config '{source}' contains a forbidden key '{full}'.\n"
                        f"  API keys must be set via environment variables, not config files.\n"
                        f"  Remove '{full}' from {source.name} and use:\n"
                        f"    export {str(k).upper().replace('-', '_')}=<value>"
                    )
                _scan(v, full)

    _scan(data, "")


def _warn_unknown_keys(data: dict[str, Any], source: Path) -> None:
    """Emit a UserWarning for unrecognised top-level keys."""
    for key in data:
        if key not in _KNOWN_SECTIONS:
            warnings.warn(
                f"Unknown config key '{key}' in '{source}' (ignored).",
                UserWarning,
                stacklevel=4,
            )


def _expand(path: str | Path) -> Path:
    return Path(os.path.expanduser(str(path)))


def _positive_int(section: str, key: str, value: Any) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ConfigError(f"{section}.{key} must be an integer, got {value!r}") from None
    if number < 1:
        raise ConfigError(f"{section}.{key} must be >= 1, got {number}")
    return number


# ---------------------------------------------------------------------------
# Build
# ---------------------------------------------------------------------------


def _cfg_from_dict(data: dict[str, Any]) -> CodevaultConfig:
    """Build a *CodevaultConfig* from a raw YAML dict."""
    cfg = CodevaultConfig()

    if "embedding" in data:
        e = data["embedding"] or {}
        cfg.embedding = EmbeddingCfg(
            model=str(e.get("model", cfg.embedding.model)),
            dimensions=_positive_int(
                "embedding", "dimensions", e.get("dimensions", cfg.embedding.dimensions)
            ),
            api_base=e.get("api_base") or cfg.embedding.api_base,
            batch_size=_positive_int(
                "embedding", "batch_size", e.get("batch_size", cfg.embedding.batch_size)
            ),
        )

    if "vector_store" in data:
        v = data["vector_store"] or {}
        cfg.vector_store = VectorStoreCfg(
            path=_expand(v.get("path", cfg.vector_store.path)),
            batch_size=_positive_int(
                "vector_store", "batch_size", v.get("batch_size", cfg.vector_store.batch_size)
            ),
        )

    if "metadata" in data:
        m = data["metadata"] or {}
        cfg.metadata = MetadataCfg(db_path=_expand(m.get("db_path", cfg.metadata.db_path)))

    return cfg


def _apply_env_overrides(cfg: CodevaultConfig) -> CodevaultConfig:
    """Apply CODEVAULT_* environment variable overrides."""
    if model := os.environ.get("CODEVAULT_EMBEDDING_MODEL"):
        cfg.embedding.model = model
    if path := os.environ.get("CODEVAULT_VECTOR_DB"):
        cfg.vector_store.path = _expand(path)
    if path := os.environ.get("CODEVAULT_METADATA_DB"):
        cfg.metadata.db_path = _expand(path)
    return cfg


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_config(config_path: Path | str | None = None) -> CodevaultConfig:
    """Load and return a *CodevaultConfig*.

    A missing file at the default location yields defaults; a missing file
    at an explicit *config_path* is an error.

    Args:
        config_path: Explicit config file (``--config``); ``~`` is expanded.

    Returns:
        *CodevaultConfig* with env var overrides applied.

    Raises:
        ConfigError: If the file is missing (explicit path only), is not a
            YAML mapping, contains API-key-like fields, or has invalid values.
    """
    explicit = config_path is not None
    path = _expand(config_path) if explicit else _GLOBAL_CONFIG_PATH

    raw: dict[str, Any] = {}
    if path.exists():
        try:
            raw = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
        except yaml.YAMLError as exc:
            raise ConfigError(f"Failed to parse config '{path}': {exc}") from exc
        if not isinstance(raw, dict):
            raise ConfigError(f"Config '{path}' must be a YAML mapping.")
        _check_no_api_keys(raw, path)
        _warn_unknown_keys(raw, path)
    elif explicit:
        raise ConfigError(f"Config file not found: '{path}'")

    return _apply_env_overrides(_cfg_from_dict(raw))


def ensure_global_config(
    global_config_path: Path | None = None,
) -> Path:
    """Create ``~/.codevault/config.yaml`` with defaults if it does not exist.

    Creates parent directory with mode 0o700 and the config file with
    mode 0o600 (owner-readable only).

    Args:
        global_config_path: Override path (for testing).

    Returns:
        Path to the global config file.
    """
    target = global_config_path if global_config_path is not None else _GLOBAL_CONFIG_PATH
    target.parent.mkdir(mode=0o700, parents=True, exist_ok=True)

    if not target.exists():
        content = (
            "# codevault configuration.\n"
            "# NEVER store API keys here. Use environment variables:\n"
            "#   export OPENAI_API_KEY=sk-...\n"
            "\n"
            "embedding:\n"
            "  model: openai/text-embedding-3-small\n"
            "  dimensions: 1536\n"
            "  batch_size: 64\n"
            "  # model: ollama/bge-m3\n"
            "  # dimensions: 1024\n"
            "  # api_base: http://localhost:11434\n"
            "\n"
            "vector_store:\n"
            "  path: ~/.codevault/vectors.db\n"
            "  batch_size: 1000\n"
            "\n"
            "metadata:\n"
            "  db_path: ~/.codevault/metadata.db\n"
        )
        target.write_text(content, encoding="utf-8")
        target.chmod(0o600)

    return target
