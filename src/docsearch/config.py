# src/docsearch/config.py
"""Configuration system for docsearch.

This module handles loading settings from environment variables and INI files,
providing sensible defaults, and computing derived paths for the
vector-store directory layout.
"""

from configparser import ConfigParser
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any, Optional
import os

from docsearch.constants import INDEX_FILE, MAPPING_FILE, METADATA_FILE


class ConfigError(Exception):
    """Raised when configuration validation fails."""

    pass


# Schema: section -> key -> (type, default, min, max, description)
CONFIG_SCHEMA: dict[str, dict[str, tuple[type, Any, Any, Any, str]]] = {
    "vector": {
        "dimensions": (int, 384, 1, 8192, "Embedding dimensionality"),
        "max_elements": (int, 100_000, 16, None, "Initial ANN index capacity"),
        "m": (int, 16, 2, 100, "HNSW neighbor count"),
        "ef_construction": (int, 200, 10, 2000, "HNSW construction-time search breadth"),
        "ef_search": (int, 50, 10, 2000, "HNSW query-time search breadth"),
    },
    "search": {
        "result_limit": (int, 10, 1, 100, "Default search results to return"),
        "hybrid_alpha": (float, 0.5, 0.0, 1.0, "Default vector weight in hybrid ranking"),
        "overfetch_factor": (int, 2, 1, 10, "Candidate multiplier before merging"),
        "snippet_length": (int, 300, 50, 2000, "Snippet window width in characters"),
        "keyword_top_n": (int, 50, 1, 500, "Keywords extracted per document"),
    },
    "embedding": {
        "max_chars": (int, 8000, 100, 100_000, "Text truncation before embedding"),
        "batch_save_size": (int, 10, 1, 1000, "Documents ingested between saves"),
    },
    "storage": {
        "store_dir": (str, "vector-store", None, None, "Directory name for index files"),
        "save_embeddings": (bool, False, None, None, "Include embeddings in metadata.json"),
    },
}


@dataclass(frozen=True)
class VectorConfig:
    """ANN index configuration."""

    dimensions: int
    max_elements: int
    m: int
    ef_construction: int
    ef_search: int


@dataclass(frozen=True)
class SearchConfig:
    """Search configuration."""

    result_limit: int
    hybrid_alpha: float
    overfetch_factor: int
    snippet_length: int
    keyword_top_n: int


@dataclass(frozen=True)
class EmbeddingConfig:
    """Embedding generation configuration."""

    max_chars: int
    batch_save_size: int


@dataclass(frozen=True)
class StorageConfig:
    """Persistence configuration."""

    store_dir: str
    save_embeddings: bool


_SECTION_TYPES = {
    "vector": VectorConfig,
    "search": SearchConfig,
    "embedding": EmbeddingConfig,
    "storage": StorageConfig,
}


def _load_section(
    parser: ConfigParser, section: str, schema: dict[str, tuple[type, Any, Any, Any, str]]
) -> dict[str, Any]:
    """Load and validate a configuration section.

    Args:
        parser: ConfigParser instance with loaded config
        section: Section name to load
        schema: Schema definition for the section

    Returns:
        Dictionary of validated configuration values

    Raises:
        ConfigError: If validation fails
    """
    result = {}

    for key, (typ, default, min_val, max_val, _) in schema.items():
        if parser.has_option(section, key):
            raw_value = parser.get(section, key)
            value: bool | int | float | str
            try:
                if typ is bool:
                    value = raw_value.lower() in ("true", "1", "yes", "on")
                elif typ is int:
                    value = int(raw_value)
                elif typ is float:
                    value = float(raw_value)
                else:
                    value = raw_value
            except ValueError as e:
                raise ConfigError(
                    f"Invalid value for [{section}].{key}: {raw_value!r} (expected {typ.__name__})"
                ) from e
        else:
            value = default

        if typ in (int, float) and value is not None:
            if min_val is not None and value < min_val:
                raise ConfigError(
                    f"Value for [{section}].{key} is {value}, but minimum is {min_val}"
                )
            if max_val is not None and value > max_val:
                raise ConfigError(
                    f"Value for [{section}].{key} is {value}, but maximum is {max_val}"
                )

        result[key] = value

    return result


def _defaults(section: str) -> Any:
    values = {key: default for key, (_, default, _, _, _) in CONFIG_SCHEMA[section].items()}
    return _SECTION_TYPES[section](**values)


@dataclass(frozen=True)
class Config:
    """Complete application configuration."""

    data_dir: Path
    embedding_provider: str = "local"
    embedding_model: str = "all-MiniLM-L6-v2"
    embedding_api_key: Optional[str] = None
    embedding_endpoint: Optional[str] = None
    log_level: str = "INFO"

    vector: VectorConfig = None  # type: ignore[assignment]
    search: SearchConfig = None  # type: ignore[assignment]
    embedding: EmbeddingConfig = None  # type: ignore[assignment]
    storage: StorageConfig = None  # type: ignore[assignment]

    def __post_init__(self):
        """Initialize section configs with defaults if not provided."""
        for section in _SECTION_TYPES:
            if getattr(self, section) is None:
                object.__setattr__(self, section, _defaults(section))

    @property
    def store_path(self) -> Path:
        """Directory holding metadata.json, vector-index.bin and id-mapping.json."""
        return self.data_dir / self.storage.store_dir

    @property
    def metadata_path(self) -> Path:
        return self.store_path / METADATA_FILE

    @property
    def index_path(self) -> Path:
        return self.store_path / INDEX_FILE

    @property
    def mapping_path(self) -> Path:
        return self.store_path / MAPPING_FILE

    @property
    def registry_path(self) -> Path:
        """JSON file holding the framework registry."""
        return self.data_dir / "framework-registry.json"


def _load_config(data_dir: Path, config_path: Optional[Path] = None) -> Config:
    """Load configuration sections from an INI file.

    Args:
        data_dir: Root documentation storage directory.
        config_path: Path to config file. If None, uses defaults from schema.

    Returns:
        Config object with all sections populated.

    Raises:
        ConfigError: If validation fails
    """
    parser = ConfigParser()

    if config_path and config_path.exists():
        parser.read(config_path)

    sections = {
        name: section_type(**_load_section(parser, name, CONFIG_SCHEMA[name]))
        for name, section_type in _SECTION_TYPES.items()
    }
    return Config(data_dir=data_dir, **sections)


@lru_cache(maxsize=1)
def load_settings() -> Config:
    """Load settings from environment variables and config file.

    Settings are cached for the lifetime of the application.
    Use load_settings.cache_clear() to reload settings.

    Returns:
        Config object populated from environment variables and config file.

    Raises:
        ConfigError: If the config file or an environment value is invalid.
    """
    data_dir = Path(os.getenv("DOCS_STORAGE_PATH", "./docs"))

    config_env = os.getenv("DOCSEARCH_CONFIG")
    config_file = Path(config_env) if config_env else data_dir / "config.ini"
    try:
        config_exists = config_file.exists()
    except PermissionError:
        config_exists = False
    base_config = _load_config(data_dir, config_file if config_exists else None)

    provider = os.getenv("EMBEDDING_PROVIDER", "local").lower()
    if provider not in ("local", "litellm"):
        raise ConfigError(f"Unknown EMBEDDING_PROVIDER {provider!r} (expected local or litellm)")

    default_model = "all-MiniLM-L6-v2" if provider == "local" else "text-embedding-3-small"

    return Config(
        data_dir=data_dir,
        embedding_provider=provider,
        embedding_model=os.getenv("EMBEDDING_MODEL", default_model),
        embedding_api_key=os.getenv("EMBEDDING_API_KEY"),
        embedding_endpoint=os.getenv("EMBEDDING_ENDPOINT"),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        vector=base_config.vector,
        search=base_config.search,
        embedding=base_config.embedding,
        storage=base_config.storage,
    )
