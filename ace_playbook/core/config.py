"""Configuration loader for the ACE playbook.

Loads from configs/default.toml and overrides with environment variables.
"""

import os
import tomllib
from dataclasses import dataclass
from pathlib import Path

EMBEDDING_PROVIDERS = ("openai", "gemini", "local", "mock")

# Only present in a source checkout; installed copies run on the built-in defaults
DEFAULT_CONFIG_PATH = Path(__file__).parent.parent.parent / "configs" / "default.toml"


@dataclass
class DatabaseConfig:
    url: str


@dataclass
class EmbeddingsConfig:
    enabled: bool
    provider: str
    model: str
    base_url: str
    api_key: str
    max_chars: int


@dataclass
class RetrievalConfig:
    top_k: int
    min_similarity: float
    max_query_tokens: int


@dataclass
class CurationConfig:
    dedup_threshold: float
    min_content_chars: int


@dataclass
class RenderConfig:
    injection_max_tokens: int
    curator_max_tokens: int


@dataclass
class LoggingConfig:
    level: str
    format: str


@dataclass
class MCPConfig:
    transport: str
    port: int


@dataclass
class ACEConfig:
    database: DatabaseConfig
    embeddings: EmbeddingsConfig
    retrieval: RetrievalConfig
    curation: CurationConfig
    render: RenderConfig
    logging: LoggingConfig
    mcp: MCPConfig


def _as_bool(value: object) -> bool:
    return str(value).lower() in ("true", "1", "yes")


def _validate_config(config: ACEConfig) -> None:
    """Validate configuration values.

    Args:
        config: ACEConfig to validate

    Raises:
        ValueError: If validation fails
    """
    if config.embeddings.provider not in EMBEDDING_PROVIDERS:
        raise ValueError(
            f"embeddings.provider must be one of {EMBEDDING_PROVIDERS}, "
            f"got {config.embeddings.provider}"
        )
    if config.embeddings.max_chars < 1:
        raise ValueError(f"embeddings.max_chars must be >= 1, got {config.embeddings.max_chars}")

    if config.retrieval.top_k < 1:
        raise ValueError(f"retrieval.top_k must be >= 1, got {config.retrieval.top_k}")
    if not 0.0 <= config.retrieval.min_similarity <= 1.0:
        val = config.retrieval.min_similarity
        raise ValueError(f"retrieval.min_similarity must be in [0.0, 1.0], got {val}")
    if config.retrieval.max_query_tokens < 1:
        val = config.retrieval.max_query_tokens
        raise ValueError(f"retrieval.max_query_tokens must be >= 1, got {val}")

    if not 0.0 <= config.curation.dedup_threshold <= 1.0:
        val = config.curation.dedup_threshold
        raise ValueError(f"curation.dedup_threshold must be in [0.0, 1.0], got {val}")
    if config.curation.min_content_chars < 1:
        val = config.curation.min_content_chars
        raise ValueError(f"curation.min_content_chars must be >= 1, got {val}")

    if config.render.injection_max_tokens < 1 or config.render.curator_max_tokens < 1:
        raise ValueError("render budgets must be >= 1")

    valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
    if config.logging.level.upper() not in valid_levels:
        raise ValueError(f"logging.level must be one of {valid_levels}, got {config.logging.level}")

    valid_transports = {"stdio", "http", "sse"}
    if config.mcp.transport not in valid_transports:
        msg = f"mcp.transport must be one of {valid_transports}, got {config.mcp.transport}"
        raise ValueError(msg)
    if config.mcp.port < 1 or config.mcp.port > 65535:
        raise ValueError(f"mcp.port must be in [1, 65535], got {config.mcp.port}")


def load_config(config_path: Path | None = None) -> ACEConfig:
    """Load configuration from TOML file and override with env vars.

    Args:
        config_path: Path to TOML config file. Defaults to configs/default.toml,
            or to built-in values when that file is not there

    Returns:
        ACEConfig instance with merged configuration

    Raises:
        FileNotFoundError: If an explicit config_path does not exist
        ValueError: If configuration validation fails
    """
    if config_path is None:
        config_path = DEFAULT_CONFIG_PATH if DEFAULT_CONFIG_PATH.exists() else None

    config_dict: dict = {}
    if config_path is not None:
        with open(config_path, "rb") as f:
            config_dict = tomllib.load(f)

    embeddings_dict = config_dict.get("embeddings", {})
    retrieval_dict = config_dict.get("retrieval", {})
    curation_dict = config_dict.get("curation", {})
    render_dict = config_dict.get("render", {})

    database_dict = config_dict.get("database", {})
    database_url = os.getenv("ACE_DB_URL", database_dict.get("url", "sqlite:///ace_playbook.db"))

    embeddings_enabled = _as_bool(
        os.getenv("ACE_EMBEDDINGS_ENABLED", embeddings_dict.get("enabled", False))
    )
    embeddings_provider = os.getenv(
        "ACE_EMBEDDINGS_PROVIDER", embeddings_dict.get("provider", "openai")
    )
    embeddings_model = os.getenv(
        "ACE_EMBEDDINGS_MODEL", embeddings_dict.get("model", "text-embedding-3-small")
    )
    embeddings_base_url = os.getenv("ACE_EMBEDDINGS_BASE_URL", embeddings_dict.get("base_url", ""))
    # Keys are never read from the TOML file
    embeddings_api_key = os.getenv("ACE_EMBEDDINGS_API_KEY", "")
    embeddings_max_chars = int(
        os.getenv("ACE_EMBEDDINGS_MAX_CHARS", embeddings_dict.get("max_chars", 2000))
    )

    retrieval_topk = int(os.getenv("ACE_RETRIEVAL_TOPK", retrieval_dict.get("top_k", 10)))
    retrieval_min_similarity = float(
        os.getenv("ACE_RETRIEVAL_MIN_SIMILARITY", retrieval_dict.get("min_similarity", 0.25))
    )
    retrieval_max_query_tokens = int(
        os.getenv("ACE_RETRIEVAL_MAX_QUERY_TOKENS", retrieval_dict.get("max_query_tokens", 8))
    )

    dedup_threshold = float(
        os.getenv("ACE_DEDUP_THRESHOLD", curation_dict.get("dedup_threshold", 0.92))
    )
    min_content_chars = int(
        os.getenv("ACE_MIN_CONTENT_CHARS", curation_dict.get("min_content_chars", 8))
    )

    injection_max_tokens = int(
        os.getenv("ACE_INJECTION_MAX_TOKENS", render_dict.get("injection_max_tokens", 1200))
    )
    curator_max_tokens = int(
        os.getenv("ACE_CURATOR_MAX_TOKENS", render_dict.get("curator_max_tokens", 2500))
    )

    logging_dict = config_dict.get("logging", {})
    mcp_dict = config_dict.get("mcp", {})
    log_level = os.getenv("ACE_LOG_LEVEL", logging_dict.get("level", "INFO"))
    log_format = os.getenv("ACE_LOG_FORMAT", logging_dict.get("format", "json"))
    mcp_transport = os.getenv("MCP_TRANSPORT", mcp_dict.get("transport", "stdio"))
    mcp_port = int(os.getenv("MCP_PORT", mcp_dict.get("port", 8000)))

    config = ACEConfig(
        database=DatabaseConfig(url=database_url),
        embeddings=EmbeddingsConfig(
            enabled=embeddings_enabled,
            provider=embeddings_provider,
            model=embeddings_model,
            base_url=embeddings_base_url,
            api_key=embeddings_api_key,
            max_chars=embeddings_max_chars,
        ),
        retrieval=RetrievalConfig(
            top_k=retrieval_topk,
            min_similarity=retrieval_min_similarity,
            max_query_tokens=retrieval_max_query_tokens,
        ),
        curation=CurationConfig(
            dedup_threshold=dedup_threshold,
            min_content_chars=min_content_chars,
        ),
        render=RenderConfig(
            injection_max_tokens=injection_max_tokens,
            curator_max_tokens=curator_max_tokens,
        ),
        logging=LoggingConfig(level=log_level, format=log_format),
        mcp=MCPConfig(transport=mcp_transport, port=mcp_port),
    )

    _validate_config(config)

    return config


# Global config instance, used by the CLI and MCP server only
_config: ACEConfig | None = None


def get_config() -> ACEConfig:
    """Get the global config instance, loading it if necessary."""
    global _config
    if _config is None:
        _config = load_config()
    return _config
