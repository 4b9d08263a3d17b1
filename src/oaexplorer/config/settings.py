"""Application settings: pydantic-based configuration with YAML and env var support.

Configuration is loaded from (in order of precedence):
  1. YAML config file values (when loaded through ``Settings.from_yaml``)
  2. Environment variables (OAX_ prefix), for keys the YAML file leaves unset
  3. .env file
  4. Default values
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated, Any, Literal

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings


class ServerSettings(BaseModel):
    """HTTP server configuration."""

    host: str = Field(default="0.0.0.0", description="Server bind address")
    port: int = Field(default=8080, description="Server port")
    workers: int = Field(default=1, description="Number of worker processes")
    cors_origins: list[str] = Field(default=["*"], description="Allowed CORS origins")


# ── Search backends ──────────────────────────────────────────────────────


class _BackendSettingsBase(BaseModel):
    timeout: float = Field(default=10.0, gt=0, description="Backend request timeout in seconds")
    ensure_index_on_startup: bool = Field(
        default=True,
        description="Create the index/collection at startup when missing",
    )


class TypesenseSettings(_BackendSettingsBase):
    """Typesense collection backend."""

    kind: Literal["typesense"] = "typesense"
    host: str = Field(default="localhost", description="Typesense host")
    port: int = Field(default=8108, description="Typesense port")
    protocol: Literal["http", "https"] = Field(default="http", description="Typesense protocol")
    api_key: str = Field(default="xyz", description="Typesense API key")
    collection: str = Field(default="oa_records", description="Collection name")

    @property
    def base_url(self) -> str:
        return f"{self.protocol}://{self.host}:{self.port}"


class MeilisearchSettings(_BackendSettingsBase):
    """Meilisearch index backend."""

    kind: Literal["meilisearch"] = "meilisearch"
    url: str = Field(default="http://localhost:7700", description="Meilisearch URL")
    api_key: str | None = Field(default=None, description="Master or API key")
    index: str = Field(default="oa_records", description="Index UID")


class AlgoliaSettings(_BackendSettingsBase):
    """Algolia index backend."""

    kind: Literal["algolia"] = "algolia"
    app_id: str = Field(default="", description="Algolia application id")
    api_key: str = Field(default="", description="Algolia admin API key")
    index: str = Field(default="oa_records", description="Primary index name")


BackendSettings = Annotated[
    TypesenseSettings | MeilisearchSettings | AlgoliaSettings,
    Field(discriminator="kind"),
]


# ── Sources ──────────────────────────────────────────────────────────────


class ConnectorSettings(BaseModel):
    """Configuration for a single source connector."""

    enabled: bool = Field(default=True, description="Whether this connector is queried")
    base_url: str | None = Field(default=None, description="Override the vendor API base URL")
    api_key: str | None = Field(default=None, description="Vendor API key, where the vendor uses one")
    timeout: float = Field(default=15.0, gt=0, description="HTTP timeout in seconds")
    extra: dict[str, Any] = Field(default_factory=dict, description="Connector-specific options")


class FederationSettings(BaseModel):
    """Fan-out behavior across source connectors."""

    connector_timeout: float = Field(default=10.0, gt=0, description="Per-connector time budget in seconds")
    max_results: int = Field(default=50, ge=1, le=200, description="Per-connector result cap")
    user_agent: str = Field(default="oaexplorer/0.1", description="User-Agent sent to vendor APIs")
    contact_email: str | None = Field(default=None, description="Contact address for polite API pools")


class EnrichmentSettings(BaseModel):
    """Crossref and Unpaywall lookups for ingested records that carry a DOI."""

    crossref: bool = Field(default=True, description="Fill bibliographic gaps from Crossref")
    unpaywall: bool = Field(
        default=True,
        description="Fill PDF links and OA status from Unpaywall (needs federation.contact_email)",
    )
    crossref_url: str = Field(default="https://api.crossref.org", description="Crossref REST API base URL")
    unpaywall_url: str = Field(default="https://api.unpaywall.org/v2", description="Unpaywall API base URL")
    timeout: float = Field(default=10.0, gt=0, description="Per-lookup timeout in seconds")
    max_lookups: int = Field(default=20, ge=0, description="DOIs looked up per ingest")
    concurrency: int = Field(default=10, ge=1, description="Lookups in flight at once")


class PdfSettings(BaseModel):
    """Full-text link resolution."""

    verify_links: bool = Field(default=True, description="Probe candidate links with HEAD requests")
    probe_timeout: float = Field(default=5.0, gt=0, description="Per-probe timeout in seconds")


class ObservabilitySettings(BaseModel):
    """Observability configuration."""

    log_level: str = Field(default="info", description="Log level: debug, info, warning, error")
    log_format: str = Field(default="json", description="Log format: json, console")


class Settings(BaseSettings):
    """Root application settings.

    Configuration is loaded from environment variables with the OAX_ prefix.
    Nested settings use double underscores. The backend is a tagged union
    keyed on ``kind``; overriding it from the environment requires the kind:

    Example:
        OAX_SERVER__PORT=9090
        OAX_BACKEND__KIND=meilisearch
        OAX_BACKEND__URL=http://localhost:7700
        OAX_CONNECTORS__CORE__API_KEY=...
    """

    model_config = {
        "env_prefix": "OAX_",
        "env_nested_delimiter": "__",
        "case_sensitive": False,
        "env_file": ".env",
        "env_file_encoding": "utf-8",
    }

    app_name: str = Field(default="Open Access Explorer", description="Application name")
    debug: bool = Field(default=False, description="Debug mode")

    server: ServerSettings = Field(default_factory=ServerSettings)
    backend: BackendSettings = Field(default_factory=TypesenseSettings)
    connectors: dict[str, ConnectorSettings] = Field(
        default_factory=dict,
        description="Per-source overrides; sources without an entry use defaults",
    )
    federation: FederationSettings = Field(default_factory=FederationSettings)
    enrichment: EnrichmentSettings = Field(default_factory=EnrichmentSettings)
    pdf: PdfSettings = Field(default_factory=PdfSettings)
    observability: ObservabilitySettings = Field(default_factory=ObservabilitySettings)

    @field_validator("connectors", mode="before")
    @classmethod
    def _lowercase_sources(cls, v: Any) -> Any:
        if isinstance(v, dict):
            return {str(k).lower(): cfg for k, cfg in v.items()}
        return v

    def connector(self, name: str) -> ConnectorSettings:
        """Settings for one source, falling back to defaults."""
        return self.connectors.get(name) or ConnectorSettings()

    @classmethod
    def from_yaml(cls, path: str | Path) -> Settings:
        """Load settings from a YAML configuration file.

        Values from the YAML file are used as init values; environment
        variables override them only where the YAML file is silent.

        Args:
            path: Path to the YAML config file.

        Returns:
            Populated Settings instance.
        """
        import yaml  # type: ignore[import-untyped]

        config_path = Path(path)
        if not config_path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")

        with open(config_path) as f:
            data = yaml.safe_load(f) or {}

        return cls(**data)
