"""Configuration management for the QIG search daemon."""

from pathlib import Path
from typing import Optional, List

import yaml
from loguru import logger
from pydantic import BaseModel, Field, field_validator


DEFAULT_TARGET_ADDRESS = "15BKWJjL5YWXtaP449WAYqVYZQE1szicTn"


class ServerConfig(BaseModel):
    host: str = "localhost"
    port: int = 8766


class SearchConfig(BaseModel):
    chunk_size: int = 10
    chunk_yield_ms: int = 100
    high_phi_threshold: float = 75.0
    rate_window_s: float = 1.0
    event_log_size: int = 100

    @field_validator('chunk_size', 'event_log_size')
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("must be at least 1")
        return v

    @field_validator('chunk_yield_ms')
    @classmethod
    def validate_yield(cls, v: int) -> int:
        if v < 0:
            raise ValueError("chunk_yield_ms must not be negative")
        return v

    @field_validator('high_phi_threshold')
    @classmethod
    def validate_threshold(cls, v: float) -> float:
        if not 0 <= v <= 100:
            raise ValueError("high_phi_threshold must be between 0 and 100")
        return v

    @field_validator('rate_window_s')
    @classmethod
    def validate_window(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("rate_window_s must be positive")
        return v


class StoreConfig(BaseModel):
    capacity: int = 100

    @field_validator('capacity')
    @classmethod
    def validate_capacity(cls, v: int) -> int:
        if v < 1:
            raise ValueError("capacity must be at least 1")
        return v


class TargetConfig(BaseModel):
    address: str
    label: Optional[str] = None


class DeriverConfig(BaseModel):
    compressed: bool = False


class ScoringConfig(BaseModel):
    keywords_path: Optional[Path] = None


class OrchestratorConfig(BaseModel):
    enabled: bool = False
    url: str = "http://localhost:5001"
    timeout_s: float = 10.0


class LoggingConfig(BaseModel):
    level: str = "INFO"
    log_dir: Optional[Path] = None


class Config(BaseModel):
    """Main configuration for the QIG search daemon."""

    server: ServerConfig = Field(default_factory=ServerConfig)
    search: SearchConfig = Field(default_factory=SearchConfig)
    store: StoreConfig = Field(default_factory=StoreConfig)
    targets: List[TargetConfig] = Field(
        default_factory=lambda: [TargetConfig(address=DEFAULT_TARGET_ADDRESS, label="default")]
    )
    deriver: DeriverConfig = Field(default_factory=DeriverConfig)
    scoring: ScoringConfig = Field(default_factory=ScoringConfig)
    orchestrator: OrchestratorConfig = Field(default_factory=OrchestratorConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @field_validator('targets')
    @classmethod
    def validate_targets(cls, v: List[TargetConfig]) -> List[TargetConfig]:
        if not v:
            raise ValueError("at least one target address is required")
        return v

    @classmethod
    def load(cls, config_path: Optional[Path] = None) -> "Config":
        """Load configuration from YAML file."""
        if config_path is None:
            # Try default locations
            candidates = [
                Path("qigsearch.yaml"),
                Path.home() / ".config" / "qigsearch" / "config.yaml",
                Path("/etc/qigsearch/config.yaml"),
            ]
            for candidate in candidates:
                if candidate.exists():
                    config_path = candidate
                    break
            else:
                logger.warning(
                    f"No config file found, using defaults. Searched: {[str(c) for c in candidates]}"
                )
                return cls()
        elif not Path(config_path).exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")

        logger.info(f"Loading config from: {config_path}")
        with open(config_path, 'r') as f:
            data = yaml.safe_load(f) or {}

        return cls(**data)

    def save(self, config_path: Path) -> None:
        """Save configuration to YAML file."""
        config_path.parent.mkdir(parents=True, exist_ok=True)
        with open(config_path, 'w') as f:
            yaml.safe_dump(self.model_dump(mode='json'), f, default_flow_style=False)
