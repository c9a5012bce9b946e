"""Configuration management for lomad."""

import json
import logging
from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from .api_clients.base_client import DEFAULT_API_URL

logger = logging.getLogger(__name__)


class GitHubConfig(BaseModel):
    """Configuration for GitHub API access."""

    api_url: str = Field(
        default=DEFAULT_API_URL, description="GitHub REST API base URL"
    )
    owner: str = Field(
        default="loot", description="Organisation owning the masterlist repositories"
    )
    token_env_var: str = Field(
        default="GITHUB_TOKEN",
        description="Environment variable read when --token is not given",
    )
    timeout: float = Field(default=30.0, description="Request timeout in seconds")

    @field_validator("api_url")
    @classmethod
    def validate_api_url(cls, v: str) -> str:
        v = v.strip().rstrip("/")
        if not v.startswith(("http://", "https://")):
            raise ValueError(
                f"Unsupported API URL '{v}'. Only HTTP and HTTPS are supported"
            )
        return v


class LinkCheckConfig(BaseModel):
    """Configuration for link liveness checks."""

    timeout: float = Field(default=10.0, description="Timeout for a single probe")
    max_concurrency: int = Field(
        default=10, description="Maximum number of probes in flight"
    )
    user_agent: Optional[str] = Field(
        default=None, description="User-Agent sent with probes (default: lomad/<version>)"
    )

    @field_validator("max_concurrency")
    @classmethod
    def validate_max_concurrency(cls, v: int) -> int:
        if v < 1:
            raise ValueError("max_concurrency must be at least 1")
        return v


class MasterlistConfig(BaseModel):
    """Configuration for masterlist edits."""

    filename: str = Field(
        default="masterlist.yaml", description="Masterlist path in each repository"
    )
    version_commit_message: str = Field(
        default="Update LOOT version check for new release message",
        description="Commit message used when updating the LOOT version condition",
    )
    url_commit_message: str = Field(
        default="Replace {old_url} with {new_url}",
        description="Commit message template used when rewriting a URL",
    )

    @field_validator("url_commit_message")
    @classmethod
    def validate_url_commit_message(cls, v: str) -> str:
        try:
            v.format(old_url="", new_url="")
        except (KeyError, IndexError, ValueError) as e:
            raise ValueError(
                f"url_commit_message may only use {{old_url}} and {{new_url}}: {e}"
            )
        return v


class Config(BaseModel):
    """Main configuration for lomad."""

    github: GitHubConfig = Field(default_factory=GitHubConfig)
    link_check: LinkCheckConfig = Field(default_factory=LinkCheckConfig)
    masterlist: MasterlistConfig = Field(default_factory=MasterlistConfig)
    known_repositories: List[str] = Field(
        default=["oblivion", "skyrim", "fallout3", "falloutnv", "fallout4"],
        description="Repositories selected by --all-repositories",
    )


class ConfigManager:
    """Manages configuration loading and saving."""

    DEFAULT_CONFIG_PATH = Path(".lomad/config.json")

    def __init__(self, config_path: Optional[Path] = None):
        self.config_path = config_path or self.DEFAULT_CONFIG_PATH
        self._config: Optional[Config] = None

    def load(self) -> Config:
        """Load configuration from file, or defaults when it does not exist."""
        if self.config_path.exists():
            try:
                with open(self.config_path, "r") as f:
                    data = json.load(f)
                self._config = Config(**data)
            except Exception as e:
                raise ValueError(f"Failed to load config from {self.config_path}: {e}")
            logger.debug(f"Loaded configuration from {self.config_path}")
        else:
            self._config = Config()

        return self._config

    def save(self, config: Optional[Config] = None) -> None:
        """Save configuration to file."""
        if config is None:
            config = self._config

        if config is None:
            raise ValueError("No configuration to save")

        self.config_path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.config_path, "w") as f:
            json.dump(config.model_dump(), f, indent=2)
