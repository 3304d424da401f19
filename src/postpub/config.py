"""Application configuration: settings schema and config.yaml loader"""

import json
import os
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import BaseModel, Field, field_validator
from pygments.styles import get_all_styles


CONFIG_FILE = "config.yaml"
ENV_PREFIX = "POSTPUB_"


class Settings(BaseModel):
    app_name:            str = "postpub"
    content_dir:         str = Field(default="content",  description="Root of the content tree")
    asset_dir:           str = Field(default="assets",   description="Root that image references resolve against")
    snippets_dir:        Optional[str] = Field(default=None, description="Root that include directives resolve against first")
    output_dir:          str = Field(default="dist",     description="Directory for rendered HTML + JSON files")
    extensions:          list[str] = Field(default=[".md", ".markdown", ".adoc"], description="Recognized source suffixes")
    front_matter_marker: str = Field(default="---", min_length=1, description="Line delimiting the front matter block")
    image_url_prefix:    str = Field(default="/images",  description="URL prefix for images resolved in asset_dir")
    highlight_style:     str = Field(default="default",  description="Pygments style name for code blocks")
    workers:             int = Field(default=4, ge=1,    description="Documents processed in parallel")
    site_title:          str = Field(default="postpub",  description="Suffix for page <title> elements")
    log_level:           str = Field(default="WARNING", pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$")

    @field_validator("extensions", mode="before")
    @classmethod
    def _split_extensions(cls, value: Any) -> Any:
        """Accept '.md,.adoc' (env vars) as well as a list; normalize to lowercase dotted suffixes."""
        if isinstance(value, str):
            value = json.loads(value) if value.startswith("[") else value.split(",")
        return [s if s.startswith(".") else f".{s}" for s in (v.strip().lower() for v in value) if s]

    @field_validator("highlight_style")
    @classmethod
    def _known_style(cls, value: str) -> str:
        if value not in set(get_all_styles()):
            raise ValueError(f"unknown Pygments style '{value}'")
        return value

    @field_validator("log_level", mode="before")
    @classmethod
    def _upper_level(cls, value: Any) -> Any:
        return value.upper() if isinstance(value, str) else value


def load_config(overrides: dict[str, Any] = None) -> Settings:
    """Load Settings from config.yaml, then POSTPUB_<FIELD> env vars, then non-None CLI overrides."""
    data: dict[str, Any] = {}
    if Path(CONFIG_FILE).exists():
        try:
            data = yaml.safe_load(Path(CONFIG_FILE).read_text()) or {}
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid {CONFIG_FILE}: {e}") from e
        if not isinstance(data, dict):
            raise ValueError(f"Invalid {CONFIG_FILE}: expected a mapping, got {type(data).__name__}")

    for name in Settings.model_fields:
        if val := os.getenv(f"{ENV_PREFIX}{name.upper()}"):
            data[name] = val

    if overrides:
        data.update({k: v for k, v in overrides.items() if v is not None})
    return Settings(**data)
