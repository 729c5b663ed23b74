"""Configuration models and loading logic."""

from __future__ import annotations

import os
from pathlib import Path
from typing import ClassVar

from pydantic import BaseModel, ConfigDict, Field
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)

DEFAULT_SETTINGS_FILE = Path("configs/settings.yaml")
SETTINGS_FILE_ENV = "ZKASM_HARNESS_SETTINGS_FILE"


class StrictModel(BaseModel):
    """Base for settings sections; unknown keys are rejected."""

    model_config = ConfigDict(extra="forbid")


class ProjectConfig(StrictModel):
    """Project metadata settings."""

    name: str = "zkasm_harness"
    env: str = "dev"


class PathsConfig(StrictModel):
    """Filesystem locations read or written by a harness run."""

    pil_source: Path = Path("./node_modules/@0xpolygonhermez/zkevm-proverjs/pil/main.pil")
    cache_file: Path = Path("./node_modules/@0xpolygonhermez/zkevm-proverjs/cache-main-pil.json")
    counters_report: Path = Path("./artifacts/inst_counters.json")
    logs_root: Path = Path("./logs")

    def resolved(self, project_root: Path) -> "PathsConfig":
        """Return a copy with project-relative paths resolved to absolute paths."""

        updates: dict[str, Path] = {}
        for field_name in type(self).model_fields:
            value = getattr(self, field_name)
            updates[field_name] = value if value.is_absolute() else (project_root / value).resolve()
        return self.model_copy(update=updates)


class PilConfig(StrictModel):
    """Constraint-system compilation parameters for the shared artifact."""

    domain_size: int = Field(default=4096, ge=1)
    namespaces: list[str] = Field(default_factory=lambda: ["Main", "Global"], min_length=1)
    disable_unused_error: bool = True


class AssemblerConfig(StrictModel):
    """Options passed to the assembly compiler for every test file."""

    allow_undefined_labels: bool = True
    allow_overwrite_labels: bool = True
    defines: list[str] = Field(default_factory=list)


class ExecutionConfig(StrictModel):
    """VM executor switches applied to every test run."""

    debug: bool = True
    max_steps: int = Field(default=8388608, ge=1)
    assert_outputs: bool = False


class DiscoveryConfig(StrictModel):
    """Test-file selection conventions."""

    extension: str = Field(default=".zkasm", min_length=1)
    ignore_marker: str = Field(default="ignore", min_length=1)


class ToolchainConfig(StrictModel):
    """Import path of the factory that builds the external toolchain."""

    factory: str | None = None


class HarnessSettings(BaseSettings):
    """Top-level harness settings."""

    _yaml_file_override: ClassVar[Path | None] = None

    project: ProjectConfig = Field(default_factory=ProjectConfig)
    paths: PathsConfig = Field(default_factory=PathsConfig)
    pil: PilConfig = Field(default_factory=PilConfig)
    assembler: AssemblerConfig = Field(default_factory=AssemblerConfig)
    execution: ExecutionConfig = Field(default_factory=ExecutionConfig)
    discovery: DiscoveryConfig = Field(default_factory=DiscoveryConfig)
    toolchain: ToolchainConfig = Field(default_factory=ToolchainConfig)
    # Read from ZKASM_HARNESS_SETTINGS_FILE; only resolve_settings_file acts on it.
    settings_file: Path | None = Field(default=None, exclude=True)

    model_config = SettingsConfigDict(
        env_prefix="ZKASM_HARNESS_",
        env_nested_delimiter="__",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="forbid",
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Use YAML defaults while allowing env vars to override values."""

        yaml_file = resolve_settings_file(cls._yaml_file_override)
        yaml_settings = YamlConfigSettingsSource(settings_cls, yaml_file=yaml_file)
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            yaml_settings,
            file_secret_settings,
        )

    def as_dict(self) -> dict[str, object]:
        """Return settings as a standard nested dictionary."""

        return self.model_dump(mode="json")


def find_project_root(start: Path | None = None) -> Path:
    """Locate the project root by traversing upward for config markers."""

    current = (start or Path.cwd()).resolve()
    for candidate in (current, *current.parents):
        if (candidate / DEFAULT_SETTINGS_FILE).exists():
            return candidate
    return current


def resolve_settings_file(override: Path | None = None) -> Path:
    """Resolve settings file from explicit override, env var, or default."""

    chosen = override
    if chosen is None:
        env_value = os.getenv(SETTINGS_FILE_ENV)
        if env_value:
            chosen = Path(env_value)
    if chosen is None:
        chosen = DEFAULT_SETTINGS_FILE

    if not chosen.is_absolute():
        chosen = (find_project_root() / chosen).resolve()
    return chosen


def load_settings(config_file: Path | None = None) -> HarnessSettings:
    """Load settings with YAML defaults and environment variable overrides."""

    settings_file = resolve_settings_file(config_file)
    project_root = settings_file.parent.parent.resolve()
    HarnessSettings._yaml_file_override = settings_file
    try:
        settings = HarnessSettings()
    finally:
        HarnessSettings._yaml_file_override = None
    resolved_paths = settings.paths.resolved(project_root=project_root)
    return settings.model_copy(update={"paths": resolved_paths})
