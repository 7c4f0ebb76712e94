"""Configuration models for binsync."""

import os
from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, ValidationError, field_validator

from binsync.errors import ConfigError


class ProjectConfig(BaseModel):
    """Where the toolchain runs and where artifacts land."""

    work_dir: str = "."
    output_root: str = "OUTPUT"
    staging_dir: str = ".binsync/staging"


class ToolchainConfig(BaseModel):
    """Environment and limits for toolchain invocations."""

    env: dict[str, str] = {"RUSTFLAGS": "-C link-arg=-s"}
    env_passthrough: list[str] = []  # Env var names to pass from current environment
    timeout: str = "2h"

    @field_validator("timeout")
    @classmethod
    def validate_duration(cls, v: str) -> str:
        parse_duration(v)
        return v


class TargetConfig(BaseModel):
    """A target as written in the config file."""

    id: str
    build_args: list[str]
    output_subdir: str
    artifacts: list[str] = []


class RemoteConfig(BaseModel):
    """Remote object store configuration."""

    type: Literal["s3", "local"] = "s3"
    bucket: str | None = None
    prefix: str = ""
    endpoint_url: str | None = None
    region: str = "us-east-1"
    key_id_env: str = "B2_KEYID"
    app_key_env: str = "B2_APPKEY"
    trust_etag: bool = True

    def credentials(self) -> tuple[str | None, str | None]:
        """Read credentials from the configured environment variables."""
        return os.environ.get(self.key_id_env), os.environ.get(self.app_key_env)


class SyncConfig(BaseModel):
    """Sync policy and worker pool limits."""

    delete_stale: bool = False
    concurrency: int = 8
    max_attempts: int = 3
    backoff_base: float = 1.0
    backoff_max: float = 30.0
    fail_fast: bool = False
    allow_mass_delete: bool = False

    @field_validator("concurrency", "max_attempts")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("must be at least 1")
        return v


class BinsyncConfig(BaseModel):
    """Main binsync configuration."""

    project: ProjectConfig = ProjectConfig()
    toolchain: ToolchainConfig = ToolchainConfig()
    targets: list[TargetConfig] | None = None  # None selects the built-in registry
    remote: RemoteConfig = RemoteConfig()
    sync: SyncConfig = SyncConfig()


def parse_duration(duration_str: str) -> int:
    """Parse duration string to seconds. Supports: 30s, 5m, 2h, 1d."""
    duration_str = duration_str.strip().lower()
    if not duration_str:
        raise ValueError("Empty duration string")

    multipliers = {"s": 1, "m": 60, "h": 3600, "d": 86400}
    unit = duration_str[-1]

    if unit not in multipliers:
        raise ValueError(f"Invalid duration unit: {unit}. Use s, m, h, or d.")

    try:
        value = int(duration_str[:-1])
    except ValueError:
        raise ValueError(f"Invalid duration value: {duration_str[:-1]}")

    return value * multipliers[unit]


def parse_destination(uri: str) -> RemoteConfig:
    """Parse ``s3://bucket/prefix`` or ``file:///dir/prefix`` into a RemoteConfig.

    For ``file://`` destinations the bucket is the directory and the prefix is
    empty, so objects land directly beneath it.
    """
    if uri.startswith("s3://") or uri.startswith("b2://"):
        bucket, _, prefix = uri[5:].partition("/")
        if not bucket:
            raise ConfigError(f"Destination has no bucket: {uri}")
        return RemoteConfig(type="s3", bucket=bucket, prefix=prefix)
    if uri.startswith("file://"):
        path = uri[len("file://"):]
        if not path:
            raise ConfigError(f"Destination has no path: {uri}")
        return RemoteConfig(type="local", bucket=path)
    raise ConfigError(f"Unsupported destination: {uri}. Use s3://bucket/prefix or file:///path")


def load_config(path: Path) -> BinsyncConfig:
    """Load configuration from YAML file. A missing file yields the defaults."""
    if not path.exists():
        return BinsyncConfig()
    with open(path) as f:
        try:
            data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {path}: {e}")
    try:
        return BinsyncConfig(**(data or {}))
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration in {path}:\n{e}")


def get_config_template() -> str:
    """Get the default configuration template."""
    return """# binsync configuration

project:
  work_dir: .  # Where the toolchain runs
  output_root: OUTPUT  # Canonical artifact tree, one subdir per target
  staging_dir: .binsync/staging

toolchain:
  env:
    RUSTFLAGS: "-C link-arg=-s"
  env_passthrough: []
  timeout: 2h

# Omit 'targets' to use the built-in registry (see 'binsync targets').
# build_args may use {target}, {output_dir} and {work_dir}.
# artifacts are globs relative to work_dir; empty means "whatever the
# toolchain wrote to $BINSYNC_OUTPUT_DIR".
targets:
  - id: x86_64-unknown-linux-musl
    build_args: [cross, build, --release, --locked, --target, "{target}"]
    output_subdir: linux-x64
    artifacts:
      - "target/{target}/release/geph4-client"
  - id: x86_64-pc-windows-gnu
    build_args: [cross, build, --release, --locked, --target, "{target}"]
    output_subdir: windows-x64
    artifacts:
      - "target/{target}/release/geph4-client.exe"

remote:
  type: s3  # 's3' (any S3-compatible endpoint, e.g. Backblaze B2) or 'local'
  bucket: geph-dl
  prefix: geph4-binaries/
  # endpoint_url: https://s3.us-west-002.backblazeb2.com
  region: us-east-1
  # Credentials are read from these environment variables
  key_id_env: B2_KEYID
  app_key_env: B2_APPKEY
  trust_etag: true  # Treat single-part ETags as MD5 digests

sync:
  delete_stale: false
  concurrency: 8
  max_attempts: 3
  backoff_base: 1.0
  backoff_max: 30.0
  fail_fast: false
  allow_mass_delete: false
"""
