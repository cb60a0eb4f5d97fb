"""Configuration — environment-driven settings for the cache tool.

Reads ``DEPCACHE_*`` environment variables and an optional ``.env`` file.
Command tracing can also be switched on with the short ``V=1``.

Examples
--------
Override via environment::

    export DEPCACHE_REMOTE_URL=https://example.org/project/node-cache.git
    export DEPCACHE_PUSH_URL=git@example.org:project/node-cache.git
    V=1 depcache checkout
"""

from __future__ import annotations

import os
from pathlib import Path

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from depcache.core.installer import DEFAULT_IMAGE, DEFAULT_INSTALL_COMMAND
from depcache.models.layout import ProjectLayout


def _default_cache_dir() -> Path:
    base = os.environ.get("XDG_CACHE_HOME") or Path.home() / ".cache"
    return Path(base) / "depcache" / "artifact-cache.git"


class DepcacheConfig(BaseSettings):
    """Settings for one invocation of the cache tool."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="DEPCACHE_",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    project_root: Path = Path(".")

    # Layout
    manifest_name: str = "package.json"
    checkout_dir: str = "node_modules"
    snapshot_name: str = ".package.json"
    lock_source: str = ".package-lock.json"
    lock_target: str = "package-lock.json"

    # Object database
    cache_dir: Path = Field(default_factory=_default_cache_dir)
    remote_url: str = ""
    push_url: str = ""  # falls back to remote_url

    # Hermetic installer
    container_runtime: str = "podman"
    installer_image: str = DEFAULT_IMAGE
    install_command: str = DEFAULT_INSTALL_COMMAND

    # Checkout also reinstalls to compare tree hashes; slow, off by default
    verify_tree_on_checkout: bool = False

    # Observability
    verbose: bool = Field(
        default=False,
        validation_alias=AliasChoices("DEPCACHE_VERBOSE", "V"),
    )
    log_level: str = "WARNING"

    @property
    def layout(self) -> ProjectLayout:
        return ProjectLayout(
            manifest_name=self.manifest_name,
            checkout_dir=self.checkout_dir,
            snapshot_name=self.snapshot_name,
            lock_source=self.lock_source,
            lock_target=self.lock_target,
        )
