"""Project layout — the file names that tie a project to its cached tree."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class ProjectLayout(BaseModel):
    """Names of the manifest, the checkout directory and the files in it.

    ``snapshot_name`` and ``lock_source`` are paths inside the artifact
    tree; ``manifest_name`` and ``lock_target`` are relative to the
    project root.
    """

    model_config = ConfigDict(frozen=True)

    manifest_name: str = "package.json"
    checkout_dir: str = "node_modules"
    snapshot_name: str = ".package.json"
    lock_source: str = ".package-lock.json"
    lock_target: str = "package-lock.json"
