"""Hermetic installer backends.

An ``Installer`` turns manifest bytes into an ``ArtifactPayload`` using
nothing but those bytes. ``ContainerInstaller`` runs the package manager
inside a fresh, throwaway container: the manifest goes in on stdin and the
installed tree comes back as a tar stream on stdout, so no state from the
host or from a previous run can leak into the result.
"""

from __future__ import annotations

import io
import logging
import tarfile
from typing import Protocol, runtime_checkable

from pydantic import ValidationError

from depcache.core.errors import MalformedPayloadError
from depcache.core.process import run_command
from depcache.models.layout import ProjectLayout
from depcache.models.payload import ArtifactPayload, FileEntry, FileMode

logger = logging.getLogger(__name__)

DEFAULT_IMAGE = "docker.io/library/node:lts-alpine"
DEFAULT_INSTALL_COMMAND = "npm install --ignore-scripts --no-audit --no-fund"

_SCRIPT = """\
set -eu
mkdir -p /work
cd /work
cat > {manifest}
{install} >&2
mkdir -p {checkout}
cp {manifest} {checkout}/{snapshot}
tar -c {checkout}
"""


@runtime_checkable
class Installer(Protocol):
    """Protocol for hermetic installer backends."""

    def install(self, manifest: bytes) -> ArtifactPayload:
        """Install the dependencies declared by *manifest* from scratch.

        The returned payload carries the manifest as consumed at its
        ``snapshot_path``. Raises ``ExternalProcessError`` when the
        installation fails; no partial payload is ever returned.
        """
        ...


class ContainerInstaller:
    """Runs the package manager in a disposable container.

    Parameters
    ----------
    layout:
        Names of the manifest, output directory and snapshot file.
    runtime:
        Container engine executable (``podman`` or ``docker``).
    image:
        Image providing the package manager.
    install_command:
        Shell command run next to the manifest inside the container.
    """

    def __init__(
        self,
        layout: ProjectLayout | None = None,
        *,
        runtime: str = "podman",
        image: str = DEFAULT_IMAGE,
        install_command: str = DEFAULT_INSTALL_COMMAND,
    ) -> None:
        self.layout = layout or ProjectLayout()
        self.runtime = runtime
        self.image = image
        self.install_command = install_command

    def argv(self) -> list[str]:
        script = _SCRIPT.format(
            manifest=self.layout.manifest_name,
            checkout=self.layout.checkout_dir,
            snapshot=self.layout.snapshot_name,
            install=self.install_command,
        )
        return [self.runtime, "run", "--rm", "--interactive", self.image, "sh", "-c", script]

    def install(self, manifest: bytes) -> ArtifactPayload:
        logger.info("Installing %s in %s", self.layout.manifest_name, self.image)
        result = run_command(self.argv(), input=manifest)
        return read_payload(result.stdout, self.layout)


def read_payload(archive: bytes, layout: ProjectLayout) -> ArtifactPayload:
    """Build a payload from a tar archive of the checkout directory.

    Raises ``MalformedPayloadError`` for anything that is not a tar stream
    of plain files and symlinks under the checkout directory.
    """
    try:
        files = _read_files(archive, layout)
        if layout.snapshot_name not in files:
            raise MalformedPayloadError(
                f"Installer output has no {layout.checkout_dir}/{layout.snapshot_name}"
            )
        return ArtifactPayload(files=files, snapshot_path=layout.snapshot_name)
    except tarfile.TarError as exc:
        raise MalformedPayloadError(f"Installer output is not a tar archive: {exc}") from exc
    except ValidationError as exc:
        raise MalformedPayloadError(
            f"Installer output is not a valid artifact tree: {exc}"
        ) from exc


def _read_files(archive: bytes, layout: ProjectLayout) -> dict[str, FileEntry]:
    prefix = layout.checkout_dir.rstrip("/") + "/"
    files: dict[str, FileEntry] = {}
    with tarfile.open(fileobj=io.BytesIO(archive), mode="r:") as tar:
        for member in tar.getmembers():
            name = member.name.removeprefix("./")
            if not name.startswith(prefix) or member.isdir():
                continue
            path = name[len(prefix):]
            if member.issym():
                files[path] = FileEntry(data=member.linkname.encode(), mode=FileMode.SYMLINK)
            elif member.isfile() or member.islnk():
                extracted = tar.extractfile(member)
                if extracted is None:
                    raise MalformedPayloadError(f"Cannot read {name!r} from installer output")
                mode = FileMode.EXECUTABLE if member.mode & 0o100 else FileMode.REGULAR
                files[path] = FileEntry(data=extracted.read(), mode=mode)
            else:
                raise MalformedPayloadError(
                    f"Unsupported file type for {name!r} in installer output"
                )
    return files
