"""Check release tarball content against the contract checksums."""

import hashlib
import io
import posixpath
import tarfile

from catalog_cd.errors import ChecksumMismatchError, FormatError, IntegrityError
from catalog_cd.models.catalog import ResourceArtifact
from catalog_cd.models.contract import ContractEntry


def compute_sha256(data: bytes) -> str:
    """Compute SHA-256 hex digest of data."""
    return hashlib.sha256(data).hexdigest()


def normalize_member_path(path: str) -> str | None:
    """Normalize a tarball path, or return None if it leaves the archive root."""
    path = path.replace("\\", "/")
    if path.startswith("/"):
        return None
    normalized = posixpath.normpath(path)
    if normalized == ".." or normalized.startswith("../"):
        return None
    return normalized


class ResourceTarball:
    """A release resource tarball opened once and read by member path.

    Only regular files are addressable; directories, links and devices
    are never returned.
    """

    def __init__(self, data: bytes):
        try:
            self._tar = tarfile.open(fileobj=io.BytesIO(data), mode="r:*")
            self._members = {}
            for member in self._tar.getmembers():
                name = normalize_member_path(member.name)
                if name is not None:
                    self._members[name] = member
        except (tarfile.TarError, EOFError, OSError) as e:
            raise FormatError(f"Cannot read resources tarball: {e}")

    def read(self, path: str) -> bytes:
        """Return the bytes of a regular file inside the tarball.

        Raises IntegrityError if path escapes the archive root, is missing,
        or is not a regular file.
        """
        name = normalize_member_path(path)
        if name is None:
            raise IntegrityError(f"path '{path}' resolves outside the tarball root")
        member = self._members.get(name)
        if member is None:
            raise IntegrityError(f"'{path}' not found in resources tarball")
        if not member.isfile():
            raise IntegrityError(f"'{path}' is not a regular file in resources tarball")
        f = self._tar.extractfile(member)
        if f is None:
            raise IntegrityError(f"'{path}' cannot be extracted from resources tarball")
        with f:
            return f.read()

    def close(self) -> None:
        self._tar.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()


def validate_entry(
    entry: ContractEntry,
    tarball: ResourceTarball,
    source_repository: str,
) -> ResourceArtifact:
    """Extract a contract entry and check its SHA-256 digest.

    A mismatch is fatal: the contract and the tarball it ships with
    disagree, so the release can't be trusted at all.
    """
    content = tarball.read(entry.relative_path)
    actual = compute_sha256(content)
    if actual != entry.checksum:
        raise ChecksumMismatchError(
            f"checksum mismatch for {entry.resource_type}/{entry.name}@{entry.version} "
            f"({entry.relative_path}): expected {entry.checksum}, got {actual}",
            expected=entry.checksum,
            actual=actual,
        )

    signature = None
    if entry.signature:
        signature = tarball.read(entry.signature)

    return ResourceArtifact(
        entry=entry,
        content=content,
        source_repository=source_repository,
        signature=signature,
    )
