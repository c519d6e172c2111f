"""Write a catalog to disk as a partial file-based catalog.

Layout under the target directory:

    <type>/<name>/<version>/<name>.yaml        resource content
    <type>/<name>/<version>/<name>.yaml.sig    signature, when shipped
    index.yaml                                 every written entry with its checksum

index.yaml is what the signing step reads. Generating into a target that
already holds other resource types keeps their index rows; rows of the
generated type are replaced.

Each file is written to a temporary file next to it and renamed into place,
and a file whose content is unchanged is left alone, so running twice with
the same catalog leaves the target byte-identical.
"""

import logging
import os
import tempfile
from pathlib import Path, PurePosixPath

import yaml

from catalog_cd.errors import FormatError, GenerateIOError
from catalog_cd.models.catalog import Catalog, CatalogIndex, IndexEntry, ResourceArtifact
from catalog_cd.services.validator import validate_index

logger = logging.getLogger(__name__)

INDEX_FILENAME = "index.yaml"
SIGNATURE_SUFFIX = ".sig"
_DEFAULT_SUFFIX = ".yaml"
_FILE_MODE = 0o644


def resource_path(artifact: ResourceArtifact) -> PurePosixPath:
    """Location of a resource relative to the target root."""
    entry = artifact.entry
    suffix = PurePosixPath(entry.relative_path).suffix or _DEFAULT_SUFFIX
    return PurePosixPath(entry.resource_type, entry.name, entry.version, f"{entry.name}{suffix}")


def generate_filesystem(target: Path, catalog: Catalog, resource_type: str) -> list[IndexEntry]:
    """Write the resources of resource_type and update index.yaml.

    Returns the index rows written for resource_type.
    Raises GenerateIOError on any write failure.
    """
    target = Path(target)
    index_path = target / INDEX_FILENAME
    kept = [row for row in load_index(index_path) if row.resource_type != resource_type]

    files: list[tuple[Path, bytes]] = []
    written: list[IndexEntry] = []
    for artifact in catalog.of_type(resource_type):
        rel = resource_path(artifact)
        files.append((target / rel, artifact.content))

        sig_rel = None
        if artifact.signature is not None:
            sig_rel = rel.with_name(rel.name + SIGNATURE_SUFFIX)
            files.append((target / sig_rel, artifact.signature))

        entry = artifact.entry
        written.append(IndexEntry(
            resource_type=entry.resource_type,
            name=entry.name,
            version=entry.version,
            checksum=entry.checksum,
            path=str(rel),
            repository=artifact.source_repository,
            signature=str(sig_rel) if sig_rel else None,
        ))

    rows = sorted(kept + written, key=IndexEntry.sort_key)
    # index goes last: it only ever lists files that are already in place
    files.append((index_path, dump_index(rows)))

    try:
        target.mkdir(parents=True, exist_ok=True)
        for path, data in files:
            write_atomic(path, data)
    except OSError as e:
        raise GenerateIOError(f"failed to write catalog to {target}: {e}")

    logger.info("Wrote %d %s to %s", len(written), resource_type, target)
    return written


def load_index(path: Path) -> list[IndexEntry]:
    """Read an existing index.yaml; a missing file is an empty index."""
    if not path.exists():
        return []
    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        raise FormatError(f"Invalid YAML in index {path}: {e}")
    except OSError as e:
        raise GenerateIOError(f"cannot read index {path}: {e}")
    if raw is None:
        return []

    errors = validate_index(raw)
    if errors:
        raise FormatError(f"Invalid index {path}: {'; '.join(errors)}")
    return CatalogIndex.model_validate(raw).resources


def dump_index(rows: list[IndexEntry]) -> bytes:
    document = {
        "resources": [row.model_dump(by_alias=True, exclude_none=True) for row in rows],
    }
    errors = validate_index(document)
    if errors:
        raise FormatError(f"Generated index is invalid: {'; '.join(errors)}")
    return yaml.safe_dump(
        document,
        sort_keys=True,
        default_flow_style=False,
        allow_unicode=True,
    ).encode("utf-8")


def write_atomic(path: Path, data: bytes) -> bool:
    """Write data to path through a temporary file and a rename.

    Returns False when path already holds exactly data (nothing written).
    The temporary file never outlives a failed write.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    if path.is_file() and path.read_bytes() == data:
        return False

    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    tmp = Path(tmp_name)
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        os.chmod(tmp, _FILE_MODE)
        os.replace(tmp, path)
    except BaseException:
        tmp.unlink(missing_ok=True)
        raise
    return True
