"""In-memory catalog model and the index file written next to it."""

from typing import Iterator, NamedTuple

from pydantic import BaseModel, Field

from catalog_cd.errors import CollisionError
from catalog_cd.models.contract import ContractEntry
from catalog_cd.models.external import RepositorySpec


class ReleaseRef(BaseModel):
    """One release discovered in an external repository."""

    tag: str
    repository: RepositorySpec

    model_config = {"frozen": True}


class ResourceArtifact(BaseModel):
    """A resource whose content matched the checksum declared in its contract."""

    entry: ContractEntry
    content: bytes
    source_repository: str
    signature: bytes | None = None

    model_config = {"frozen": True}


class CatalogKey(NamedTuple):
    resource_type: str
    name: str
    version: str


class Catalog:
    """Resources keyed by (type, name, version).

    Keys are unique: adding an artifact under an existing key raises
    CollisionError instead of replacing the stored artifact.
    """

    def __init__(self):
        self._artifacts: dict[CatalogKey, ResourceArtifact] = {}

    @staticmethod
    def key_for(artifact: ResourceArtifact) -> CatalogKey:
        entry = artifact.entry
        return CatalogKey(entry.resource_type, entry.name, entry.version)

    def add(self, artifact: ResourceArtifact) -> None:
        key = self.key_for(artifact)
        existing = self._artifacts.get(key)
        if existing is not None:
            raise CollisionError(key, existing.source_repository, artifact.source_repository)
        self._artifacts[key] = artifact

    def get(self, key: CatalogKey) -> ResourceArtifact | None:
        return self._artifacts.get(key)

    def of_type(self, resource_type: str) -> list[ResourceArtifact]:
        """Artifacts of one resource type, sorted by name then version."""
        return [
            self._artifacts[key]
            for key in sorted(self._artifacts)
            if key.resource_type == resource_type
        ]

    def keys(self) -> list[CatalogKey]:
        return sorted(self._artifacts)

    def __contains__(self, key) -> bool:
        return key in self._artifacts

    def __len__(self) -> int:
        return len(self._artifacts)

    def __iter__(self) -> Iterator[ResourceArtifact]:
        for key in sorted(self._artifacts):
            yield self._artifacts[key]


# ─── Index file ───────────────────────────────────────────

class IndexEntry(BaseModel):
    """One row of index.yaml, the file the signing step works from.

    path — resource file location relative to the target root
    signature — detached signature location, when the release shipped one
    """

    resource_type: str = Field(alias="type")
    name: str
    version: str
    checksum: str
    path: str
    repository: str
    signature: str | None = None

    model_config = {"populate_by_name": True}

    def sort_key(self) -> tuple[str, str, str]:
        return (self.resource_type, self.name, self.version)


class CatalogIndex(BaseModel):
    resources: list[IndexEntry] = Field(default_factory=list)
