"""Models for the contract (catalog.yaml) published with every release.

The contract lists the resources shipped in the release tarball together
with their SHA-256 checksums. Two layouts are accepted.

Grouped by type (the key is the resource type):
    catalog:
      resources:
        tasks:
          - name: task-buildah
            version: 0.1.0
            filename: tasks/task-buildah/task-buildah.yaml
            checksum: 3f2a...
            signature: tasks/task-buildah/task-buildah.yaml.sig

Versions must be strings; quote numeric-looking ones ("1.10").

Flat list (type is optional and defaults to the requested type):
    catalog:
      resources:
        - name: task-buildah
          type: tasks
          version: 0.1.0
          filename: tasks/task-buildah/task-buildah.yaml
          checksum: 3f2a...
"""

from pydantic import BaseModel, Field, field_validator

CHECKSUM_ALGORITHM = "sha256"
_CHECKSUM_LENGTH = 64
_HEX = set("0123456789abcdef")


class ContractEntry(BaseModel):
    """One resource row from a contract."""

    resource_type: str = Field(alias="type", min_length=1)
    name: str = Field(min_length=1)
    version: str = Field(min_length=1)
    checksum: str
    relative_path: str = Field(alias="filename", min_length=1)
    signature: str | None = None

    model_config = {"populate_by_name": True, "frozen": True}

    @field_validator("resource_type", "name", "version")
    @classmethod
    def _single_path_segment(cls, value: str) -> str:
        # these become directory names in the generated catalog
        if "/" in value or "\\" in value or value in (".", ".."):
            raise ValueError(f"'{value}' must not contain path separators")
        return value

    @field_validator("checksum")
    @classmethod
    def _check_digest(cls, value: str) -> str:
        value = value.strip().lower()
        if len(value) != _CHECKSUM_LENGTH or not set(value) <= _HEX:
            raise ValueError(
                f"checksum must be a {_CHECKSUM_LENGTH}-character {CHECKSUM_ALGORITHM} hex digest"
            )
        return value


class ContractResource(BaseModel):
    """Raw resource row before the resource type is resolved."""

    resource_type: str | None = Field(default=None, alias="type")
    name: str = Field(min_length=1)
    # must be a YAML string: an unquoted 1.10 would load as the float 1.1
    version: str
    checksum: str = Field(min_length=1)
    filename: str = Field(min_length=1)
    signature: str | None = None

    model_config = {"populate_by_name": True}


class ContractCatalog(BaseModel):
    description: str | None = None
    resources: dict[str, list[ContractResource]] | list[ContractResource] = Field(
        default_factory=list
    )


class Contract(BaseModel):
    """Root of a contract document."""

    catalog: ContractCatalog
