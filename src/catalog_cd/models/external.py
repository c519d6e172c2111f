"""Models for the external repositories configuration.

This describes the YAML file passed with --config (or built from the
generate-from flags). Loosely typed input, like a comma-separated list of
versions to ignore, is parsed here once so the engine only sees typed values.

Example YAML:
    repositories:
      - name: task-containers
        url: https://github.com/openshift-pipelines/task-containers
        type: tasks
        ignoreVersions: "v0.1.0,v0.2.0"
      - url: https://github.com/openshift-pipelines/tektoncd-catalog
        ignoreVersions:
          - v0.0.1
"""

import posixpath

from pydantic import BaseModel, Field, field_validator, model_validator

DEFAULT_CATALOG_NAME = "catalog.yaml"
DEFAULT_RESOURCES_TARBALL_NAME = "resources.tar.gz"


class RepositorySpec(BaseModel):
    """One external repository to pull releases from.

    name — display name, defaults to the last segment of url
    url — source location (https://github.com/<owner>/<repo>)
    resource_type — resource type classification ("tasks", "pipelines")
    ignore_versions — exact release tags to skip
    catalog_name — contract asset name in each release
    resources_tarball_name — resource bundle asset name in each release
    """

    name: str = ""
    url: str
    resource_type: str | None = Field(default=None, alias="type")
    ignore_versions: frozenset[str] = Field(default_factory=frozenset, alias="ignoreVersions")
    catalog_name: str = Field(default=DEFAULT_CATALOG_NAME, alias="catalogName")
    resources_tarball_name: str = Field(
        default=DEFAULT_RESOURCES_TARBALL_NAME, alias="resourcesTarballName"
    )

    model_config = {"populate_by_name": True, "frozen": True}

    @field_validator("ignore_versions", mode="before")
    @classmethod
    def _split_versions(cls, value):
        if value is None:
            return frozenset()
        if isinstance(value, str):
            value = value.split(",")
        return frozenset(v.strip() for v in value if v and v.strip())

    @field_validator("catalog_name", "resources_tarball_name", mode="before")
    @classmethod
    def _default_when_empty(cls, value, info):
        if value:
            return value
        if info.field_name == "catalog_name":
            return DEFAULT_CATALOG_NAME
        return DEFAULT_RESOURCES_TARBALL_NAME

    @model_validator(mode="before")
    @classmethod
    def _default_name(cls, data):
        if isinstance(data, dict) and not data.get("name") and data.get("url"):
            data = {**data, "name": posixpath.basename(str(data["url"]).rstrip("/"))}
        return data


class ExternalSpec(BaseModel):
    """Root model of the external repositories configuration.

    Declaration order is kept; duplicates are allowed here and surface
    as collisions when the fetched catalogs are merged.
    """

    repositories: list[RepositorySpec] = Field(default_factory=list)
