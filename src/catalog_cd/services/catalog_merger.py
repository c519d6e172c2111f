"""Fold per-repository results into one catalog."""

import logging
from collections.abc import Iterable, Sequence
from typing import NamedTuple

from catalog_cd.models.catalog import Catalog, ResourceArtifact

logger = logging.getLogger(__name__)


class RepositoryResult(NamedTuple):
    """Validated artifacts fetched from one repository."""

    repository: str
    artifacts: Sequence[ResourceArtifact]


def merge_results(results: Iterable[RepositoryResult]) -> Catalog:
    """Merge results in declaration order.

    No merge strategy is applied: a (type, name, version) key seen twice
    raises CollisionError naming both contributing repositories.
    """
    catalog = Catalog()
    for result in results:
        for artifact in result.artifacts:
            catalog.add(artifact)
        logger.debug("Merged %d resources from %s", len(result.artifacts), result.repository)
    return catalog
