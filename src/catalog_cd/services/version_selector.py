"""Choose which releases of a repository go into the catalog."""

import logging
from collections.abc import Iterable, Sequence

from catalog_cd.models.catalog import ReleaseRef

logger = logging.getLogger(__name__)


def select_releases(releases: Sequence[ReleaseRef], ignore_versions: Iterable[str]) -> list[ReleaseRef]:
    """Drop releases whose tag is in ignore_versions.

    Matching is exact string equality. The upstream order is kept and
    duplicate tags are passed through untouched; they are reported later
    as catalog collisions.
    """
    ignored = set(ignore_versions)
    selected = []
    for release in releases:
        if release.tag in ignored:
            logger.info("Ignoring release %s of %s", release.tag, release.repository.name)
            continue
        selected.append(release)
    return selected
