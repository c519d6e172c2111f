"""Fetch releases of external repositories and assemble the catalog.

Repositories are fetched in parallel on a bounded worker pool, and the
releases of one repository on a nested pool once the ignore list has been
applied. Results are handed back to the coordinating thread through
futures; the merge runs only after every fetch has finished. The first
fatal error cancels the shared CancelToken so in-flight workers stop at
their next network call. Once every worker has stopped, the first error
that is not a cancellation is raised to the caller.
"""

import logging
from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import TypeVar

from catalog_cd.errors import CatalogError, ConfigError, FetchCancelledError
from catalog_cd.models.catalog import Catalog, ReleaseRef, ResourceArtifact
from catalog_cd.models.external import ExternalSpec, RepositorySpec
from catalog_cd.services.artifact_validator import ResourceTarball, validate_entry
from catalog_cd.services.catalog_merger import RepositoryResult, merge_results
from catalog_cd.services.contract_parser import parse_contract
from catalog_cd.services.github_client import CancelToken, RepositoryClient
from catalog_cd.services.version_selector import select_releases

logger = logging.getLogger(__name__)

DEFAULT_MAX_WORKERS = 4
DEFAULT_RELEASE_WORKERS = 4

T = TypeVar("T")
R = TypeVar("R")


def fetch_from_externals(
    external: ExternalSpec,
    client: RepositoryClient,
    resource_type: str | None = None,
    max_workers: int = DEFAULT_MAX_WORKERS,
    release_workers: int = DEFAULT_RELEASE_WORKERS,
    cancel: CancelToken | None = None,
) -> Catalog:
    """Fetch every configured repository and merge them into one Catalog.

    resource_type is the type requested by the caller; it applies to
    repositories that don't declare one and to contract entries without
    a type.
    """
    repositories = [_check_repository(repo, resource_type) for repo in external.repositories]
    cancel = cancel or CancelToken()

    results = _run_ordered(
        lambda repo: fetch_repository(client, repo, cancel, release_workers),
        repositories,
        max_workers,
        cancel,
    )
    catalog = merge_results(results)
    logger.info("Fetched %d resources from %d repositories", len(catalog), len(repositories))
    return catalog


def fetch_repository(
    client: RepositoryClient,
    repo: RepositorySpec,
    cancel: CancelToken,
    release_workers: int = DEFAULT_RELEASE_WORKERS,
) -> RepositoryResult:
    """Fetch and validate all selected releases of one repository."""
    try:
        releases = client.list_releases(repo, cancel)
    except CatalogError as e:
        e.annotate(repo.name)
        raise
    selected = select_releases(releases, repo.ignore_versions)
    logger.info("Fetching %d of %d releases from %s", len(selected), len(releases), repo.name)

    per_release = _run_ordered(
        lambda release: fetch_release(client, release, cancel),
        selected,
        release_workers,
        cancel,
    )
    artifacts = [artifact for batch in per_release for artifact in batch]
    return RepositoryResult(repository=repo.name, artifacts=artifacts)


def fetch_release(client: RepositoryClient, release: ReleaseRef, cancel: CancelToken) -> list[ResourceArtifact]:
    """Download the contract and the tarball of a release and validate every entry.

    The contract is decoded before the tarball is downloaded; any failure
    fails the whole repository.
    """
    repo = release.repository
    try:
        contract = client.download_artifact(repo, release.tag, repo.catalog_name, cancel)
        entries = parse_contract(contract, repo.resource_type)

        data = client.download_artifact(repo, release.tag, repo.resources_tarball_name, cancel)
        with ResourceTarball(data) as tarball:
            artifacts = [validate_entry(entry, tarball, repo.name) for entry in entries]
    except CatalogError as e:
        e.annotate(repo.name, release.tag)
        raise

    logger.debug("Validated %d resources from %s@%s", len(artifacts), repo.name, release.tag)
    return artifacts


def _check_repository(repo: RepositorySpec, resource_type: str | None) -> RepositorySpec:
    if not repo.url:
        raise ConfigError("repository url is required", repository=repo.name or None)
    effective_type = repo.resource_type or resource_type
    if not effective_type:
        raise ConfigError("resource type is required", repository=repo.name)
    if repo.resource_type != effective_type:
        repo = repo.model_copy(update={"resource_type": effective_type})
    return repo


def _run_ordered(
    func: Callable[[T], R],
    items: Sequence[T],
    max_workers: int,
    cancel: CancelToken,
) -> list[R]:
    """Run func over items on a bounded pool, returning results in item order.

    On the first failure the token is cancelled and queued calls are dropped.
    Running calls are drained, then the first real failure is raised;
    FetchCancelledError from a call that only stopped because of it is
    raised only when nothing else failed.
    """
    if not items:
        return []
    results: list = [None] * len(items)
    failure: BaseException | None = None
    with ThreadPoolExecutor(max_workers=max(1, min(max_workers, len(items)))) as executor:
        futures = {executor.submit(func, item): index for index, item in enumerate(items)}
        for future in as_completed(futures):
            if future.cancelled():
                continue
            error = future.exception()
            if error is None:
                results[futures[future]] = future.result()
                continue
            if failure is None or (
                isinstance(failure, FetchCancelledError)
                and not isinstance(error, FetchCancelledError)
            ):
                failure = error
            cancel.cancel()
            for pending in futures:
                pending.cancel()
    if failure is not None:
        raise failure
    return results
