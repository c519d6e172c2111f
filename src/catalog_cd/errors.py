"""Errors raised by the fetch-and-assemble engine.

Every error is fatal for the run. Errors raised while fetching a repository
carry the repository name (and the release tag when known) so the caller can
tell which stage and which source failed.
"""


class CatalogError(Exception):
    """Base class for all catalog-cd errors."""

    def __init__(self, message: str, repository: str | None = None, release: str | None = None):
        super().__init__(message)
        self.message = message
        self.repository = repository
        self.release = release

    def annotate(self, repository: str, release: str | None = None) -> "CatalogError":
        """Attach source information unless it is already known."""
        if self.repository is None:
            self.repository = repository
        if self.release is None and release is not None:
            self.release = release
        return self

    def __str__(self) -> str:
        where = []
        if self.repository:
            where.append(f"repository '{self.repository}'")
        if self.release:
            where.append(f"release '{self.release}'")
        if where:
            return f"{' '.join(where)}: {self.message}"
        return self.message


class ConfigError(CatalogError):
    """Malformed repository specification or external config file."""


class NetworkError(CatalogError):
    """Transport failure or unexpected response from the hosting API."""


class NotFoundError(NetworkError):
    """Repository, release or release asset does not exist."""


class RateLimitError(NetworkError):
    """The hosting API refused the call because of rate limiting."""

    def __init__(self, message: str, reset_at: int | None = None, **kwargs):
        super().__init__(message, **kwargs)
        self.reset_at = reset_at


class FormatError(CatalogError):
    """A contract or index file cannot be decoded or misses required fields."""


class IntegrityError(CatalogError):
    """A contract entry does not resolve to a regular file inside the tarball."""


class ChecksumMismatchError(IntegrityError):
    """Digest of the extracted bytes differs from the declared checksum."""

    def __init__(self, message: str, expected: str, actual: str, **kwargs):
        super().__init__(message, **kwargs)
        self.expected = expected
        self.actual = actual


class CollisionError(CatalogError):
    """Two resources claim the same (type, name, version) identity."""

    def __init__(self, key, first: str, second: str):
        resource_type, name, version = key
        super().__init__(
            f"duplicate resource {resource_type}/{name}@{version} "
            f"provided by '{first}' and '{second}'"
        )
        self.key = key
        self.first = first
        self.second = second


class GenerateIOError(CatalogError):
    """Writing the catalog to the target directory failed."""


class FetchCancelledError(CatalogError):
    """The fetch was cancelled because another repository failed."""
