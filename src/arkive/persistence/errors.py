"""Artifact store error types.

Builds on arkive.storage.errors. Missing mandatory artifacts are reported with
arkive.storage.errors.ObjectNotFoundError; everything else specific to the
artifact store lives here.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Sequence

from arkive.storage.errors import ObjectStorageError


class ConfigurationError(ObjectStorageError):
    """Raised when a backup store cannot be created from its location config.

    Covers a missing object storage section, an empty provider name and a
    bucket name that still contains "/" after trimming.
    """

    def __init__(self, message: str, *, bucket: str | None = None) -> None:
        super().__init__(message, bucket=bucket)


class StructuralInconsistencyError(ObjectStorageError):
    """Raised when the store contains unexpected top-level directories.

    Attributes:
        invalid_dirs: Every offending directory name (the message shows at
            most three).
    """

    MAX_REPORTED = 3

    def __init__(self, invalid_dirs: Sequence[str], *, bucket: str | None = None) -> None:
        self.invalid_dirs = list(invalid_dirs)
        if len(self.invalid_dirs) > self.MAX_REPORTED:
            shown = [*self.invalid_dirs[: self.MAX_REPORTED], "..."]
            message = (
                f"Backup store contains {len(self.invalid_dirs)} invalid top-level "
                f"directories: {shown}"
            )
        else:
            message = f"Backup store contains invalid top-level directories: {self.invalid_dirs}"
        super().__init__(message, bucket=bucket)


class CorruptArtifactError(ObjectStorageError):
    """Raised when a present artifact cannot be decompressed or decoded."""

    def __init__(
        self,
        message: str = "Error decoding object data",
        *,
        bucket: str | None = None,
        key: str | None = None,
    ) -> None:
        super().__init__(message, bucket=bucket, key=key)


class UnsupportedTargetError(ObjectStorageError):
    """Raised when a download URL is requested for an unknown target kind."""

    def __init__(self, kind: str) -> None:
        self.kind = kind
        super().__init__(f"unsupported download target kind {kind!r}")


class AggregatedError(ObjectStorageError):
    """One or more sub-operations of a multi-step operation failed.

    Attributes:
        errors: Every contributing error, in the order they occurred.
    """

    def __init__(self, errors: Sequence[BaseException]) -> None:
        self.errors = list(errors)
        if len(self.errors) == 1:
            message = str(self.errors[0])
        else:
            message = "[" + ", ".join(str(e) for e in self.errors) + "]"
        super().__init__(message)

    def __iter__(self) -> Iterator[BaseException]:
        return iter(self.errors)

    def __len__(self) -> int:
        return len(self.errors)


def aggregate_errors(errors: Iterable[BaseException | None]) -> AggregatedError | None:
    """Combine errors into a single AggregatedError.

    None entries are dropped and nested aggregates are flattened.

    Returns:
        AggregatedError holding every remaining error, or None if there
        are none.
    """
    flat: list[BaseException] = []
    for err in errors:
        if err is None:
            continue
        if isinstance(err, AggregatedError):
            flat.extend(err.errors)
        else:
            flat.append(err)
    if not flat:
        return None
    return AggregatedError(flat)
