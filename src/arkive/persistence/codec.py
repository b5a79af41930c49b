"""Artifact codec.

List-shaped artifacts (volume snapshots, pod volume backups, resource lists,
restore results) are JSON documents compressed with gzip. Backup metadata is
JSON decoded through a MetadataDecoder; the default decoder also accepts
gzip-compressed JSON.
"""

from __future__ import annotations

import gzip
import json
from typing import IO, Any, Protocol, TypeVar, runtime_checkable

from pydantic import BaseModel, TypeAdapter, ValidationError

from arkive.persistence.errors import CorruptArtifactError
from arkive.persistence.models import BACKUP_KIND, Backup

M = TypeVar("M", bound=BaseModel)

GZIP_MAGIC = b"\x1f\x8b"

SUPPORTED_API_GROUPS = frozenset({"arkive.io"})
SUPPORTED_API_VERSIONS = frozenset({"v1"})

_DECODE_ERRORS = (OSError, EOFError, UnicodeDecodeError, json.JSONDecodeError, ValidationError)


def _to_jsonable(obj: Any) -> Any:
    if isinstance(obj, BaseModel):
        return obj.model_dump(mode="json", by_alias=True, exclude_none=True)
    if isinstance(obj, list | tuple):
        return [_to_jsonable(item) for item in obj]
    return obj


def encode_json_gz(obj: Any) -> bytes:
    """Encode obj (a model, a list of models, or plain JSON data) as gzipped JSON."""
    payload = json.dumps(_to_jsonable(obj), sort_keys=True).encode("utf-8")
    return gzip.compress(payload)


def decode_json_gz(
    stream: IO[bytes],
    model: type[M],
    *,
    bucket: str | None = None,
    key: str | None = None,
) -> list[M] | None:
    """Decode a gzipped JSON list of model items.

    Args:
        stream: Readable binary stream; it is read to the end but not closed.
        model: Pydantic model of each list item.
        bucket: Bucket of the artifact, for error context.
        key: Key of the artifact, for error context.

    Returns:
        The decoded list, or None if the document is JSON null.

    Raises:
        CorruptArtifactError: If the data is not gzip, not JSON, or does not
            match the model.
    """
    try:
        with gzip.GzipFile(fileobj=stream, mode="rb") as gz:
            raw = json.loads(gz.read().decode("utf-8"))
        if raw is None:
            return None
        return TypeAdapter(list[model]).validate_python(raw)  # type: ignore[valid-type]
    except _DECODE_ERRORS as e:
        raise CorruptArtifactError(
            f"error decoding object data: {e}", bucket=bucket, key=key
        ) from e


@runtime_checkable
class MetadataDecoder(Protocol):
    """Decodes the backup metadata artifact into a Backup resource."""

    def decode(self, data: bytes) -> Any:
        """Decode raw metadata bytes.

        Raises:
            CorruptArtifactError: If the bytes are not a valid resource.
        """
        ...


class BackupDecoder:
    """Default metadata decoder.

    Accepts plain or gzip-compressed JSON, requires kind "Backup" and, when
    an apiVersion is present, one of the supported group/version pairs.
    """

    def decode(self, data: bytes) -> Backup:
        try:
            if data.startswith(GZIP_MAGIC):
                data = gzip.decompress(data)
            raw = json.loads(data.decode("utf-8"))
        except _DECODE_ERRORS as e:
            raise CorruptArtifactError(f"error decoding backup metadata: {e}") from e

        if not isinstance(raw, dict):
            raise CorruptArtifactError(
                f"error decoding backup metadata: expected an object, got {type(raw).__name__}"
            )

        kind = raw.get("kind")
        if kind != BACKUP_KIND:
            raise CorruptArtifactError(f"unexpected kind {kind!r} in backup metadata")

        api_version = raw.get("apiVersion")
        if api_version is not None:
            group, _, version = str(api_version).rpartition("/")
            if group not in SUPPORTED_API_GROUPS or version not in SUPPORTED_API_VERSIONS:
                raise CorruptArtifactError(
                    f"unsupported apiVersion {api_version!r} in backup metadata"
                )

        try:
            return Backup.model_validate(raw)
        except ValidationError as e:
            raise CorruptArtifactError(f"error decoding backup metadata: {e}") from e
