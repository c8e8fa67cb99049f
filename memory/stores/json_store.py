"""File-backed JSON index with explicit load outcomes."""

from __future__ import annotations

import json
import logging
import os
import tempfile
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, TypeVar

from pydantic import TypeAdapter, ValidationError

logger = logging.getLogger("ledger.stores")

T = TypeVar("T")


class LoadStatus(str, Enum):
    OK = "ok"
    EMPTY = "empty"
    CORRUPT = "corrupt"


@dataclass
class LoadResult:
    """Outcome of reading an index; corrupt reads still carry no data."""

    status: LoadStatus
    data: Any = None
    reason: str = ""

    @property
    def ok(self) -> bool:
        return self.status is LoadStatus.OK


class JsonIndex:
    """One structured index file, fully rewritten on every save."""

    def __init__(self, path: Path) -> None:
        self.path = path

    def read(self) -> LoadResult:
        """Read and parse the file; missing or unparsable files never raise."""
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return LoadResult(LoadStatus.EMPTY)
        except OSError as exc:
            logger.warning("Could not read %s: %s", self.path, exc)
            return LoadResult(LoadStatus.CORRUPT, reason=str(exc))
        if not raw.strip():
            return LoadResult(LoadStatus.EMPTY)
        try:
            return LoadResult(LoadStatus.OK, data=json.loads(raw))
        except json.JSONDecodeError as exc:
            logger.warning("Corrupt index %s treated as empty: %s", self.path, exc)
            return LoadResult(LoadStatus.CORRUPT, reason=str(exc))

    def write(self, payload: Any) -> None:
        """Replace the file atomically with pretty-printed JSON."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{self.path.name}.", dir=self.path.parent)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(payload, fh, indent=2, ensure_ascii=False)
                fh.write("\n")
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise


def corrupt(reason: str) -> LoadResult:
    """Build a corrupt result for data that parsed but failed model validation."""
    return LoadResult(LoadStatus.CORRUPT, reason=reason)


def append_text(path: Path, content: str) -> None:
    """Append to a human-readable log, creating parents as needed."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("a", encoding="utf-8") as fh:
        fh.write(content)


def read_text(path: Path) -> str | None:
    """Return file contents, or None when missing or unreadable."""
    try:
        return path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return None
    except OSError as exc:
        logger.warning("Could not read %s: %s", path, exc)
        return None


def write_text(path: Path, content: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")


def load_models(index: JsonIndex, adapter: TypeAdapter[T]) -> tuple[T | None, LoadResult]:
    """Read an index and validate it into models; invalid shapes count as corrupt."""
    result = index.read()
    if not result.ok:
        return None, result
    try:
        return adapter.validate_python(result.data), result
    except ValidationError as exc:
        logger.warning("Index %s failed validation, treated as empty: %s", index.path, exc)
        return None, corrupt(str(exc))
