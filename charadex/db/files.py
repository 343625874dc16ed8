"""Whole-file JSON helpers for the data directory."""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any

from ..scrapers.errors import StoreError

logger = logging.getLogger(__name__)

_MISSING = object()


def read_json(path: Path | str, default: Any = _MISSING) -> Any:
    """Load JSON from ``path``.

    A missing file returns ``default`` when one is given, otherwise the
    ``FileNotFoundError`` propagates. Corrupt JSON always propagates.
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    except FileNotFoundError:
        if default is _MISSING:
            raise
        return default


def write_json(path: Path | str, data: Any) -> None:
    """Write ``data`` as formatted JSON, atomically replacing ``path``.

    The payload is written to a temp file in the same directory and moved
    into place, so readers see either the old file or the new one.
    """
    path = Path(path)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            dir=path.parent, prefix=f".{path.name}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, ensure_ascii=False)
            os.replace(tmp_name, path)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise
    except OSError as e:
        logger.error(f"Could not write {path}: {e}")
        raise StoreError(f"Could not write {path}: {e}.", str(path.parent)) from e
