"""Local JSON persistence for the state document.

The document is stored inside a small envelope carrying a version tag and
the document's ``modifiedAt``, so the sync policy can compare records without
parsing the whole state:

    {"v": 1, "modifiedAt": "2025-10-02T08:00:00.000Z", "state": {...}}

A record that cannot be used (missing file, unparseable JSON, wrong version
tag, a document that fails validation) loads as ``None``; the caller then
falls back to a seed document. Write failures are errors.
"""

import json
import os
import tempfile
from pathlib import Path
from typing import Optional, Union

import structlog
from pydantic import ValidationError as PydanticValidationError

from .exceptions import StorageError, ValidationError
from .models import AppState
from .normalize import load_state

logger = structlog.get_logger()

RECORD_VERSION = 1


class JsonStateStore:
    """Stores one state document as a JSON file.

    Example:
        store = JsonStateStore("./data/state.json")
        state = store.load() or build_seed_state()
        store.save(state)
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def exists(self) -> bool:
        return self.path.is_file()

    def read_record(self) -> Optional[dict]:
        """Return the raw envelope, or None when there is no usable record."""
        try:
            text = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as e:
            logger.warning("state_read_failed", path=str(self.path), error=str(e))
            return None

        try:
            record = json.loads(text)
        except json.JSONDecodeError as e:
            logger.warning("state_record_unparseable", path=str(self.path), error=str(e))
            return None

        if not isinstance(record, dict) or record.get("v") != RECORD_VERSION:
            logger.warning(
                "state_record_version_mismatch",
                path=str(self.path),
                version=record.get("v") if isinstance(record, dict) else None,
            )
            return None
        if not isinstance(record.get("state"), dict):
            logger.warning("state_record_missing_state", path=str(self.path))
            return None
        return record

    def load(self) -> Optional[AppState]:
        """Load and normalize the stored document.

        Returns:
            The state, or None when the record is missing or unusable.
        """
        record = self.read_record()
        if record is None:
            return None
        try:
            state = load_state(record["state"])
        except ValidationError as e:
            logger.warning(
                "state_record_malformed",
                path=str(self.path),
                field=e.field,
                error=e.message,
            )
            return None
        except PydanticValidationError as e:
            logger.warning(
                "state_record_invalid",
                path=str(self.path),
                error_count=e.error_count(),
            )
            return None
        logger.debug("state_loaded", path=str(self.path), modified_at=state.modified_at)
        return state

    def modified_at(self) -> Optional[str]:
        """The stored record's timestamp, read from the envelope only."""
        record = self.read_record()
        if record is None:
            return None
        value = record.get("modifiedAt")
        return value if isinstance(value, str) else None

    def save(self, state: AppState) -> None:
        """Write the document atomically (temporary file, then replace).

        Raises:
            StorageError: If the file cannot be written.
        """
        record = {
            "v": RECORD_VERSION,
            "modifiedAt": state.modified_at,
            "state": state.to_document(),
        }
        payload = json.dumps(record, ensure_ascii=False, indent=2)

        tmp_path = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(
                prefix=f".{self.path.name}.", suffix=".tmp", dir=self.path.parent
            )
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
            os.replace(tmp_path, self.path)
        except OSError as e:
            if tmp_path is not None and os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise StorageError(
                f"Failed to write state file: {e}",
                path=str(self.path),
                operation="save",
            ) from e

        logger.info("state_saved", path=str(self.path), modified_at=state.modified_at)
