"""Load repository snapshots from JSON files."""

import json
import logging
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from codesentinel.exceptions import InvalidSnapshotInput
from codesentinel.models.schemas import RepositorySnapshot

logger = logging.getLogger(__name__)


def snapshot_from_dict(data: Any) -> RepositorySnapshot:
    """Validate a camelCase snapshot record.

    Raises:
        InvalidSnapshotInput: If the record doesn't match the snapshot shape.
    """
    if not isinstance(data, dict):
        raise InvalidSnapshotInput("Snapshot must be a JSON object")
    try:
        return RepositorySnapshot.model_validate(data)
    except ValidationError as e:
        raise InvalidSnapshotInput(f"Invalid snapshot: {e}") from e


def load_snapshot(path: Path) -> RepositorySnapshot:
    """Read a snapshot JSON file.

    Args:
        path: Path to the snapshot file.

    Returns:
        Validated RepositorySnapshot.

    Raises:
        InvalidSnapshotInput: If the file can't be read or parsed.
    """
    try:
        data = json.loads(Path(path).read_text())
    except OSError as e:
        raise InvalidSnapshotInput(f"Cannot read snapshot {path}: {e}") from e
    except json.JSONDecodeError as e:
        raise InvalidSnapshotInput(f"Snapshot {path} is not valid JSON: {e}") from e

    snapshot = snapshot_from_dict(data)
    logger.debug(f"Loaded snapshot {snapshot.name or path} with {len(snapshot.files)} files")
    return snapshot
