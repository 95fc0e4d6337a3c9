"""File change data models."""

from enum import Enum
from typing import Dict, List, Set

from pydantic import BaseModel


class ChangeType(str, Enum):
    """Type of file change."""

    ADD = "add"
    EDIT = "edit"
    DELETE = "delete"


class FileChange(BaseModel):
    """One path that differs between two snapshots."""

    file_path: str
    change_type: ChangeType


def categorize_changes(previous: Dict[str, str], current: Dict[str, str]) -> List[FileChange]:
    """Compare two snapshots and return one FileChange per differing path, sorted by path."""
    changes: List[FileChange] = []
    for path in sorted(set(previous) | set(current)):
        if path not in previous:
            changes.append(FileChange(file_path=path, change_type=ChangeType.ADD))
        elif path not in current:
            changes.append(FileChange(file_path=path, change_type=ChangeType.DELETE))
        elif previous[path] != current[path]:
            changes.append(FileChange(file_path=path, change_type=ChangeType.EDIT))
    return changes


def change_paths(changes: List[FileChange]) -> Set[str]:
    return {change.file_path for change in changes}
