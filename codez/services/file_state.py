"""
Workspace snapshots and change detection.

A snapshot maps every regular, non-ignored file under the workspace root
(POSIX relative path) to the lowercase hex SHA-256 of its bytes. Comparing
a snapshot against a fresh listing yields the set of added, modified and
deleted paths.
"""

import asyncio
import hashlib
import os
from pathlib import Path
from typing import Dict, Set

import pathspec

from codez.constants import DEFAULT_IGNORE_PATTERNS
from codez.models.file_change import ChangeType, categorize_changes, change_paths
from codez.utils.logging import get_logger

logger = get_logger(__name__)

CHUNK_SIZE = 1024 * 1024


def load_ignore_spec(root: Path) -> pathspec.GitIgnoreSpec:
    """
    Build the ignore matcher for a workspace.

    Default patterns are always applied; the root ``.gitignore`` is added on
    top when it can be read.
    """
    patterns = list(DEFAULT_IGNORE_PATTERNS)
    gitignore = root / ".gitignore"
    if gitignore.exists():
        try:
            patterns.extend(gitignore.read_text(encoding="utf-8", errors="replace").splitlines())
        except OSError as e:
            logger.warning(f"Failed to read .gitignore, using default ignore patterns: {e}")
    return pathspec.GitIgnoreSpec.from_lines(patterns)


def hash_file(path: Path) -> str:
    digest = hashlib.sha256()
    with open(path, "rb") as fh:
        for chunk in iter(lambda: fh.read(CHUNK_SIZE), b""):
            digest.update(chunk)
    return digest.hexdigest()


def _snapshot(root: Path) -> Dict[str, str]:
    spec = load_ignore_spec(root)
    state: Dict[str, str] = {}
    for dirpath, dirnames, filenames in os.walk(root):
        rel_dir = Path(dirpath).relative_to(root).as_posix()
        # Prune ignored directories so large trees like node_modules are never walked
        dirnames[:] = [
            d for d in dirnames
            if not spec.match_file(f"{d}/" if rel_dir == "." else f"{rel_dir}/{d}/")
        ]
        for name in filenames:
            rel_path = name if rel_dir == "." else f"{rel_dir}/{name}"
            if spec.match_file(rel_path):
                continue
            full_path = Path(dirpath) / name
            if full_path.is_symlink() or not full_path.is_file():
                continue
            try:
                state[rel_path] = hash_file(full_path)
            except OSError as e:
                logger.warning(f"Failed to read file {rel_path}, skipping: {e}")
    return state


def capture_file_state_sync(root: str) -> Dict[str, str]:
    state = _snapshot(Path(root))
    logger.info(f"Captured file state for {len(state)} files", extra={"workspace": root})
    return state


def detect_changes_sync(root: str, previous: Dict[str, str]) -> Set[str]:
    current = _snapshot(Path(root))
    changes = categorize_changes(previous, current)
    for change in changes:
        label = {
            ChangeType.ADD: "File added",
            ChangeType.EDIT: "File modified",
            ChangeType.DELETE: "File deleted",
        }[change.change_type]
        logger.info(f"{label}: {change.file_path}")
    return change_paths(changes)


async def capture_file_state(root: str) -> Dict[str, str]:
    """
    Snapshot the workspace without blocking the event loop.

    Args:
        root: Workspace directory

    Returns:
        Mapping of relative POSIX path to SHA-256 hex digest
    """
    return await asyncio.to_thread(capture_file_state_sync, root)


async def detect_changes(root: str, previous: Dict[str, str]) -> Set[str]:
    """
    Compare the workspace against an earlier snapshot.

    A rename shows up as a deletion of the old path and an addition of the new one.

    Args:
        root: Workspace directory
        previous: Snapshot returned by capture_file_state

    Returns:
        Set of added, modified and deleted relative paths
    """
    return await asyncio.to_thread(detect_changes_sync, root, previous)
