"""Shared file utilities for ipfsd-ctl.

Provides common utilities used by settings and the repository manager:
- get_app_dir: OS-appropriate application directory
- set_secure_permissions: Owner-only file/directory permissions
- load_validated_json: JSON + Pydantic validation with readable errors
- read_json_document / write_json_atomic: Raw JSON document I/O
- file_lock: Exclusive advisory lock on a lock file
"""

from __future__ import annotations

__all__ = [
    "file_lock",
    "get_app_dir",
    "load_validated_json",
    "read_json_document",
    "set_secure_permissions",
    "write_json_atomic",
]

import fcntl
import json
import os
import sys
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, TypeVar

import click
from pydantic import BaseModel, ValidationError

from ipfsd_ctl.constants import APP_NAME

# Type variable for Pydantic models
T = TypeVar("T", bound=BaseModel)


def get_app_dir() -> Path:
    """Get the OS-appropriate application directory.

    Uses click.get_app_dir() which returns:
    - macOS: ~/Library/Application Support/ipfsd-ctl
    - Linux: ~/.config/ipfsd-ctl (XDG compliant)
    - Windows: C:\\Users\\<user>\\AppData\\Roaming\\ipfsd-ctl

    Returns:
        Path to the application directory.
    """
    return Path(click.get_app_dir(APP_NAME))


def set_secure_permissions(path: Path, *, is_directory: bool = False) -> None:
    """Set secure permissions on file or directory.

    Sets permissions to restrict access to owner only:
    - Directory: 0o700 (rwx------)
    - File: 0o600 (rw-------)

    Does nothing on Windows. Silently ignores permission errors
    (some systems don't allow permission changes).

    Args:
        path: Path to file or directory.
        is_directory: If True, use directory permissions (0o700).
    """
    if sys.platform == "win32":
        return

    try:
        mode = 0o700 if is_directory else 0o600
        path.chmod(mode)
    except OSError:
        pass  # Permission changes might fail on some systems


def load_validated_json(
    file_path: Path,
    model_class: type[T],
    file_type: str = "file",
) -> T:
    """Load JSON file and validate against Pydantic model.

    Combines file reading, JSON parsing, and Pydantic validation with
    consistent error messages.

    Args:
        file_path: Path to JSON file.
        model_class: Pydantic model class to validate against.
        file_type: Description for error messages (e.g., "settings").

    Returns:
        Validated Pydantic model instance.

    Raises:
        ValueError: If JSON is invalid or validation fails.
    """
    try:
        with open(file_path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON in {file_type} file {file_path}: {e}") from e
    except OSError as e:
        raise ValueError(f"Could not read {file_type} file {file_path}: {e}") from e

    try:
        return model_class.model_validate(data)
    except ValidationError as e:
        errors = []
        for error in e.errors():
            loc = ".".join(str(x) for x in error["loc"])
            errors.append(f"  - {loc}: {error['msg']}")
        raise ValueError(
            f"Invalid {file_type} in {file_path}:\n" + "\n".join(errors)
        ) from e


def read_json_document(file_path: Path) -> dict[str, Any]:
    """Read a JSON object from disk.

    Args:
        file_path: Path to the JSON file.

    Returns:
        The parsed object.

    Raises:
        OSError: If the file cannot be read.
        ValueError: If the content is not a JSON object.
    """
    with open(file_path, "r", encoding="utf-8") as f:
        data = json.load(f)
    if not isinstance(data, dict):
        raise ValueError(f"Expected a JSON object in {file_path}, got {type(data).__name__}")
    return data


def write_json_atomic(file_path: Path, data: Any, *, secure: bool = True) -> None:
    """Write JSON via a temp file + rename so readers never see partial content.

    Args:
        file_path: Destination path.
        data: JSON-serializable data.
        secure: Apply owner-only permissions to the written file.

    Raises:
        OSError: If the file cannot be written.
    """
    fd, tmp_name = tempfile.mkstemp(dir=file_path.parent, prefix=f".{file_path.name}.")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)
            f.write("\n")
        os.replace(tmp_name, file_path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise
    if secure:
        set_secure_permissions(file_path)


@contextmanager
def file_lock(lock_path: Path) -> Iterator[None]:
    """Context manager for exclusive file locking.

    Acquires an exclusive lock on the specified file, creating it if needed.
    The lock is automatically released when exiting the context.

    Args:
        lock_path: Path to the lock file.

    Yields:
        None when lock is acquired.

    Raises:
        OSError: If lock acquisition fails.
    """
    lock_file = open(lock_path, "w")
    try:
        fcntl.flock(lock_file.fileno(), fcntl.LOCK_EX)
        yield
    finally:
        try:
            fcntl.flock(lock_file.fileno(), fcntl.LOCK_UN)
        except OSError:
            pass
        lock_file.close()
