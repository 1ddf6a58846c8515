"""
Dropbox path validation and normalization, plus local path resolution.
"""

from pathlib import Path
from urllib.parse import quote
from typing import Optional


def find_error(path: str) -> Optional[str]:
    """
    Check a Dropbox path for problems.

    Returns:
        A description of what's wrong with the path, or None if it's valid.
    """
    if not path.startswith("/"):
        return 'must start with "/"'
    if path == "/":
        return None
    if path.endswith("/"):
        return 'must not end with "/"'
    return None


def is_valid(path: str) -> bool:
    return find_error(path) is None


def check_arg(arg_name: str, value) -> None:
    """Raise if `value` isn't a valid Dropbox path."""
    if value is None:
        raise ValueError(f"'{arg_name}' must not be None")
    if not isinstance(value, str):
        raise TypeError(f"'{arg_name}' must be a string, got {type(value).__name__}")
    error = find_error(value)
    if error is not None:
        raise ValueError(f"'{arg_name}': bad path: {error}: {value!r}")


def check_arg_non_root(arg_name: str, value) -> None:
    """Like check_arg, but also rejects the root path."""
    check_arg(arg_name, value)
    if value == "/":
        raise ValueError(f"'{arg_name}' must not be the root path")


def normalize(path: str) -> str:
    """
    Normalize a Dropbox destination path.

    Args:
        path: The destination path in Dropbox.

    Returns:
        Normalized path starting with '/'.
    """
    # Windows separators
    path = path.replace("\\", "/")

    if not path.startswith("/"):
        path = "/" + path

    while "//" in path:
        path = path.replace("//", "/")

    if len(path) > 1 and path.endswith("/"):
        path = path[:-1]

    return path


def join(folder: str, name: str) -> str:
    """Build a normalized Dropbox path for `name` inside `folder`."""
    return normalize(f"{folder}/{name}")


def resolve_local_path(local_path: str) -> Path:
    """
    Resolve a local file path, handling Git Bash and Windows path formats.

    Git Bash uses Unix-style paths like /c/Users/... or /d/Projects/...
    Windows uses C:\\Users\\... or C:/Users/...
    This normalizes both to work correctly.

    Args:
        local_path: The input path string.

    Returns:
        Resolved Path object.
    """
    path_str = str(local_path)

    # Git Bash: /c/Users/... -> C:/Users/...
    if len(path_str) >= 3 and path_str[0] == "/" and path_str[2] == "/":
        drive_letter = path_str[1]
        if drive_letter.isalpha():
            path_str = f"{drive_letter.upper()}:{path_str[2:]}"

    # Cygwin/MSYS2: /cygdrive/c/...
    if path_str.startswith("/cygdrive/") and len(path_str) >= 12:
        drive_letter = path_str[10]
        if drive_letter.isalpha():
            path_str = f"{drive_letter.upper()}:{path_str[11:]}"

    return Path(path_str).resolve()


def api_file_path(base: str, root: str, path: str) -> str:
    """
    Build the URL path for a file endpoint, e.g. "1/files_put/dropbox/a%20b.txt".

    `path` must already be a valid Dropbox path.
    """
    return f"{base}/{root}/{quote(path[1:], safe='/')}"
