"""
Path utility module for the blog site client.

This module resolves configured paths relative to the project root, so the
credential database lands in the same place regardless of where the CLI is
invoked from inside a checkout.
"""
from pathlib import Path
from typing import Optional, Union


def get_project_root() -> Path:
    """
    Returns the absolute path to the project's root directory.

    The root is the nearest directory (starting at the current working
    directory) containing a 'setup.py' file or a '.git' directory. Falls
    back to the current working directory.
    """
    current_path = Path.cwd()
    for parent in [current_path] + list(current_path.parents):
        if (parent / "setup.py").exists() or (parent / ".git").is_dir():
            return parent.resolve()
    return current_path.resolve()


def resolve_path(
    path: Union[str, Path], base_path: Optional[Path] = None
) -> Path:
    """
    Resolves a given path relative to a base path.

    Absolute paths (after ``~`` expansion) are returned as is. Relative paths
    are resolved against ``base_path``, or the project root when it is None.

    Args:
        path: The path to resolve.
        base_path: Optional base path to resolve against.

    Returns:
        An absolute Path object.
    """
    p = Path(path).expanduser()
    if p.is_absolute():
        return p.resolve()

    if base_path is None:
        base_path = get_project_root()

    return (base_path / p).resolve()


def ensure_parent_dir(path: Path) -> Path:
    """Create the parent directory of ``path`` if needed and return ``path``."""
    path.parent.mkdir(parents=True, exist_ok=True)
    return path
