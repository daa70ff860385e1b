"""Path utilities for the account migration."""

from pathlib import Path
from typing import Union


def get_project_root() -> Path:
    """Get the project root directory.

    Returns:
        Path to the project root

    """
    return Path(__file__).parent.parent.parent


def ensure_directory_exists(directory_path: Union[str, Path]) -> None:
    """Create directory if it doesn't exist.

    Args:
        directory_path: Path to the directory to create

    """
    Path(directory_path).mkdir(parents=True, exist_ok=True)


def ensure_parent_exists(file_path: Union[str, Path]) -> None:
    """Create the parent directory of a file if it doesn't exist."""
    ensure_directory_exists(Path(file_path).parent)


def get_config_path(filename: str = "settings.yaml") -> Path:
    """Get the path to a config file.

    Args:
        filename: Name of the config file (default: settings.yaml)

    Returns:
        Path to the config file

    """
    # Look for config directory in current and parent directories
    current = Path.cwd()
    for parent in [current] + list(current.parents):
        candidate = parent / "config" / filename
        if candidate.exists():
            return candidate

    # Fallback: the config directory shipped next to the package
    return get_project_root() / "config" / filename


def id_from_href(href: str) -> str:
    """Return the trailing path segment of a resource href.

    >>> id_from_href("https://api.example.com/v1/accounts/abc123")
    'abc123'
    """
    return href.rstrip("/").rsplit("/", 1)[-1]
