"""I/O utilities for data paths."""

from pathlib import Path

# Project root is 4 levels up from this file
_PROJECT_ROOT = Path(__file__).parent.parent.parent.parent


def get_data_path(stage: str = "cache") -> Path:
    """Get standardized data path for a storage stage.

    Args:
        stage: One of 'cache', 'users'

    Returns:
        Path to the data directory (creates if doesn't exist)

    Example:
        >>> get_data_path("cache")
        PosixPath('.../thundercloud/data/cache')
    """
    valid_stages = {"cache", "users"}

    if stage not in valid_stages:
        raise ValueError(f"Invalid stage: {stage}. Must be one of {valid_stages}")

    path = _PROJECT_ROOT / "data" / stage
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_project_root() -> Path:
    """Get the project root directory."""
    return _PROJECT_ROOT
