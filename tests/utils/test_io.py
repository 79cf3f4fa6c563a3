"""Tests for I/O utilities."""

import pytest

from thundercloud.utils.io import get_data_path, get_project_root


class TestGetDataPath:
    """Tests for get_data_path function."""

    @pytest.mark.parametrize("stage", ["cache", "users"])
    def test_valid_stage(self, stage):
        """Should return an existing directory under data/."""
        path = get_data_path(stage)
        assert path.name == stage
        assert path.parent.name == "data"
        assert path.exists()

    def test_default_stage(self):
        assert get_data_path().name == "cache"

    def test_invalid_stage(self):
        with pytest.raises(ValueError, match="Invalid stage"):
            get_data_path("raw")


class TestGetProjectRoot:
    """Tests for get_project_root function."""

    def test_contains_package_sources(self):
        root = get_project_root()
        assert (root / "src" / "thundercloud").is_dir()
