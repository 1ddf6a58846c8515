"""
Tests for Dropbox path handling and write modes.
"""

import pytest

from dropbox_client import WriteMode, paths


# --- Validation ---

class TestValidation:

    @pytest.mark.parametrize("path", ["/", "/a", "/Reports/2024/file.md", "/with space"])
    def test_valid(self, path):
        assert paths.is_valid(path)
        assert paths.find_error(path) is None

    @pytest.mark.parametrize(
        "path, error",
        [
            ("", 'must start with "/"'),
            ("relative/path", 'must start with "/"'),
            ("/trailing/", 'must not end with "/"'),
        ],
    )
    def test_invalid(self, path, error):
        assert paths.find_error(path) == error

    def test_check_arg_none(self):
        with pytest.raises(ValueError, match="must not be None"):
            paths.check_arg("path", None)

    def test_check_arg_type(self):
        with pytest.raises(TypeError):
            paths.check_arg("path", b"/bytes")

    def test_check_arg_non_root(self):
        paths.check_arg("path", "/")
        with pytest.raises(ValueError, match="root"):
            paths.check_arg_non_root("path", "/")


# --- Normalization ---

class TestNormalize:

    def test_adds_leading_slash(self):
        """Should add leading slash if missing."""
        assert paths.normalize("Reports/2024") == "/Reports/2024"

    def test_preserves_leading_slash(self):
        assert paths.normalize("/Reports/2024") == "/Reports/2024"

    def test_converts_backslashes(self):
        """Should convert Windows backslashes to forward slashes."""
        assert paths.normalize("\\Reports\\2024") == "/Reports/2024"

    def test_removes_double_slashes(self):
        assert paths.normalize("/Reports//2024//file.md") == "/Reports/2024/file.md"

    def test_strips_trailing_slash(self):
        assert paths.normalize("/Reports/") == "/Reports"
        assert paths.normalize("/") == "/"

    def test_join(self):
        assert paths.join("/", "a.md") == "/a.md"
        assert paths.join("/Reports/", "a.md") == "/Reports/a.md"


# --- Local paths ---

class TestResolveLocalPath:

    def test_resolve_git_bash_path(self):
        """Should convert Git Bash /c/... paths to C:/..."""
        result = paths.resolve_local_path("/c/Users/test/file.md")
        assert "C:" in str(result)

    def test_resolve_cygdrive_path(self):
        """Should convert Cygwin /cygdrive/c/... paths."""
        result = paths.resolve_local_path("/cygdrive/c/Users/test/file.md")
        assert "C:" in str(result)

    def test_plain_path(self, tmp_path):
        target = tmp_path / "file.md"
        assert paths.resolve_local_path(str(target)) == target.resolve()


def test_api_file_path_quotes_segments():
    assert (
        paths.api_file_path("1/files_put", "sandbox", "/My Docs/résumé #1.txt")
        == "1/files_put/sandbox/My%20Docs/r%C3%A9sum%C3%A9%20%231.txt"
    )


# --- WriteMode ---

class TestWriteMode:

    def test_wire_params(self):
        assert WriteMode.add().extra_params() == {"overwrite": "false"}
        assert WriteMode.force().extra_params() == {"overwrite": "true"}
        assert WriteMode.update("abc").extra_params() == {"parent_rev": "abc"}

    def test_from_overwrite(self):
        assert WriteMode.from_overwrite(True) == WriteMode.force()
        assert WriteMode.from_overwrite(False) == WriteMode.add()

    def test_update_needs_rev(self):
        with pytest.raises(ValueError):
            WriteMode.update("")

    def test_extra_params_is_a_copy(self):
        mode = WriteMode.add()
        mode.extra_params()["overwrite"] = "true"
        assert mode == WriteMode.add()

    def test_check_arg(self):
        WriteMode.check_arg("write_mode", WriteMode.add())
        with pytest.raises(TypeError):
            WriteMode.check_arg("write_mode", "add")
