"""Tests for file filtering utilities."""

from patchwise_core.utils.code import is_excluded, is_reviewable_file


class TestIsReviewableFile:
    def test_source_files_are_reviewable(self):
        assert is_reviewable_file("src/main.rs") is True
        assert is_reviewable_file("app/services/user.py") is True
        assert is_reviewable_file("src/components/Button.tsx") is True

    def test_ignored_filenames_rejected(self):
        assert is_reviewable_file("package-lock.json") is False
        assert is_reviewable_file("frontend/yarn.lock") is False
        assert is_reviewable_file("requirements.txt") is False

    def test_filename_match_is_case_insensitive(self):
        assert is_reviewable_file("README.md") is False
        assert is_reviewable_file("docs/Package.JSON") is False

    def test_files_without_extension_rejected(self):
        assert is_reviewable_file("Makefile") is False
        assert is_reviewable_file("bin/run") is False
        assert is_reviewable_file("README") is False

    def test_dot_in_directory_does_not_count_as_extension(self):
        assert is_reviewable_file("config.d/run") is False

    def test_ignored_extensions_rejected(self):
        assert is_reviewable_file("assets/logo.png") is False
        assert is_reviewable_file("static/fonts/Inter.woff2") is False
        assert is_reviewable_file("notebooks/explore.ipynb") is False
        assert is_reviewable_file("Cargo.lock") is False

    def test_extension_match_is_case_insensitive(self):
        assert is_reviewable_file("image.PNG") is False

    def test_other_text_files_are_reviewable(self):
        assert is_reviewable_file("docs/notes.txt") is True


class TestIsExcluded:
    def test_basename_glob(self):
        assert is_excluded("static/app.min.js", ["*.min.js"]) is True

    def test_full_path_glob(self):
        assert is_excluded("src/generated/models.py", ["src/generated/*.py"]) is True

    def test_directory_prefix(self):
        assert is_excluded("migrations/0001_initial.py", ["migrations/"]) is True
        assert is_excluded("app/migrations/0001_initial.py", ["migrations"]) is True

    def test_no_match(self):
        assert is_excluded("src/app.py", ["*.min.js", "migrations/"]) is False

    def test_empty_patterns(self):
        assert is_excluded("src/app.py", []) is False
