"""Relevant-file discovery tests: keyword extraction and the grep-driven finder."""

import pytest

from core.executor import SandboxExecutor
from discovery.file_finder import RelevantFileFinder, RepositoryNotFoundError, find_command
from discovery.keywords import extract_keywords


# ── Keyword extraction ────────────────────────────────────────────────────────

class TestExtractKeywords:
    def test_login_button_broken(self):
        assert extract_keywords("The login button is broken") == ["login", "button", "broken"]

    def test_punctuation_and_case(self):
        assert extract_keywords("Login-Button: BROKEN!!") == ["login", "button", "broken"]

    def test_dedupes_keeping_first_occurrence(self):
        assert extract_keywords("cart total wrong, cart total") == ["cart", "total", "wrong"]

    def test_drops_short_tokens_and_filler(self):
        assert extract_keywords("a bug: it is an error to fix") == []

    def test_empty_input(self):
        assert extract_keywords("") == []
        assert extract_keywords(None) == []

    def test_underscores_kept_inside_identifiers(self):
        assert extract_keywords("user_id is null") == ["user_id", "null"]


# ── find_command ──────────────────────────────────────────────────────────────

def test_find_command_excludes_vendor_dirs_and_caps():
    command = find_command(7)
    assert "'*/node_modules/*'" in command
    assert "'*/.git/*'" in command
    assert "-name '*.py'" in command
    assert command.endswith("head -n 7")


# ── RelevantFileFinder ────────────────────────────────────────────────────────

@pytest.mark.usefixtures("requires_shell_tools")
class TestRelevantFileFinder:
    async def test_keyword_matches_in_keyword_then_candidate_order(self, executor):
        files = await RelevantFileFinder(executor).find("The login button is broken")
        # "login" first (only login.js), then "button" adds button.js.
        assert files == ["src/auth/login.js", "src/ui/button.js"]

    async def test_excluded_dirs_and_non_code_files_never_returned(self, executor):
        files = await RelevantFileFinder(executor).find("login")
        assert "node_modules/lib/login.js" not in files
        assert "logo.png" not in files

    async def test_match_is_case_sensitive(self, executor, repo):
        (repo / "src" / "upper.py").write_text("LOGIN = True\n")
        files = await RelevantFileFinder(executor).find("login")
        assert "src/upper.py" not in files

    async def test_only_stop_words_falls_back_to_first_files(self, executor):
        files = await RelevantFileFinder(executor).find("it is a bug")
        assert files == ["README.md", "src/auth/login.js", "src/ui/button.js", "src/ui/theme.css"]

    async def test_fallback_capped_at_max_files(self, tmp_path):
        root = tmp_path / "big"
        root.mkdir()
        for i in range(60):
            (root / f"mod_{i:02d}.py").write_text("x = 1\n")
        files = await RelevantFileFinder(SandboxExecutor(root)).find("the bug")
        assert len(files) == 50
        assert files[0] == "mod_00.py"

    async def test_result_capped_at_max_files(self, tmp_path):
        root = tmp_path / "big"
        root.mkdir()
        for i in range(10):
            (root / f"mod_{i}.py").write_text("checkout = 1\n")
        files = await RelevantFileFinder(SandboxExecutor(root), max_files=3).find("checkout")
        assert len(files) == 3

    async def test_no_match_returns_empty(self, executor):
        assert await RelevantFileFinder(executor).find("kubernetes autoscaler") == []

    async def test_paths_with_spaces_are_quoted(self, executor, repo):
        (repo / "src" / "odd name.js").write_text("const weird = 1;\n")
        files = await RelevantFileFinder(executor).find("weird")
        assert files == ["src/odd name.js"]

    async def test_missing_repository_raises(self, tmp_path):
        finder = RelevantFileFinder(SandboxExecutor(tmp_path / "absent"))
        with pytest.raises(RepositoryNotFoundError):
            await finder.find("login")

    async def test_empty_repository_raises(self, tmp_path):
        root = tmp_path / "empty"
        root.mkdir()
        with pytest.raises(RepositoryNotFoundError):
            await RelevantFileFinder(SandboxExecutor(root)).find("login")
