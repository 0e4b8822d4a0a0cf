from cli import _parse_args, _settings_from_args


def test_cli_overrides_environment(monkeypatch, tmp_path):
    monkeypatch.setenv("GITHUB_REPO_PATH", "/from/env")
    monkeypatch.delenv("LLM_PROVIDER", raising=False)
    args = _parse_args(["login broken", "--repo-path", str(tmp_path), "--provider", "openrouter"])
    settings = _settings_from_args(args)
    assert args.issue == "login broken"
    assert settings.repo_path == str(tmp_path)
    assert settings.provider == "openrouter"


def test_cli_keeps_environment_when_flag_absent(monkeypatch):
    monkeypatch.setenv("GITHUB_REPO_PATH", "/from/env")
    settings = _settings_from_args(_parse_args(["login broken"]))
    assert settings.repo_path == "/from/env"
