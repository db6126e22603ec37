from pathlib import Path

import pytest

from anon_social_poc.action_protocol.config import DEFAULT_GROUP_ID, MAX_POST_CHARS
from anon_social_poc.action_protocol.exceptions import ConfigurationError
from anon_social_poc.action_protocol.settings import LedgerSettings, load_settings


def test_defaults() -> None:
    settings = load_settings(env={})
    assert settings == LedgerSettings()
    assert settings.group_id == DEFAULT_GROUP_ID
    assert settings.max_post_chars == MAX_POST_CHARS
    assert settings.reject_duplicate_members is False
    assert settings.backend == "ring"


def test_paths_derive_from_state_dir() -> None:
    settings = LedgerSettings(state_dir=Path("/tmp/board"))
    assert settings.event_log_path == Path("/tmp/board/events.log")
    assert settings.content_dir == Path("/tmp/board/content")


def test_yaml_file(tmp_path: Path) -> None:
    path = tmp_path / "board.yaml"
    path.write_text(
        "group_id: 42\n"
        "backend: mock\n"
        f"state_dir: {tmp_path / 'state'}\n"
        "reject_duplicate_members: yes\n"
        "max_post_chars: 140\n"
    )
    settings = load_settings(path, env={})
    assert settings.group_id == 42
    assert settings.backend == "mock"
    assert settings.state_dir == tmp_path / "state"
    assert settings.reject_duplicate_members is True
    assert settings.max_post_chars == 140


def test_env_overrides_yaml(tmp_path: Path) -> None:
    path = tmp_path / "board.yaml"
    path.write_text("group_id: 42\n")
    env = {
        "ANON_SOCIAL_GROUP_ID": "7",
        "ANON_SOCIAL_STATE_DIR": str(tmp_path / "env-state"),
        "ANON_SOCIAL_REJECT_DUPLICATE_MEMBERS": "true",
    }
    settings = load_settings(path, env=env)
    assert settings.group_id == 7
    assert settings.state_dir == tmp_path / "env-state"
    assert settings.reject_duplicate_members is True


def test_explicit_overrides_beat_env(tmp_path: Path) -> None:
    settings = load_settings(
        env={"ANON_SOCIAL_GROUP_ID": "7"}, group_id=8, state_dir=None
    )
    assert settings.group_id == 8
    assert settings.state_dir == LedgerSettings().state_dir


def test_empty_yaml_is_defaults(tmp_path: Path) -> None:
    path = tmp_path / "empty.yaml"
    path.write_text("")
    assert load_settings(path, env={}) == LedgerSettings()


def test_unknown_key_rejected(tmp_path: Path) -> None:
    path = tmp_path / "board.yaml"
    path.write_text("group_id: 1\nsecret: hunter2\n")
    with pytest.raises(ConfigurationError, match="unknown settings keys: secret"):
        load_settings(path, env={})


def test_invalid_yaml_rejected(tmp_path: Path) -> None:
    path = tmp_path / "board.yaml"
    path.write_text("group_id: [1,\n")
    with pytest.raises(ConfigurationError, match="invalid YAML"):
        load_settings(path, env={})


def test_non_mapping_yaml_rejected(tmp_path: Path) -> None:
    path = tmp_path / "board.yaml"
    path.write_text("- 1\n- 2\n")
    with pytest.raises(ConfigurationError, match="mapping"):
        load_settings(path, env={})


def test_missing_file_rejected(tmp_path: Path) -> None:
    with pytest.raises(ConfigurationError, match="cannot read"):
        load_settings(tmp_path / "missing.yaml", env={})


@pytest.mark.parametrize(
    "env",
    [
        {"ANON_SOCIAL_GROUP_ID": "one"},
        {"ANON_SOCIAL_GROUP_ID": "-1"},
        {"ANON_SOCIAL_REJECT_DUPLICATE_MEMBERS": "maybe"},
    ],
)
def test_bad_env_values_rejected(env) -> None:
    with pytest.raises(ConfigurationError):
        load_settings(env=env)


def test_bad_backend_rejected() -> None:
    with pytest.raises(ConfigurationError, match="Unknown proof backend"):
        load_settings(env={}, backend="snark")


def test_bad_max_post_chars_rejected() -> None:
    with pytest.raises(ConfigurationError, match="max_post_chars"):
        load_settings(env={}, max_post_chars=0)
