from pathlib import Path

import pytest
import yaml

from verifystate.configuration.app_configuration import (
    DEFAULT_DATABASE_PATH,
    DEFAULT_TABLE_NAME,
    AppConfig,
    DatabaseSettings,
)


@pytest.fixture()
def config_path(tmp_path: Path) -> Path:
    return tmp_path / "app_config.yml"


def test_app_config_reload_parses_yaml(config_path: Path) -> None:
    config_path.write_text(
        yaml.safe_dump({"database": {"path": "db/members.db", "table_name": "gate"}}),
        encoding="utf-8",
    )

    config = AppConfig(config_path)

    database = config.database
    assert isinstance(database, DatabaseSettings)
    assert database.table_name == "gate"
    assert database.path == Path("db/members.db").resolve()
    assert database.as_dict() == {"path": "db/members.db", "table_name": "gate"}


def test_app_config_missing_file_returns_defaults(tmp_path: Path) -> None:
    config = AppConfig(tmp_path / "does_not_exist.yml")

    assert config.data == {}
    assert config.get("database") is None
    assert config.database.table_name == DEFAULT_TABLE_NAME
    assert config.database.path == Path(DEFAULT_DATABASE_PATH).resolve()


@pytest.mark.parametrize("payload", ["just a string\n", "- a\n- list\n", "database: [unclosed\n"])
def test_app_config_ignores_unusable_files(config_path: Path, payload: str) -> None:
    config_path.write_text(payload, encoding="utf-8")

    config = AppConfig(config_path)

    assert config.data == {}


def test_reload_picks_up_edits(config_path: Path) -> None:
    config_path.write_text(yaml.safe_dump({"database": {"table_name": "one"}}), encoding="utf-8")
    config = AppConfig(config_path)

    config_path.write_text(yaml.safe_dump({"database": {"table_name": "two"}}), encoding="utf-8")
    assert config.database.table_name == "one"

    config.reload()
    assert config.database.table_name == "two"


def test_ensure_database_section_writes_defaults(config_path: Path) -> None:
    config_path.write_text(yaml.safe_dump({"other": 1}), encoding="utf-8")
    config = AppConfig(config_path)

    settings = config.ensure_database_section()

    assert settings.table_name == DEFAULT_TABLE_NAME
    on_disk = yaml.safe_load(config_path.read_text(encoding="utf-8"))
    assert on_disk == {
        "other": 1,
        "database": {"path": DEFAULT_DATABASE_PATH, "table_name": DEFAULT_TABLE_NAME},
    }


def test_ensure_database_section_creates_missing_file(tmp_path: Path) -> None:
    config_path = tmp_path / "config" / "app_config.yml"
    config = AppConfig(config_path)

    config.ensure_database_section()

    assert config_path.exists()
    assert AppConfig(config_path).database.table_name == DEFAULT_TABLE_NAME


def test_ensure_database_section_keeps_existing_values(config_path: Path) -> None:
    original = yaml.safe_dump({"database": {"table_name": "gate"}})
    config_path.write_text(original, encoding="utf-8")
    config = AppConfig(config_path)

    assert config.ensure_database_section().table_name == "gate"
    assert config_path.read_text(encoding="utf-8") == original


@pytest.mark.parametrize("table_name", [None, "", "   "])
def test_blank_table_name_is_rejected(config_path: Path, table_name) -> None:
    config_path.write_text(yaml.safe_dump({"database": {"table_name": table_name}}), encoding="utf-8")
    config = AppConfig(config_path)

    with pytest.raises(ValueError, match="table_name"):
        config.ensure_database_section()


def test_table_name_is_trimmed() -> None:
    assert DatabaseSettings({"table_name": "  gate "}).table_name == "gate"
