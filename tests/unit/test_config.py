"""Unit tests for worker config loading."""

from pathlib import Path

import pytest

from genai_tag_db_topic_modifier.config import WorkerConfig, load_worker_config


class TestLoadWorkerConfig:
    """load_worker_config関数のテスト."""

    def test_load_config(self, tmp_path: Path) -> None:
        config_path = tmp_path / "worker.yml"
        config_path.write_text(
            "db_path: data/graph.sqlite\nlog_level: debug\nreport_dir: reports\n",
            encoding="utf-8",
        )

        config = load_worker_config(config_path)

        assert config.db_path == Path("data/graph.sqlite")
        assert config.log_level == "debug"
        assert config.log_file is None
        assert config.report_dir == Path("reports")

    def test_empty_file_uses_defaults(self, tmp_path: Path) -> None:
        config_path = tmp_path / "worker.yml"
        config_path.write_text("", encoding="utf-8")

        assert load_worker_config(config_path) == WorkerConfig()

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            load_worker_config(tmp_path / "missing.yml")

    def test_unknown_key(self, tmp_path: Path) -> None:
        config_path = tmp_path / "worker.yml"
        config_path.write_text("db_path: a.sqlite\nqueue_url: amqp://x\n", encoding="utf-8")

        with pytest.raises(ValueError, match="Unknown config key"):
            load_worker_config(config_path)

    def test_invalid_yaml(self, tmp_path: Path) -> None:
        config_path = tmp_path / "worker.yml"
        config_path.write_text("db_path: [unclosed\n", encoding="utf-8")

        with pytest.raises(ValueError, match="Invalid YAML"):
            load_worker_config(config_path)

    def test_not_a_mapping(self, tmp_path: Path) -> None:
        config_path = tmp_path / "worker.yml"
        config_path.write_text("- a\n- b\n", encoding="utf-8")

        with pytest.raises(ValueError, match="must contain a mapping"):
            load_worker_config(config_path)

    def test_null_log_level(self, tmp_path: Path) -> None:
        """log_level が空値の場合は ValueError."""
        config_path = tmp_path / "worker.yml"
        config_path.write_text("log_level:\n", encoding="utf-8")

        with pytest.raises(ValueError, match="Invalid log_level"):
            load_worker_config(config_path)


class TestWorkerConfig:
    def test_invalid_log_level(self) -> None:
        with pytest.raises(ValueError, match="Invalid log_level"):
            WorkerConfig(log_level="LOUD")

    def test_with_overrides_ignores_none(self) -> None:
        config = WorkerConfig(db_path=Path("a.sqlite"), log_level="INFO")

        updated = config.with_overrides(db_path=None, log_level="DEBUG")

        assert updated.db_path == Path("a.sqlite")
        assert updated.log_level == "DEBUG"
