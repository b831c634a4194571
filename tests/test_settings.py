import os

import pytest
import yaml
from schemas import Settings

from forge.pipeline.config import load_run_settings, mapping_table, subject_dir
from forge.pipeline.errors import ConfigurationError


def test_settings_minimal():
    config = Settings()
    assert config.output_root == "output"
    assert config.workers.analysis.command == ["python", "run_analysis.py"]
    assert config.grace_period_seconds == 5.0
    assert mapping_table(config) is None


def test_settings_full():
    yaml_data = """
output_root: out
grace_period_seconds: 2
workers:
  analysis:
    command: [python, run_analysis.py]
    args: [--settings, settings.yaml]
  generate:
    command: [claude]
    args: [--verbose]
targets:
  shared: ../Shared
  api: ../Api
  ui: ../Ui
deploy:
  mappings:
    - {source: shared, target: shared}
    - {source: ui/Views, target: ui, dest: Views}
"""
    config = Settings(**yaml.safe_load(yaml_data))
    assert config.workers.analysis.args == ["--settings", "settings.yaml"]
    assert config.targets.api == "../Api"
    assert mapping_table(config) == [("shared", "shared", ""), ("ui/Views", "ui", "Views")]
    assert subject_dir(config, "Acme") == os.path.join("out", "Acme")
    assert subject_dir(config, "Acme", "/elsewhere") == "/elsewhere"


def test_settings_rejects_unknown_keys():
    with pytest.raises(ValueError):
        Settings(outputs="typo")


def test_settings_rejects_unknown_mapping_target():
    with pytest.raises(ValueError):
        Settings(deploy={"mappings": [{"source": "x", "target": "db"}]})


def test_settings_rejects_empty_worker_command():
    with pytest.raises(ValueError):
        Settings(workers={"analysis": {"command": []}})


def test_load_run_settings_errors(tmp_path):
    with pytest.raises(ConfigurationError):
        load_run_settings(str(tmp_path / "missing.yaml"))
    bad = tmp_path / "bad.yaml"
    bad.write_text("grace_period_seconds: -1\n", encoding="utf-8")
    with pytest.raises(ConfigurationError):
        load_run_settings(str(bad))
    broken = tmp_path / "broken.yaml"
    broken.write_text("targets: [unclosed\n", encoding="utf-8")
    with pytest.raises(ConfigurationError):
        load_run_settings(str(broken))


def test_load_run_settings_defaults_without_file(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    assert load_run_settings() == Settings()
