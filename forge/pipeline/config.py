import os
from typing import Optional

import yaml
from pydantic import ValidationError

from forge.common.utils import load_settings
from forge.pipeline.errors import ConfigurationError
from schemas import Settings

DEFAULT_SETTINGS_PATH = "settings.yaml"


def load_run_settings(path: Optional[str] = None) -> Settings:
    """
    Load and validate the settings YAML. An explicit path must exist; without one,
    settings.yaml in the working directory is used when present, else defaults.
    """
    if path is None:
        if not os.path.exists(DEFAULT_SETTINGS_PATH):
            return Settings()
        path = DEFAULT_SETTINGS_PATH
    if not os.path.exists(path):
        raise ConfigurationError(f"Settings file not found: {path}",
                                 remediation="Pass --settings <file> or copy settings.example.yaml to settings.yaml")
    try:
        data = load_settings(path)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Settings file {path} is not valid YAML: {e}")
    try:
        return Settings.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid settings in {path}:\n{e}")


def subject_dir(settings: Settings, subject: str, output_override: Optional[str] = None) -> str:
    return output_override or os.path.join(settings.output_root, subject)


def deploy_targets(settings: Settings) -> dict:
    return settings.targets.model_dump()


def mapping_table(settings: Settings):
    if settings.deploy.mappings is None:
        return None
    return [(m.source, m.target, m.dest) for m in settings.deploy.mappings]
