import json
import os
from typing import Iterable, List, Optional, Type

from pydantic import ValidationError

from forge.common.utils import read_json
from forge.pipeline.errors import SchemaError
from forge.pipeline.steps import Mode, steps_for
from schemas import SCHEMA_MAP, AnalysisArtifact


class ArtifactStore:
    """
    Filesystem view of one subject's artifact directory.
    Presence is checked against disk on every call; nothing is cached.
    """

    def __init__(self, subject_dir: str):
        self.subject_dir = subject_dir

    def path(self, name: str) -> str:
        return os.path.join(self.subject_dir, name)

    def exists(self, name: str) -> bool:
        return os.path.isfile(self.path(name))

    def existing_names(self) -> List[str]:
        if not os.path.isdir(self.subject_dir):
            return []
        return sorted(
            entry for entry in os.listdir(self.subject_dir)
            if os.path.isfile(self.path(entry))
        )

    def missing(self, required: Iterable[str]) -> List[str]:
        return [name for name in required if not self.exists(name)]

    def load(self, name: str, model_cls: Optional[Type[AnalysisArtifact]] = None) -> AnalysisArtifact:
        """Read an artifact and validate it against its typed descriptor."""
        model_cls = model_cls or SCHEMA_MAP.get(name, AnalysisArtifact)
        try:
            data = read_json(self.path(name))
        except json.JSONDecodeError as e:
            raise SchemaError(name, f"invalid JSON ({e})")
        if not isinstance(data, dict):
            raise SchemaError(name, f"expected a JSON object, got {type(data).__name__}")
        try:
            return model_cls.model_validate(data)
        except ValidationError as e:
            raise SchemaError(name, str(e))

    def validate(self, names: Iterable[str]) -> None:
        for name in names:
            if name in SCHEMA_MAP and self.exists(name):
                self.load(name)


def missing_artifacts(subject_dir: str, required: Iterable[str]) -> List[str]:
    return ArtifactStore(subject_dir).missing(required)


def skip_steps_for(subject_dir: str, mode: Mode) -> List[int]:
    """1-based indices of steps whose whole artifact set is already on disk."""
    store = ArtifactStore(subject_dir)
    return [
        step.index for step in steps_for(mode)
        if all(store.exists(name) for name in step.artifacts)
    ]
