from typing import ClassVar, Dict, List, Optional, Type
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class AnalysisArtifact(BaseModel):
    """
    Base shape for every analysis artifact: a JSON object, optionally stamped with
    a schema_version that must match the artifact's expected version.
    Unknown keys are kept; the worker owns the content.
    """
    model_config = ConfigDict(extra="allow")

    expected_version: ClassVar[str] = "analysis_v1"

    schema_version: Optional[str] = None
    entity: Optional[str] = None

    @field_validator("schema_version")
    @classmethod
    def version_matches(cls, v):
        if v is not None and v != cls.expected_version:
            raise ValueError(f"expected schema_version {cls.expected_version}, got {v}")
        return v


class FormStructure(AnalysisArtifact):
    expected_version: ClassVar[str] = "form_structure_v1"

    form_name: Optional[str] = Field(default=None, alias="formName")
    controls: List[Dict] = Field(default_factory=list)

    model_config = ConfigDict(extra="allow", populate_by_name=True)


class BusinessLogic(AnalysisArtifact):
    expected_version: ClassVar[str] = "business_logic_v1"


class DataAccess(AnalysisArtifact):
    expected_version: ClassVar[str] = "data_access_v1"


class Security(AnalysisArtifact):
    expected_version: ClassVar[str] = "security_v1"


class UiMapping(AnalysisArtifact):
    expected_version: ClassVar[str] = "ui_mapping_v1"


class Workflow(AnalysisArtifact):
    expected_version: ClassVar[str] = "workflow_v1"


class TabEntry(BaseModel):
    model_config = ConfigDict(extra="allow")

    tabName: Optional[str] = None
    tabText: Optional[str] = None

    @property
    def display_name(self) -> str:
        return self.tabName or self.tabText or ""


class Tabs(AnalysisArtifact):
    expected_version: ClassVar[str] = "tabs_v1"

    tabs: List[TabEntry] = Field(default_factory=list)

    @field_validator("tabs", mode="before")
    @classmethod
    def tabs_default(cls, v):
        if v is None:
            return []
        if isinstance(v, list):
            return [{"tabName": t} if isinstance(t, str) else t for t in v]
        return v


class Validation(AnalysisArtifact):
    expected_version: ClassVar[str] = "validation_v1"


class RelatedEntities(AnalysisArtifact):
    expected_version: ClassVar[str] = "related_entities_v1"


# Artifact filename -> typed descriptor used when reading it back.
SCHEMA_MAP: Dict[str, Type[AnalysisArtifact]] = {
    "form-structure.json": FormStructure,
    "form-structure-search.json": FormStructure,
    "form-structure-detail.json": FormStructure,
    "business-logic.json": BusinessLogic,
    "data-access.json": DataAccess,
    "security.json": Security,
    "ui-mapping.json": UiMapping,
    "workflow.json": Workflow,
    "tabs.json": Tabs,
    "validation.json": Validation,
    "related-entities.json": RelatedEntities,
}


class AssetClassificationDoc(BaseModel):
    schema_version: str = "asset_classification_v1"
    subject: str
    created_at: Optional[str] = None
    tab_names: List[str] = Field(default_factory=list)
    buckets: Dict[str, List[str]] = Field(default_factory=dict)


# --- settings -----------------------------------------------------------------

class WorkerCommand(BaseModel):
    command: List[str]
    args: List[str] = Field(default_factory=list)

    @field_validator("command")
    @classmethod
    def command_not_empty(cls, v):
        if not v:
            raise ValueError("command must name at least the executable")
        return v


class WorkersConfig(BaseModel):
    analysis: WorkerCommand = Field(default_factory=lambda: WorkerCommand(command=["python", "run_analysis.py"]))
    generate: WorkerCommand = Field(default_factory=lambda: WorkerCommand(command=["claude"]))


class AgentsConfig(BaseModel):
    command: List[str] = Field(default_factory=lambda: ["bun", "run"])
    dir: str = "agents"


class TargetsConfig(BaseModel):
    shared: Optional[str] = None
    api: Optional[str] = None
    ui: Optional[str] = None


class DeployMappingConfig(BaseModel):
    source: str
    target: str
    dest: str = ""


class DeployConfig(BaseModel):
    mappings: Optional[List[DeployMappingConfig]] = None


class Settings(BaseModel):
    model_config = ConfigDict(extra="forbid")

    output_root: str = "output"
    grace_period_seconds: float = Field(default=5.0, ge=0)
    workers: WorkersConfig = Field(default_factory=WorkersConfig)
    agents: AgentsConfig = Field(default_factory=AgentsConfig)
    targets: TargetsConfig = Field(default_factory=TargetsConfig)
    deploy: DeployConfig = Field(default_factory=DeployConfig)

    @model_validator(mode="after")
    def mapping_targets_known(self):
        if self.deploy.mappings:
            known = {"shared", "api", "ui"}
            for m in self.deploy.mappings:
                if m.target not in known:
                    raise ValueError(f"deploy mapping target '{m.target}' must be one of {sorted(known)}")
        return self
