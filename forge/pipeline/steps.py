"""
Fixed analysis step tables and mode detection.

Two modes share the same eight trailing steps and differ only in how the form
structure is captured: one step per form for a Search/Detail pair, or a single
step for a standalone form.
"""
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, List, Optional, Tuple


class Mode(str, Enum):
    PAIRED = "paired"
    SINGLE = "single"


@dataclass(frozen=True)
class StepDefinition:
    index: int
    title: str
    script: str
    artifacts: Tuple[str, ...]
    extra_args: Tuple[str, ...] = field(default_factory=tuple)


SINGLE_MARKER = "form-structure.json"
PAIRED_MARKERS = ("form-structure-search.json", "form-structure-detail.json")

_SEARCH_DETAIL_FORM = re.compile(r"^(frm)?\w+(Search|Detail)$", re.IGNORECASE)
_FORM_NAME_PARTS = re.compile(r"^frm(.+?)(Search|Detail)$", re.IGNORECASE)

# (title, agent script, artifact) in execution order.
_COMMON_STEPS = [
    ("Business Logic Extractor", "business-logic-extractor.ts", "business-logic.json"),
    ("Data Access Pattern Analyzer", "data-access-analyzer.ts", "data-access.json"),
    ("Security & Authorization Extractor", "security-extractor.ts", "security.json"),
    ("UI Component Mapper", "ui-component-mapper.ts", "ui-mapping.json"),
    ("Form Workflow Analyzer", "form-workflow-analyzer.ts", "workflow.json"),
    ("Detail Form Tab Analyzer", "detail-tab-analyzer.ts", "tabs.json"),
    ("Validation Rule Extractor", "validation-extractor.ts", "validation.json"),
    ("Related Entity Analyzer", "related-entity-analyzer.ts", "related-entities.json"),
]


def _build_steps(mode: Mode) -> Tuple[StepDefinition, ...]:
    if mode is Mode.SINGLE:
        head = [("Form Structure Analyzer", "form-structure-analyzer.ts", (SINGLE_MARKER,), ())]
    else:
        head = [
            ("Form Structure Analyzer (Search)", "form-structure-analyzer.ts", (PAIRED_MARKERS[0],),
             ("--form-type", "Search")),
            ("Form Structure Analyzer (Detail)", "form-structure-analyzer.ts", (PAIRED_MARKERS[1],),
             ("--form-type", "Detail")),
        ]
    rows = head + [(title, script, (artifact,), ()) for title, script, artifact in _COMMON_STEPS]
    return tuple(
        StepDefinition(index=i, title=title, script=script, artifacts=artifacts, extra_args=extra)
        for i, (title, script, artifacts, extra) in enumerate(rows, start=1)
    )


STEP_TABLES = {mode: _build_steps(mode) for mode in Mode}


def steps_for(mode: Mode) -> Tuple[StepDefinition, ...]:
    return STEP_TABLES[Mode(mode)]


def required_artifacts(mode: Mode) -> List[str]:
    names: List[str] = []
    for step in steps_for(mode):
        names.extend(step.artifacts)
    return names


def is_search_detail_form(form_name: str) -> bool:
    return bool(_SEARCH_DETAIL_FORM.match(form_name))


def detect_mode(hint: Optional[str], existing_names: Iterable[str]) -> Mode:
    """
    Decide which artifact set applies to a subject. First match wins:
    a non Search/Detail form-name hint, then the single-form marker on disk,
    then any paired marker, then the paired default.
    """
    if hint and not is_search_detail_form(hint):
        return Mode.SINGLE
    existing = set(existing_names)
    if SINGLE_MARKER in existing:
        return Mode.SINGLE
    if any(marker in existing for marker in PAIRED_MARKERS):
        return Mode.PAIRED
    return Mode.PAIRED


def parse_entity_from_form_name(form_name: str) -> Optional[str]:
    """frmFacilitySearch -> Facility; None when the name is not a Search/Detail form."""
    match = _FORM_NAME_PARTS.match(form_name)
    if match:
        return match.group(1)
    return None


def default_form_name(subject: str) -> str:
    return f"frm{subject}"
