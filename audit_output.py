"""
Audit every entity folder under the output root.

Reports, per entity: the detected mode, required analysis artifacts that are
missing, stages left failed/running/queued in pipeline_state.json, and whether a
templates/ folder exists. Exits 1 when any entity has missing artifacts or
failed stages.
"""
import argparse
import json
import os
import sys
from typing import Any, Dict, List

from forge.common.utils import read_json
from forge.pipeline.artifacts import ArtifactStore
from forge.pipeline.config import load_run_settings
from forge.pipeline.errors import PipelineError, report_failure
from forge.pipeline.steps import detect_mode, required_artifacts

PROBLEM_STATUSES = {"failed", "running", "queued"}


def audit_subject(output_root: str, folder: str) -> Dict[str, Any]:
    path = os.path.join(output_root, folder)
    store = ArtifactStore(path)
    mode = detect_mode(None, store.existing_names())
    missing = store.missing(required_artifacts(mode))

    problem_stages: List[Dict[str, Any]] = []
    state_path = os.path.join(path, "pipeline_state.json")
    if os.path.exists(state_path):
        try:
            state = read_json(state_path)
        except ValueError as e:
            problem_stages.append({"stage": "pipeline_state.json", "status": f"unreadable: {e}"})
            state = {}
        for stage, st in sorted((state.get("stages") or {}).items()):
            if st.get("status") in PROBLEM_STATUSES:
                problem_stages.append({"stage": stage, "status": st.get("status"),
                                       "message": (st.get("progress") or {}).get("message")})

    return {
        "folder": folder,
        "mode": mode.value,
        "missing": missing,
        "problem_stages": problem_stages,
        "has_templates": os.path.isdir(os.path.join(path, "templates")),
    }


def audit_output(output_root: str) -> List[Dict[str, Any]]:
    if not os.path.isdir(output_root):
        return []
    return [
        audit_subject(output_root, entry) for entry in sorted(os.listdir(output_root))
        if os.path.isdir(os.path.join(output_root, entry))
    ]


def has_issues(report: Dict[str, Any]) -> bool:
    return bool(report["missing"]) or any(s["status"] == "failed" for s in report["problem_stages"])


def print_report(reports: List[Dict[str, Any]]) -> None:
    if not reports:
        print("[audit] no entity folders found")
        return
    for r in reports:
        flag = "!!" if has_issues(r) else "ok"
        templates = "templates" if r["has_templates"] else "no templates"
        print(f"[{flag}] {r['folder']} ({r['mode']}, {templates})")
        for name in r["missing"]:
            print(f"     missing: {name}")
        for s in r["problem_stages"]:
            print(f"     stage {s['stage']}: {s['status']}")
    flagged = sum(1 for r in reports if has_issues(r))
    print(f"\n[audit] {len(reports)} entities, {flagged} with issues")


def main(argv=None):
    parser = argparse.ArgumentParser(description="Audit analysis outputs for every entity.")
    parser.add_argument("--output-root", dest="output_root", help="Override settings output_root")
    parser.add_argument("--settings", help="Settings YAML (default: settings.yaml if present)")
    parser.add_argument("--json", action="store_true", help="Emit the report as JSON")
    args = parser.parse_args(argv)

    try:
        settings = load_run_settings(args.settings)
    except PipelineError as e:
        sys.exit(report_failure(e))
    reports = audit_output(args.output_root or settings.output_root)
    if args.json:
        print(json.dumps(reports, indent=2))
    else:
        print_report(reports)
    sys.exit(1 if any(has_issues(r) for r in reports) else 0)


if __name__ == "__main__":
    main()
