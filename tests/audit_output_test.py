import json
from pathlib import Path

import pytest

import audit_output
from forge.pipeline.steps import Mode, required_artifacts


def make_subject(root: Path, name: str, artifacts, stages=None, templates=False):
    path = root / name
    path.mkdir(parents=True)
    for artifact in artifacts:
        (path / artifact).write_text("{}", encoding="utf-8")
    if stages is not None:
        (path / "pipeline_state.json").write_text(json.dumps({"stages": stages}), encoding="utf-8")
    if templates:
        (path / "templates").mkdir()
    return path


def test_complete_subject_has_no_issues(tmp_path: Path):
    make_subject(tmp_path, "Acme", required_artifacts(Mode.PAIRED),
                 stages={"analysis": {"status": "done"}}, templates=True)
    [report] = audit_output.audit_output(str(tmp_path))
    assert report["mode"] == "paired"
    assert report["missing"] == []
    assert report["has_templates"] is True
    assert not audit_output.has_issues(report)


def test_single_form_subject_missing_artifacts(tmp_path: Path):
    present = required_artifacts(Mode.SINGLE)[:3]
    make_subject(tmp_path, "FuelPrices", present)
    [report] = audit_output.audit_output(str(tmp_path))
    assert report["mode"] == "single"
    assert report["missing"] == required_artifacts(Mode.SINGLE)[3:]
    assert audit_output.has_issues(report)


def test_failed_stage_is_an_issue_but_running_is_only_reported(tmp_path: Path):
    make_subject(tmp_path, "A", required_artifacts(Mode.PAIRED), stages={"generate": {"status": "running"}})
    make_subject(tmp_path, "B", required_artifacts(Mode.PAIRED),
                 stages={"analysis": {"status": "failed", "progress": {"message": "exit 2"}}})
    a, b = audit_output.audit_output(str(tmp_path))
    assert a["problem_stages"][0]["status"] == "running"
    assert not audit_output.has_issues(a)
    assert b["problem_stages"] == [{"stage": "analysis", "status": "failed", "message": "exit 2"}]
    assert audit_output.has_issues(b)


def test_missing_root_yields_no_reports(tmp_path: Path):
    assert audit_output.audit_output(str(tmp_path / "nope")) == []


def test_main_exit_code_reflects_issues(tmp_path: Path, capsys):
    make_subject(tmp_path, "Acme", [])
    with pytest.raises(SystemExit) as exc:
        audit_output.main(["--output-root", str(tmp_path), "--json"])
    assert exc.value.code == 1
    reports = json.loads(capsys.readouterr().out)
    assert reports[0]["folder"] == "Acme"
