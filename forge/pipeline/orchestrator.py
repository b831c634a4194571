"""
Reconcile a subject's analysis artifacts, then hand off to the generation stage.

ensure_artifacts() is a single pass: compute what is missing, run the analysis
worker once with --skip-steps for everything already present, and re-check the
directory afterwards. The worker's exit status alone is never taken as proof
that its outputs exist.
"""
import os
from dataclasses import dataclass
from typing import Dict, List, Optional

from forge.common.utils import ProgressLogger, _utc, save_json
from forge.pipeline.artifacts import ArtifactStore, missing_artifacts, skip_steps_for
from forge.pipeline.assets import render_asset_context
from forge.pipeline.errors import PostconditionError, WorkerExecutionError
from forge.pipeline.steps import Mode, default_form_name, is_search_detail_form, required_artifacts
from forge.pipeline.worker import WorkerInvocation, WorkerProcessRunner
from schemas import AssetClassificationDoc

CLASSIFICATION_JSON = "asset-classification.json"
CLASSIFICATION_TXT = "asset-classification.txt"


@dataclass(frozen=True)
class PipelineRun:
    subject: str
    target_dir: str
    mode: Mode
    required: List[str]
    missing: List[str]
    skip_steps: List[int]


class PipelineOrchestrator:
    def __init__(self, analysis_command: List[str], generate_command: Optional[List[str]] = None,
                 generate_args: Optional[List[str]] = None, runner: Optional[WorkerProcessRunner] = None,
                 form_name: Optional[str] = None, validate: bool = True,
                 logger: Optional[ProgressLogger] = None):
        self.analysis_command = list(analysis_command)
        self.generate_command = list(generate_command or [])
        self.generate_args = list(generate_args or [])
        self.runner = runner or WorkerProcessRunner()
        self.form_name = form_name
        self.validate = validate
        self.logger = logger or ProgressLogger()

    def plan(self, subject: str, target_dir: str, mode: Mode) -> PipelineRun:
        required = required_artifacts(mode)
        missing = missing_artifacts(target_dir, required)
        skip = skip_steps_for(target_dir, mode) if missing else []
        return PipelineRun(subject=subject, target_dir=target_dir, mode=mode,
                           required=required, missing=missing, skip_steps=skip)

    def single_form_name(self, subject: str) -> str:
        """Form name for a single-form run; a Search/Detail hint falls back to frm<subject>."""
        if self.form_name and not is_search_detail_form(self.form_name):
            return self.form_name
        return default_form_name(subject)

    def analysis_invocation(self, run: PipelineRun) -> WorkerInvocation:
        args = ["--entity", run.subject, "--output", run.target_dir]
        if run.mode is Mode.SINGLE:
            args += ["--form-name", self.single_form_name(run.subject)]
        if run.skip_steps:
            args += ["--skip-steps", ",".join(str(i) for i in sorted(run.skip_steps))]
        return WorkerInvocation(command=self.analysis_command, args=args)

    def ensure_artifacts(self, subject: str, target_dir: str, mode: Mode) -> PipelineRun:
        run = self.plan(subject, target_dir, mode)
        if not run.missing:
            self.logger.log("analysis", "skipped", message="all analysis artifacts present",
                            artifacts=run.required)
            return run

        print(f"[analysis] {len(run.missing)} of {len(run.required)} artifacts missing for {subject}:")
        for name in run.missing:
            print(f"  - {name}")
        if run.skip_steps:
            print(f"[skip] steps already satisfied: {', '.join(str(i) for i in run.skip_steps)}")

        invocation = self.analysis_invocation(run)
        command = invocation.display()
        self.logger.log("analysis", "running", message=f"{len(run.missing)} artifacts missing",
                        artifacts=run.missing, command=command,
                        extra={"mode": run.mode.value, "skip_steps": run.skip_steps})
        code = self.runner.run(invocation)
        if code != 0:
            self.logger.log("analysis", "failed", message=f"worker exited {code}", command=command)
            raise WorkerExecutionError("analysis", code, command)

        still_missing = missing_artifacts(target_dir, run.required)
        if still_missing:
            self.logger.log("analysis", "failed", message="artifacts missing after worker run",
                            artifacts=still_missing, command=command)
            raise PostconditionError(
                still_missing,
                remediation=(f"Missing: {', '.join(still_missing)}\n"
                             f"Try running a full analysis:\n  {command}"),
            )
        if self.validate:
            ArtifactStore(target_dir).validate(run.required)
        self.logger.log("analysis", "done", artifacts=run.required, command=command)
        return run

    def write_classification(self, subject: str, target_dir: str,
                             buckets: Dict[str, List[str]], tab_names: List[str]) -> str:
        doc = AssetClassificationDoc(subject=subject, created_at=_utc(), tab_names=tab_names, buckets=buckets)
        path = os.path.join(target_dir, CLASSIFICATION_JSON)
        save_json(path, doc.model_dump())
        with open(os.path.join(target_dir, CLASSIFICATION_TXT), "w", encoding="utf-8") as f:
            f.write(render_asset_context(buckets))
        return path

    def generation_invocation(self, subject: str, target_dir: str, classification_path: str) -> WorkerInvocation:
        return WorkerInvocation(
            command=self.generate_command,
            args=["--entity", subject, *self.generate_args],
            cwd=target_dir,
            env={
                "ENTITY_NAME": subject,
                "OUTPUT_PATH": os.path.abspath(target_dir),
                "ASSET_CLASSIFICATION": os.path.abspath(classification_path),
            },
        )

    def run_generation(self, subject: str, target_dir: str, classification_path: str) -> None:
        invocation = self.generation_invocation(subject, target_dir, classification_path)
        command = invocation.display()
        self.logger.log("generate", "running", command=command)
        code = self.runner.run(invocation)
        if code != 0:
            self.logger.log("generate", "failed", message=f"worker exited {code}", command=command)
            raise WorkerExecutionError("generate", code, command)
        self.logger.log("generate", "done", command=command)
