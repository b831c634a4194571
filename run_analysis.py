"""
Run the analysis steps for one entity in order, one agent process per step.

This is the default analysis worker that driver.py launches. It understands the
same --entity/--output/--form-name/--skip-steps contract and stops at the first
step that exits nonzero, propagating that exit code.
"""
import argparse
import os
import sys
from typing import List, Optional, Tuple

from forge.common.utils import ProgressLogger, default_run_id, ensure_dir
from forge.pipeline.config import load_run_settings, subject_dir
from forge.pipeline.errors import ConfigurationError, PipelineError, process_exit_code, report_failure
from forge.pipeline.steps import (
    Mode,
    StepDefinition,
    default_form_name,
    is_search_detail_form,
    parse_entity_from_form_name,
    steps_for,
)
from forge.pipeline.worker import WorkerInvocation, WorkerProcessRunner


def parse_skip_steps(value: Optional[str]) -> List[int]:
    if not value:
        return []
    try:
        return sorted({int(part) for part in value.split(",") if part.strip()})
    except ValueError:
        raise ConfigurationError(f"--skip-steps must be comma-separated integers, got '{value}'")


def resolve_entity(entity: Optional[str], form_name: Optional[str]) -> Tuple[str, Optional[str], Mode]:
    """
    Work out (entity, form_name, mode). A form name that is not a Search/Detail
    form selects single-form mode; the entity falls back to the form name minus
    its frm prefix.
    """
    if form_name and not is_search_detail_form(form_name):
        if not entity:
            if not form_name.lower().startswith("frm"):
                raise ConfigurationError(
                    f'Could not parse entity name from form name "{form_name}"',
                    remediation="Expected format: frm{Entity}Search, frm{Entity}Detail, or frm{Entity}")
            entity = form_name[3:]
            print(f"[analysis] single form {form_name}; entity {entity}")
        return entity, form_name, Mode.SINGLE
    if form_name and not entity:
        entity = parse_entity_from_form_name(form_name)
    if not entity:
        raise ConfigurationError(
            "Entity name is required",
            remediation=('Usage: python run_analysis.py --entity "Facility" [--form-name frmFacilitySearch]\n'
                         '   or: python run_analysis.py --form-name frmFuelPrices'))
    return entity, form_name, Mode.PAIRED


def step_invocation(step: StepDefinition, entity: str, output: str, form_name: Optional[str],
                    agent_command: List[str], agents_dir: str) -> WorkerInvocation:
    args = ["--entity", entity, "--output", output]
    if form_name:
        args += ["--form-name", form_name]
    args += list(step.extra_args)
    return WorkerInvocation(command=[*agent_command, os.path.join(agents_dir, step.script)], args=args)


def run_steps(entity: str, output: str, mode: Mode, form_name: Optional[str], skip: List[int],
              runner: WorkerProcessRunner, agent_command: List[str], agents_dir: str,
              logger: ProgressLogger) -> int:
    steps = steps_for(mode)
    total = len(steps)
    if mode is Mode.SINGLE and not form_name:
        form_name = default_form_name(entity)
    for step in steps:
        stage = f"step-{step.index:02d}"
        if step.index in skip:
            print(f"[skip] step {step.index}/{total}: {step.title}")
            logger.log(stage, "skipped", current=step.index, total=total, message=step.title,
                       artifacts=list(step.artifacts))
            continue
        print("\n" + "=" * 80)
        print(f"STEP {step.index}/{total}: {step.title}")
        print("=" * 80 + "\n")
        invocation = step_invocation(step, entity, output, form_name, agent_command, agents_dir)
        logger.log(stage, "running", current=step.index, total=total, message=step.title,
                   artifacts=list(step.artifacts), command=invocation.display())
        code = runner.run(invocation)
        if code != 0:
            logger.log(stage, "failed", current=step.index, total=total,
                       message=f"{step.title} exited {code}")
            print(f"\n[error] step {step.index} failed with exit code {code}", file=sys.stderr)
            return process_exit_code(code)
        logger.log(stage, "done", current=step.index, total=total, message=step.title,
                   artifacts=list(step.artifacts))
        print(f"[done] step {step.index}: {', '.join(os.path.join(output, a) for a in step.artifacts)}")
    print(f"\n[analysis] all {total} steps complete for {entity}")
    return 0


def main(argv=None):
    parser = argparse.ArgumentParser(description="Run the ordered analysis steps for one entity.")
    parser.add_argument("--entity", help="Entity to analyze")
    parser.add_argument("--output", help="Output directory (default: <output_root>/<entity>)")
    parser.add_argument("--form-name", dest="form_name", help="Form name (frmXSearch, frmXDetail or frmX)")
    parser.add_argument("--skip-steps", dest="skip_steps", help="Comma-separated 1-based step numbers to skip")
    parser.add_argument("--settings", help="Settings YAML (default: settings.yaml if present)")
    args = parser.parse_args(argv)

    try:
        settings = load_run_settings(args.settings)
        entity, form_name, mode = resolve_entity(args.entity, args.form_name)
        skip = parse_skip_steps(args.skip_steps)
        output = subject_dir(settings, entity, args.output)
        ensure_dir(output)
        logger = ProgressLogger.for_subject(output, subject=entity, run_id=default_run_id(entity))
        runner = WorkerProcessRunner(grace_period=settings.grace_period_seconds)
        code = run_steps(entity, output, mode, form_name, skip, runner,
                         settings.agents.command, settings.agents.dir, logger)
    except PipelineError as e:
        code = report_failure(e)
    sys.exit(code)


if __name__ == "__main__":
    main()
