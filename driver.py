import argparse
import os
import sys

from forge.common.utils import ProgressLogger, default_run_id, ensure_dir
from forge.pipeline.artifacts import ArtifactStore
from forge.pipeline.assets import classify_assets, find_asset_files, load_tab_names
from forge.pipeline.config import deploy_targets, load_run_settings, mapping_table, subject_dir
from forge.pipeline.deploy import build_mappings, deploy_tree
from forge.pipeline.errors import ConfigurationError, DependencyError, PipelineError, report_failure
from forge.pipeline.orchestrator import PipelineOrchestrator
from forge.pipeline.steps import detect_mode
from forge.pipeline.worker import WorkerProcessRunner

USAGE = (
    "Usage: python driver.py --entity Facility [--form-name frmFacilitySearch] [--output DIR]\n"
    "       python driver.py --entity FuelPrices --form-name frmFuelPrices --deploy --dry-run"
)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Ensure analysis artifacts exist for an entity, then run interactive template generation.")
    parser.add_argument("--entity", help="Entity (subject) to process")
    parser.add_argument("--output", help="Override the entity output directory (default: <output_root>/<entity>)")
    parser.add_argument("--form-name", dest="form_name",
                        help="Form name hint; a non Search/Detail form selects single-form mode")
    parser.add_argument("--settings", help="Settings YAML (default: settings.yaml if present)")
    parser.add_argument("--deploy", action="store_true", help="Copy generated templates into the target projects")
    parser.add_argument("--dry-run", action="store_true", help="Preview the deployment copy without writing files")
    parser.add_argument("--skip-generate", action="store_true",
                        help="Stop after artifact reconciliation and asset classification")
    parser.add_argument("--no-validate", action="store_true",
                        help="Skip schema validation of analysis artifacts after the worker runs")
    return parser


def run(args: argparse.Namespace) -> int:
    if not args.entity:
        raise ConfigurationError("--entity is required", remediation=USAGE)
    settings = load_run_settings(args.settings)
    target_dir = subject_dir(settings, args.entity, args.output)
    ensure_dir(target_dir)

    logger = ProgressLogger.for_subject(target_dir, subject=args.entity, run_id=default_run_id(args.entity))
    store = ArtifactStore(target_dir)
    mode = detect_mode(args.form_name, store.existing_names())
    print(f"[driver] entity={args.entity} mode={mode.value} output={target_dir}")

    runner = WorkerProcessRunner(grace_period=settings.grace_period_seconds)
    orchestrator = PipelineOrchestrator(
        analysis_command=settings.workers.analysis.command + settings.workers.analysis.args,
        generate_command=settings.workers.generate.command,
        generate_args=settings.workers.generate.args,
        runner=runner,
        form_name=args.form_name,
        validate=not args.no_validate,
        logger=logger,
    )
    orchestrator.ensure_artifacts(args.entity, target_dir, mode)

    tab_names = load_tab_names(store)
    buckets = classify_assets(find_asset_files(target_dir), tab_names)
    classification_path = orchestrator.write_classification(args.entity, target_dir, buckets, tab_names)
    counts = {k: len(v) for k, v in buckets.items()}
    print(f"[assets] {sum(counts.values())} reference image(s) classified: {counts or 'none'}")
    logger.log("assets", "done", artifacts=[classification_path], extra={"buckets": counts})

    if args.skip_generate:
        logger.log("generate", "skipped", message="--skip-generate")
    else:
        orchestrator.run_generation(args.entity, target_dir, classification_path)

    if args.deploy or args.dry_run:
        return deploy_subject(args.entity, target_dir, settings, args.dry_run, logger)
    return 0


def deploy_subject(entity: str, target_dir: str, settings, dry_run: bool, logger: ProgressLogger) -> int:
    templates = os.path.join(target_dir, "templates")
    if not os.path.isdir(templates):
        raise DependencyError(f"Templates directory not found: {templates}", missing=[templates],
                              remediation=f"Run the template generator first:\n  python driver.py --entity {entity}")
    mappings = build_mappings(deploy_targets(settings), mapping_table(settings))
    logger.log("deploy", "running", message="dry run" if dry_run else None)
    result = deploy_tree(templates, mappings, dry_run=dry_run)
    if dry_run:
        print(f"\n[dry-run] would deploy {result.files} file(s)")
        logger.log("deploy", "skipped", message=f"dry run: {result.files} file(s) planned")
        return 0
    if result.errors:
        print(f"\n[deploy] completed with {len(result.errors)} error(s):", file=sys.stderr)
        for err in result.errors:
            print(f"  - {err}", file=sys.stderr)
        print(f"[deploy] {result.files} file(s) copied (with errors)")
        logger.log("deploy", "failed", message=f"{len(result.errors)} copy error(s)",
                   extra={"copied": result.files, "errors": [str(e) for e in result.errors]})
        return 1
    print(f"\n[deploy] {result.files} file(s) deployed")
    logger.log("deploy", "done", extra={"copied": result.files})
    return 0


def main(argv=None):
    args = build_parser().parse_args(argv)
    try:
        code = run(args)
    except PipelineError as e:
        code = report_failure(e)
    sys.exit(code)


if __name__ == "__main__":
    main()
