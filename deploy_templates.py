import argparse
import sys

from forge.common.utils import ProgressLogger, default_run_id
from forge.pipeline.config import load_run_settings, subject_dir
from forge.pipeline.errors import ConfigurationError, PipelineError, report_failure

from driver import deploy_subject


def main(argv=None):
    parser = argparse.ArgumentParser(description="Copy an entity's generated templates into the target projects.")
    parser.add_argument("--entity", help="Entity whose templates/ folder is deployed")
    parser.add_argument("--output", help="Override the entity output directory")
    parser.add_argument("--settings", help="Settings YAML (default: settings.yaml if present)")
    parser.add_argument("--dry-run", action="store_true", help="Preview only; no files are written")
    args = parser.parse_args(argv)

    try:
        if not args.entity:
            raise ConfigurationError(
                "--entity is required",
                remediation=('Usage: python deploy_templates.py --entity "Vendor"\n'
                             '       python deploy_templates.py --entity "Vendor" --dry-run'))
        settings = load_run_settings(args.settings)
        target_dir = subject_dir(settings, args.entity, args.output)
        logger = ProgressLogger.for_subject(target_dir, subject=args.entity, run_id=default_run_id(args.entity))
        code = deploy_subject(args.entity, target_dir, settings, args.dry_run, logger)
        if args.dry_run and code == 0:
            print(f"To deploy for real:\n  python deploy_templates.py --entity {args.entity}")
    except PipelineError as e:
        code = report_failure(e)
    sys.exit(code)


if __name__ == "__main__":
    main()
