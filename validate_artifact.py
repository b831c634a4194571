import argparse
import os

from forge.pipeline.artifacts import ArtifactStore
from forge.pipeline.errors import SchemaError
from schemas import SCHEMA_MAP


def main(argv=None):
    parser = argparse.ArgumentParser(description="Validate an analysis artifact against its schema.")
    parser.add_argument("--file", required=True, help="Path to the artifact JSON")
    parser.add_argument("--schema", choices=SCHEMA_MAP.keys(),
                        help="Artifact name whose schema applies (default: the file's own name)")
    args = parser.parse_args(argv)

    name = os.path.basename(args.file)
    model_cls = SCHEMA_MAP.get(args.schema or name)
    if model_cls is None:
        print(f"[ERROR] no schema registered for {name}; pass --schema")
        raise SystemExit(1)

    store = ArtifactStore(os.path.dirname(os.path.abspath(args.file)))
    try:
        store.load(name, model_cls)
    except (SchemaError, OSError) as e:
        print(f"[ERROR] {e}")
        raise SystemExit(1)
    print(f"Validation OK: {args.file} matches {model_cls.__name__} ({model_cls.expected_version})")


if __name__ == "__main__":
    main()
