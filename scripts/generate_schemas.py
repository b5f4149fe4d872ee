"""Generate JSON schemas for the lock file and changeset and save to schemas/ directory."""

import json
from pathlib import Path

from ontlock.contracts import ApiSurfaceSnapshot, LockRecord
from ontlock.kernel.diff import Changeset

SCHEMA_FILES = (
    (LockRecord, "ont_lock.schema.json"),
    (ApiSurfaceSnapshot, "api_surface_snapshot.schema.json"),
    (Changeset, "changeset.schema.json"),
)


def generate_schemas(schemas_dir=None):
    """Generate JSON schemas (camelCase wire form) for all persisted models."""
    if schemas_dir is None:
        schemas_dir = Path(__file__).parent.parent / "schemas"
    schemas_dir = Path(schemas_dir)
    schemas_dir.mkdir(exist_ok=True)

    written = []
    for model, filename in SCHEMA_FILES:
        schema = model.model_json_schema(by_alias=True)
        schema_path = schemas_dir / filename
        with open(schema_path, 'w', encoding='utf-8') as f:
            json.dump(schema, f, indent=2, ensure_ascii=False, sort_keys=True)
            f.write("\n")
        print(f"Generated: {schema_path}")
        written.append(schema_path)

    print("\nSchema generation complete!")
    return written


if __name__ == "__main__":
    generate_schemas()
