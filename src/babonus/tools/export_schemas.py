from __future__ import annotations
from pathlib import Path
import json
from babonus.engine.schema_models import BonusDefinition, Filters

def export_schemas(out_dir: Path) -> list[Path]:
    out_dir.mkdir(parents=True, exist_ok=True)
    schemas = {
        "BonusDefinition.schema.json": BonusDefinition.model_json_schema(by_alias=True),
        "Filters.schema.json": Filters.model_json_schema(by_alias=True),
    }
    written: list[Path] = []
    for name, schema in schemas.items():
        fp = out_dir / name
        fp.write_text(json.dumps(schema, indent=2), encoding="utf-8")
        written.append(fp)
    return written

if __name__ == "__main__":
    root = Path(__file__).resolve().parents[3] / "docs" / "schemas"
    export_schemas(root)
    print(f"Exported schemas to {root}")
