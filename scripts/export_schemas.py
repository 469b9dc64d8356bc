"""Export JSON schemas for the engine's input and output records."""

import json
import sys
from pathlib import Path

from pydantic import BaseModel

from itinerary_engine.models.adaptation import Adaptation
from itinerary_engine.models.factors import RealTimeFactors
from itinerary_engine.models.itinerary import Itinerary
from itinerary_engine.models.optimization import OptimizationResult

MODELS: list[type[BaseModel]] = [Itinerary, RealTimeFactors, Adaptation, OptimizationResult]


def main(schemas_dir: Path = Path("docs/schemas")) -> list[Path]:
    """Export schemas to `schemas_dir` (docs/schemas/ by default)."""
    schemas_dir.mkdir(parents=True, exist_ok=True)

    written: list[Path] = []
    for model in MODELS:
        path = schemas_dir / f"{model.__name__}.schema.json"
        with open(path, "w") as f:
            json.dump(model.model_json_schema(), f, indent=2)
        print(f"Exported {model.__name__} schema to {path}")
        written.append(path)
    return written


if __name__ == "__main__":
    main(Path(sys.argv[1]) if len(sys.argv) > 1 else Path("docs/schemas"))
