"""Test JSON schema export and JSON roundtrip of the engine records."""

import json
from datetime import UTC, date, datetime
from pathlib import Path

import pytest
from pydantic import ValidationError

from factories import make_activity, make_itinerary
from itinerary_engine.models.adaptation import (
    Adaptation,
    AdaptationData,
    AdaptationTarget,
    AdaptationType,
    Impact,
    IndoorAlternative,
    Priority,
)
from itinerary_engine.models.factors import (
    EventImpact,
    LocalEvent,
    RealTimeFactors,
    WeatherForecast,
)
from itinerary_engine.models.itinerary import Itinerary
from scripts.export_schemas import main as export_schemas


@pytest.fixture(scope="module")
def schemas_dir(tmp_path_factory: pytest.TempPathFactory) -> Path:
    """Export schemas once for the module."""
    directory = tmp_path_factory.mktemp("schemas")
    export_schemas(directory)
    return directory


@pytest.mark.parametrize(
    "name", ["Itinerary", "RealTimeFactors", "Adaptation", "OptimizationResult"]
)
def test_schema_exported_with_title(schemas_dir: Path, name: str) -> None:
    """Test that each schema file exists and carries its model title."""
    with open(schemas_dir / f"{name}.schema.json") as f:
        schema = json.load(f)
    assert schema["title"] == name


def test_day_total_cost_in_serialization_schema(schemas_dir: Path) -> None:
    """Test that the computed day total is part of the output schema."""
    schema = Itinerary.model_json_schema(mode="serialization")
    assert "total_cost" in schema["$defs"]["Day"]["properties"]


def test_itinerary_json_roundtrip() -> None:
    """Test that an itinerary survives a JSON roundtrip, computed fields included."""
    itinerary = make_itinerary(
        [[make_activity("louvre", cost=22.0)], [make_activity("orsay", cost=16.0)]],
        nightly_rate=120.0,
    )

    restored = Itinerary.model_validate_json(itinerary.model_dump_json())

    assert restored == itinerary
    assert restored.total_cost == 278.0


def test_adaptation_json_roundtrip() -> None:
    """Test an adaptation with a typed target and payload."""
    event = LocalEvent(
        id="fete", name="Fete de la Musique", date=date(2025, 6, 21), impact=EventImpact.positive
    )
    adaptation = Adaptation(
        id="weather_1",
        type=AdaptationType.weather,
        priority=Priority.high,
        reason="Heavy rain expected",
        suggested_change="Consider indoor alternatives: Musee d'Orsay",
        impact=Impact.moderate,
        confidence=0.9,
        created_at=datetime(2025, 6, 1, 8, 0, tzinfo=UTC),
        target=AdaptationTarget(day_date=date(2025, 6, 1), activity_ids=["louvre"]),
        data=AdaptationData(
            indoor_alternatives=[IndoorAlternative(name="Musee d'Orsay")], event=event
        ),
    )

    restored = Adaptation.model_validate_json(adaptation.model_dump_json())

    assert restored == adaptation
    assert restored.type == AdaptationType.weather


def test_unknown_adaptation_type_loads() -> None:
    """Test that adaptations from newer producers still deserialize."""
    restored = Adaptation.model_validate(
        {
            "id": "t1",
            "type": "transport",
            "priority": "low",
            "reason": "Metro works",
            "suggested_change": "Take the bus",
            "impact": "minor",
            "confidence": 0.4,
        }
    )
    assert restored.kind == "transport"


def test_factors_reject_out_of_range_precipitation() -> None:
    """Test that precipitation is a percentage."""
    with pytest.raises(ValidationError):
        RealTimeFactors(weather=[WeatherForecast(date=date(2025, 6, 1), precipitation=140)])
