"""
Scenario Catalog: Scenario Pack Loader.

Loads and validates baseball/softball scenario packs from JSON.

Features:
- Pydantic schema for packs, scenarios and answer options
- Readable "path: message" validation errors
- Quality warnings beyond the schema (duplicate ids, look-alike options)
- Filtering by sport, level and category before drilling

The scheduler only reads ``Scenario.id``; everything else is for display.
"""

from __future__ import annotations

import json
from collections.abc import Iterable
from pathlib import Path
from typing import Any, Literal, Optional

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .exceptions import ScenarioPackError

Sport = Literal["baseball", "softball"]
Level = Literal["8u", "10u", "12u", "high-school", "college"]
Position = Literal["c", "1b", "2b", "3b", "ss", "lf", "cf", "rf", "p", "dh"]
Base = Literal["1b", "2b", "3b"]
Category = Literal[
    "bases-empty",
    "runner-1b",
    "runner-2b",
    "runner-3b",
    "runners-1b-2b",
    "runners-1b-3b",
    "runners-2b-3b",
    "bases-loaded",
    "double-play-ball",
    "cutoff-relay",
    "throwing-accuracy",
    "bunt-defense",
    "pop-up-priority",
    "situational-awareness",
]


# ========================================
# Schema
# ========================================


class AnswerOption(BaseModel):
    """One of the three prescribed answers to a scenario."""

    model_config = ConfigDict(extra="ignore")

    id: str = Field(min_length=1)
    label: str = Field(min_length=1, max_length=100)
    description: str = Field(min_length=1)
    coaching_cue: str = Field(min_length=1)  # The teaching moment


class Scenario(BaseModel):
    """A game situation with BEST, OK and BAD answers."""

    model_config = ConfigDict(extra="ignore")

    id: str = Field(min_length=1, max_length=50)
    version: Literal[2] = 2

    sport: Sport
    level: Level
    position: Optional[Position] = None
    category: Category

    title: str = Field(min_length=5, max_length=150)
    description: str = Field(min_length=20, max_length=500)
    outs: int = Field(ge=0, le=2)
    runners: list[Base] = Field(default_factory=list)
    question: str = Field(min_length=10, max_length=300)

    best: AnswerOption
    ok: AnswerOption
    bad: AnswerOption

    tags: list[str] = Field(default_factory=list)
    difficulty: Optional[Literal["easy", "medium", "hard"]] = None


class PackMetadata(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str
    description: Optional[str] = None
    sport: Optional[Sport] = None
    levels: list[Level] = Field(default_factory=list)


class ScenarioPack(BaseModel):
    """A versioned dataset of scenarios."""

    model_config = ConfigDict(extra="ignore")

    version: Literal[2]
    scenarios: list[Scenario] = Field(min_length=1)
    metadata: Optional[PackMetadata] = None


# ========================================
# Validation
# ========================================


def _format_errors(error: ValidationError) -> list[str]:
    messages = []
    for err in error.errors():
        location = ".".join(str(part) for part in err["loc"]) or "<root>"
        messages.append(f"{location}: {err['msg']}")
    return messages


def validate_pack(data: Any) -> ScenarioPack:
    """
    Validate raw data as a scenario pack.

    Raises:
        ScenarioPackError: With one "path: message" entry per problem
    """
    try:
        return ScenarioPack.model_validate(data)
    except ValidationError as e:
        raise ScenarioPackError(_format_errors(e)) from e


def validate_pack_safe(data: Any) -> tuple[ScenarioPack | None, list[str]]:
    """
    Validate without raising.

    Returns:
        (pack, []) when valid, (None, errors) otherwise
    """
    try:
        return validate_pack(data), []
    except ScenarioPackError as e:
        return None, e.errors


def validate_scenario(data: Any) -> Scenario:
    """Validate a single scenario."""
    try:
        return Scenario.model_validate(data)
    except ValidationError as e:
        raise ScenarioPackError(_format_errors(e)) from e


def check_pack_quality(pack: ScenarioPack) -> list[str]:
    """
    Find problems the schema cannot express.

    Returns:
        Warning messages (empty if none)
    """
    warnings: list[str] = []

    seen: set[str] = set()
    for scenario in pack.scenarios:
        if scenario.id in seen:
            warnings.append(f"Duplicate scenario ID: {scenario.id}")
        seen.add(scenario.id)

    for scenario in pack.scenarios:
        if scenario.best.label == scenario.ok.label:
            warnings.append(f"Scenario {scenario.id}: BEST and OK have identical labels")
        if scenario.ok.label == scenario.bad.label:
            warnings.append(f"Scenario {scenario.id}: OK and BAD have identical labels")
        if scenario.best.label == scenario.bad.label:
            warnings.append(f"Scenario {scenario.id}: BEST and BAD have identical labels")

    total = len(pack.scenarios)
    baseball = sum(1 for s in pack.scenarios if s.sport == "baseball")
    if baseball == total:
        warnings.append("Dataset is 100% baseball (no softball)")
    elif baseball == 0:
        warnings.append("Dataset is 100% softball (no baseball)")

    return warnings


# ========================================
# Loading & Filtering
# ========================================


def load_pack(path: Path | str) -> ScenarioPack:
    """
    Load and validate a scenario pack from a JSON file.

    Raises:
        ScenarioPackError: Unreadable file, invalid JSON or schema violations
    """
    path = Path(path)
    try:
        with open(path, encoding="utf-8") as f:
            raw = json.load(f)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise ScenarioPackError([f"{path}: invalid JSON ({e})"]) from e
    except OSError as e:
        raise ScenarioPackError([f"{path}: {e}"]) from e

    pack = validate_pack(raw)
    logger.info(f"Loaded {len(pack.scenarios)} scenarios from {path}")
    return pack


def filter_scenarios(
    scenarios: Iterable[Scenario],
    sport: str | None = None,
    level: str | None = None,
    category: str | None = None,
) -> list[Scenario]:
    """Keep scenarios matching every given filter, preserving order."""
    return [
        s
        for s in scenarios
        if (sport is None or s.sport == sport)
        and (level is None or s.level == level)
        and (category is None or s.category == category)
    ]
