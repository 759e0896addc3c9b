from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any


@dataclass
class ConformResults:
    errors: list[tuple[str, str]] = field(default_factory=list)
    issues: list[tuple[str, str]] = field(default_factory=list)
    information: list[tuple[str, str]] = field(default_factory=list)
    cancelled: bool = False
    return_code: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "ErrorCount": len(self.errors),
            "IssueCount": len(self.issues),
            "InformationCount": len(self.information),
            "Errors": [{"Key": member, "Value": message} for member, message in self.errors],
            "Issues": [{"Key": member, "Value": message} for member, message in self.issues],
            "Information": [{"Key": member, "Value": message} for member, message in self.information],
            "Cancelled": self.cancelled,
            "ReturnCode": self.return_code,
        }


def write_results(path: Path, results: ConformResults) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as stream:
        json.dump(results.to_dict(), stream, indent=2)
    return path


def _pairs(raw: Any) -> list[tuple[str, str]]:
    if not isinstance(raw, list):
        return []
    return [
        (entry["Key"], entry["Value"])
        for entry in raw
        if isinstance(entry, dict) and isinstance(entry.get("Key"), str) and isinstance(entry.get("Value"), str)
    ]


def load_results(path: Path) -> ConformResults:
    with Path(path).open("r", encoding="utf-8") as stream:
        data = json.load(stream)
    if not isinstance(data, dict):
        raise ValueError(f"Results file {path} does not hold a JSON object")
    return ConformResults(
        errors=_pairs(data.get("Errors")),
        issues=_pairs(data.get("Issues")),
        information=_pairs(data.get("Information")),
        cancelled=bool(data.get("Cancelled", False)),
        return_code=int(data.get("ReturnCode", 0)),
    )
