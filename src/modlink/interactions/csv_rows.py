"""CSV parsing for LLM responses.

Every prompt asks for a fenced CSV table. Responses are parsed leniently:
the first fenced block is used when present, header lines (``from_module...``)
and blank lines are ignored, and rows with unbalanced quotes or too few
columns are dropped without error.

Each prompt type gets its own row type so callers never index into raw
field lists.
"""

from __future__ import annotations

import csv
import re
from dataclasses import dataclass

_CSV_FENCE = re.compile(r"```csv\n(.*?)\n```", re.DOTALL)
_PLAIN_FENCE = re.compile(r"```\n(.*?)\n```", re.DOTALL)

_HEADER_PREFIX = "from_module"


@dataclass(frozen=True, slots=True)
class BatchSemanticRow:
    """``from_module,to_module,semantic``"""

    from_module: str
    to_module: str
    semantic: str


@dataclass(frozen=True, slots=True)
class CrossProcessRow:
    """``from_module_path,to_module_path,reason,confidence``"""

    from_module_path: str
    to_module_path: str
    reason: str
    confidence: str

    @property
    def is_low_confidence(self) -> bool:
        return self.confidence == "low"


@dataclass(frozen=True, slots=True)
class TargetedRow:
    """``from_module_path,to_module_path,action,reason[,confidence]``"""

    from_module_path: str
    to_module_path: str
    action: str
    reason: str
    confidence: str | None = None

    @property
    def is_confirm(self) -> bool:
        return self.action == "CONFIRM"


def extract_csv_block(response: str) -> str:
    """Body of the first ```csv block, else the first plain ``` block, else everything."""
    match = _CSV_FENCE.search(response) or _PLAIN_FENCE.search(response)
    return match.group(1) if match else response


def parse_row(line: str) -> list[str] | None:
    """Split one CSV line (RFC 4180 quoting). Returns None when the line is malformed."""
    try:
        return next(csv.reader([line], strict=True), None)
    except csv.Error:
        return None


def _data_rows(response: str, min_fields: int) -> list[list[str]]:
    rows: list[list[str]] = []
    for line in extract_csv_block(response).split("\n"):
        if not line.strip() or line.startswith(_HEADER_PREFIX):
            continue
        fields = parse_row(line)
        if fields is None or len(fields) < min_fields:
            continue
        rows.append(fields)
    return rows


def _clean_text(value: str) -> str:
    return value.replace('"', "").strip()


def parse_batch_semantic_rows(response: str) -> list[BatchSemanticRow]:
    return [
        BatchSemanticRow(
            from_module=fields[0].strip(),
            to_module=fields[1].strip(),
            semantic=_clean_text(fields[2]),
        )
        for fields in _data_rows(response, 3)
    ]


def parse_cross_process_rows(response: str) -> list[CrossProcessRow]:
    return [
        CrossProcessRow(
            from_module_path=fields[0].strip(),
            to_module_path=fields[1].strip(),
            reason=_clean_text(fields[2]),
            confidence=fields[3].strip().lower(),
        )
        for fields in _data_rows(response, 4)
    ]


def parse_targeted_rows(response: str) -> list[TargetedRow]:
    return [
        TargetedRow(
            from_module_path=fields[0].strip(),
            to_module_path=fields[1].strip(),
            action=fields[2].strip().upper(),
            reason=_clean_text(fields[3]),
            confidence=fields[4].strip().lower() if len(fields) > 4 else None,
        )
        for fields in _data_rows(response, 4)
    ]
