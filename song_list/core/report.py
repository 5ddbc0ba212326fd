from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Iterable, Literal


OutcomeKind = Literal["imported", "skipped", "failed"]

MAX_SAMPLES = 10


@dataclass(frozen=True)
class Outcome:
    kind: OutcomeKind
    detail: str
    song_id: int | None = None


@dataclass(frozen=True)
class ImportReport:
    imported_count: int
    skipped_count: int
    failed_count: int
    total_count: int
    skipped_samples: list[str] = field(default_factory=list)
    error_samples: list[str] = field(default_factory=list)

    @property
    def message(self) -> str:
        return (
            f"Import finished: {self.imported_count} imported, "
            f"{self.skipped_count} skipped, {self.failed_count} failed "
            f"(of {self.total_count})"
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def build_report(outcomes: Iterable[Outcome]) -> ImportReport:
    imported = 0
    skipped: list[str] = []
    errors: list[str] = []
    skipped_count = 0
    failed_count = 0

    for outcome in outcomes:
        if outcome.kind == "imported":
            imported += 1
        elif outcome.kind == "skipped":
            skipped_count += 1
            if len(skipped) < MAX_SAMPLES:
                skipped.append(outcome.detail)
        elif outcome.kind == "failed":
            failed_count += 1
            if len(errors) < MAX_SAMPLES:
                errors.append(outcome.detail)
        else:
            raise ValueError(f"unknown outcome kind: {outcome.kind!r}")

    return ImportReport(
        imported_count=imported,
        skipped_count=skipped_count,
        failed_count=failed_count,
        total_count=imported + skipped_count + failed_count,
        skipped_samples=skipped,
        error_samples=errors,
    )
