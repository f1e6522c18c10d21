# triphub/infrastructure/repositories/results.py

from dataclasses import dataclass, asdict


@dataclass(frozen=True)
class UpdateSummary:
    """Outcome of a single atomic update: rows matching the filter, rows actually changed."""

    matched: int
    modified: int

    def as_dict(self) -> dict:
        return asdict(self)
