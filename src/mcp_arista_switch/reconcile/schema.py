"""Result types for cache reconciliation."""
from dataclasses import dataclass, field, asdict


@dataclass
class SyncResult:
    """Outcome of rewriting a cache table from the live switch.

    success only reports that the sync ran; per-row failures are in errors.
    """
    success: bool = True
    synced_count: int = 0
    errors: list[str] = field(default_factory=list)
    message: str = ""

    def to_dict(self) -> dict:
        return asdict(self)
