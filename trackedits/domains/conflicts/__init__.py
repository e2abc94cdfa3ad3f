from trackedits.domains.conflicts.entities import Conflict, ConflictType, ResolutionStrategy
from trackedits.domains.conflicts.services import ConflictDetector, ResolutionOutcome

__all__ = [
    "Conflict", "ConflictType", "ResolutionStrategy",
    "ConflictDetector", "ResolutionOutcome"
]
