"""
Practice session history
"""
from typing import List, Optional, Tuple

from fretcoach.types import SessionResult


class SessionHistory:
    """In-memory record of formed chords, oldest first"""

    def __init__(self):
        self.results: List[SessionResult] = []

    def add(self, result: SessionResult):
        self.results.append(result)

    def for_chord(self, chord: str) -> Tuple[SessionResult, ...]:
        return tuple(r for r in self.results if r.chord == chord)

    def best_time(self, chord: str) -> Optional[float]:
        """Fastest time-to-form for a chord in milliseconds, if it was ever formed"""
        times = [r.time_to_form_ms for r in self.for_chord(chord)]
        return min(times) if times else None

    def clear(self):
        self.results.clear()
