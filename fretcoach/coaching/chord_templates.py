"""
Starter catalog of open chord shapes
Strings: 1 = high e ... 6 = low E; fingers: 1 = index ... 4 = pinky
"""
from typing import Dict, List, Optional

from fretcoach.types import ChordTemplate, Fretted, Muted, Open


CHORD_TEMPLATES: Dict[str, ChordTemplate] = {
    'C': ChordTemplate('C Major', {
        6: Muted(),
        5: Fretted(fret=3, finger=3),
        4: Fretted(fret=2, finger=2),
        3: Open(),
        2: Fretted(fret=1, finger=1),
        1: Open(),
    }),
    'D': ChordTemplate('D Major', {
        6: Muted(),
        5: Muted(),
        4: Open(),
        3: Fretted(fret=2, finger=1),
        2: Fretted(fret=3, finger=3),
        1: Fretted(fret=2, finger=2),
    }),
    'E': ChordTemplate('E Major', {
        6: Open(),
        5: Fretted(fret=2, finger=2),
        4: Fretted(fret=2, finger=3),
        3: Fretted(fret=1, finger=1),
        2: Open(),
        1: Open(),
    }),
    'G': ChordTemplate('G Major', {
        6: Fretted(fret=3, finger=3),
        5: Open(),
        4: Open(),
        3: Open(),
        2: Fretted(fret=3, finger=4),
        1: Fretted(fret=3, finger=2),
    }),
    'A': ChordTemplate('A Major', {
        6: Muted(),
        5: Open(),
        4: Fretted(fret=2, finger=1),
        3: Fretted(fret=2, finger=2),
        2: Fretted(fret=2, finger=3),
        1: Open(),
    }),
    'Am': ChordTemplate('A Minor', {
        6: Muted(),
        5: Open(),
        4: Fretted(fret=2, finger=2),
        3: Fretted(fret=2, finger=3),
        2: Fretted(fret=1, finger=1),
        1: Open(),
    }),
    'Em': ChordTemplate('E Minor', {
        6: Open(),
        5: Fretted(fret=2, finger=2),
        4: Fretted(fret=2, finger=3),
        3: Open(),
        2: Open(),
        1: Open(),
    }),
    'Dm': ChordTemplate('D Minor', {
        6: Muted(),
        5: Muted(),
        4: Open(),
        3: Fretted(fret=2, finger=2),
        2: Fretted(fret=3, finger=3),
        1: Fretted(fret=1, finger=1),
    }),
}

CHORD_NAMES: List[str] = list(CHORD_TEMPLATES)


class ChordLibrary:
    """Named chord template lookup"""

    def __init__(self, templates: Optional[Dict[str, ChordTemplate]] = None):
        self.templates = dict(templates if templates is not None else CHORD_TEMPLATES)

    def lookup(self, name: str) -> Optional[ChordTemplate]:
        return self.templates.get(name)

    def names(self) -> List[str]:
        return list(self.templates)


CHORD_LIBRARY = ChordLibrary()


def get_chord_template(name: str) -> Optional[ChordTemplate]:
    return CHORD_LIBRARY.lookup(name)
