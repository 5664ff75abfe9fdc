"""
Chapter catalog for the NEET subjects.
Lists the chapters offered per subject in the test entry form.
"""
from enum import Enum
from typing import Dict, List

from tracker.engine import MIXED_CHAPTER


class Subject(str, Enum):
    PHYSICS = "Physics"
    CHEMISTRY = "Chemistry"
    BIOLOGY = "Biology"


SUBJECTS: List[str] = [s.value for s in Subject]

CHAPTERS: Dict[str, List[str]] = {
    "Physics": [
        "Mechanics",
        "Waves & Optics",
        "Thermodynamics",
        "Electrostatics",
        "Current Electricity",
        "Magnetism",
        "Modern Physics",
        "Units & Dimensions",
    ],
    "Chemistry": [
        "Physical Chemistry",
        "Organic Chemistry",
        "Inorganic Chemistry",
        "Atomic Structure",
        "Chemical Bonding",
        "Thermodynamics",
        "Equilibrium",
        "Electrochemistry",
    ],
    "Biology": [
        "Diversity in Living World",
        "Human Physiology",
        "Plant Physiology",
        "Genetics & Evolution",
        "Ecology & Environment",
        "Reproduction",
        "Biotechnology",
        "Cell Structure",
    ],
}


def available_chapters(subject: str) -> List[str]:
    """Chapters selectable for a subject, 'Mixed' first."""
    return [MIXED_CHAPTER] + CHAPTERS.get(Subject(subject).value, [])


def coerce_chapter(subject: str, chapter: str) -> str:
    """Keep the chapter if the subject offers it, otherwise fall back to 'Mixed'."""
    if chapter in available_chapters(subject):
        return chapter
    return MIXED_CHAPTER
