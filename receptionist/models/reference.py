"""
Read-only reference data: the FAQ knowledge table and the appointment slots.

The data is loaded once at startup, either from the built-in defaults or from a
JSON file, and handed to every tool dispatcher by reference. All models are
frozen so a dispatcher cannot change what another call sees.
"""

import logging
import re
from pathlib import Path
from typing import Optional, Tuple

from pydantic import BaseModel, ConfigDict

from receptionist.config.constants import LOGGER_NAME

logger = logging.getLogger(LOGGER_NAME)


class KnowledgeEntry(BaseModel):
    """Keyword set mapped to a canned answer."""

    model_config = ConfigDict(frozen=True)

    topic: str
    keywords: Tuple[str, ...]
    answer: str

    def matches(self, question: str) -> bool:
        """
        Case-insensitive match of any keyword at the start of a word.

        "hour" matches "hours" but "ppo" does not match "appointment".
        """
        text = question.lower()
        return any(
            re.search(r"\b" + re.escape(keyword.lower()), text)
            for keyword in self.keywords
        )


class AppointmentSlot(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    label: str


class ReferenceData(BaseModel):
    """Ordered knowledge table, slot list and the deflection answer."""

    model_config = ConfigDict(frozen=True)

    knowledge: Tuple[KnowledgeEntry, ...]
    slots: Tuple[AppointmentSlot, ...]
    deflection: str

    def find_slot(self, slot_id: str) -> Optional[AppointmentSlot]:
        for slot in self.slots:
            if slot.id == slot_id:
                return slot
        return None

    def answer_for(self, topic: str) -> Optional[str]:
        for entry in self.knowledge:
            if entry.topic == topic:
                return entry.answer
        return None


# Table order is match priority: the first entry whose keyword matches wins
DEFAULT_REFERENCE_DATA = ReferenceData(
    knowledge=(
        KnowledgeEntry(
            topic="hours",
            keywords=("hour",),
            answer="Mon-Fri 8am-5pm; Sat 9am-1pm; closed Sunday.",
        ),
        KnowledgeEntry(
            topic="address",
            keywords=("address", "location"),
            answer="1234 Naples Blvd, Suite 200, Naples, FL 34102.",
        ),
        KnowledgeEntry(
            topic="insurance",
            keywords=("insurance", "cigna", "delta dental", "ppo"),
            answer="We accept most PPO plans including Delta Dental and Cigna. Call for specifics.",
        ),
        KnowledgeEntry(
            topic="parking",
            keywords=("parking",),
            answer="Free lot behind the building; enter via 2nd Street.",
        ),
        KnowledgeEntry(
            topic="new_patients",
            keywords=("new patient",),
            answer="Yes, we're accepting new patients. Bring a photo ID and your insurance card.",
        ),
    ),
    slots=(
        AppointmentSlot(id="tue-1030", label="Tue 10:30 AM (Hygienist)"),
        AppointmentSlot(id="tue-1415", label="Tue 2:15 PM (Hygienist)"),
        AppointmentSlot(id="wed-0900", label="Wed 9:00 AM (Dr. Lee)"),
    ),
    deflection="I'm not sure, let me connect you to our staff.",
)


def load_reference_data(path: Optional[str] = None) -> ReferenceData:
    """
    Load reference data from a JSON file, or return the built-in defaults.

    Args:
        path: Optional path to a JSON document shaped like ReferenceData

    Returns:
        ReferenceData: Immutable reference data for the process lifetime
    """
    if not path:
        return DEFAULT_REFERENCE_DATA

    data = ReferenceData.model_validate_json(Path(path).read_text(encoding="utf-8"))
    logger.info(
        f"Loaded reference data from {path}: "
        f"{len(data.knowledge)} FAQ entries, {len(data.slots)} slots"
    )
    return data
