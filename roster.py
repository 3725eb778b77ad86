import logging
from pathlib import Path
from typing import List

from config import PEOPLE_KEY
from store import JsonSnapshot

logger = logging.getLogger(__name__)


class Roster:
    """
    Names offered in the person picker.

    Only a convenience list: removing someone here leaves their bookings alone.
    """

    def __init__(self, data_dir: Path, key: str = PEOPLE_KEY):
        self.snapshot = JsonSnapshot(data_dir, key, kind=list)

    def names(self) -> List[str]:
        return [str(name) for name in self.snapshot.load()]

    def add(self, name: str) -> List[str]:
        name = (name or "").strip()
        people = self.names()
        if not name or name in people:
            return people
        people.append(name)
        self.snapshot.save(people)
        logger.info("Added %s to roster", name)
        return people

    def remove(self, name: str) -> List[str]:
        people = self.names()
        if name not in people:
            return people
        people.remove(name)
        self.snapshot.save(people)
        logger.info("Removed %s from roster", name)
        return people
