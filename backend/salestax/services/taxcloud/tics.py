"""Taxability Information Code (TIC) catalog."""

import json
import logging
from pathlib import Path

logger = logging.getLogger(__name__)

BUNDLED_CATALOG = Path(__file__).with_name("tics.json")


class TicCatalog:
    """Read-only TIC id -> description mapping.

    Loaded lazily from the catalog bundled with the package and kept for the
    life of the process; ``refresh`` reloads it on demand.
    """

    def __init__(self, path: Path = BUNDLED_CATALOG):
        self.path = path
        self._tics: dict[int, str] | None = None

    def _load(self) -> dict[int, str]:
        with self.path.open(encoding="utf-8") as fh:
            raw: dict[str, str] = json.load(fh)
        logger.info("Loaded %d TICs from %s", len(raw), self.path.name)
        return {int(tic_id): description for tic_id, description in raw.items()}

    def get_all(self) -> dict[int, str]:
        if self._tics is None:
            self._tics = self._load()
        return dict(self._tics)

    def describe(self, tic_id: int) -> str | None:
        return self.get_all().get(tic_id)

    def refresh(self) -> dict[int, str]:
        self._tics = None
        return self.get_all()


default_catalog = TicCatalog()
