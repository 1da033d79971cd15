# fil: src/services/recovery_store.py

from __future__ import annotations

import json
import logging
import os
import threading
from pathlib import Path
from typing import Any, Dict, Optional

log = logging.getLogger("webnova.recovery")

RECOVERY_KEY = "webnova-quotation"


class RecoveryStore:
    """
    Skriv-bakom-cache för arbetsminnet (återställning efter omstart).

    Varje ändring anropar schedule(payload). Skrivningen väntar tills det
    varit tyst i `delay` sekunder; en ny ändring startar om timern. Bara den
    sista versionen skrivs alltså vid snabba ändringar. flush() skriver
    direkt och anropas vid avstängning.

    Fil: <directory>/webnova-quotation.json
    """

    def __init__(self, directory: str | Path, *, key: str = RECOVERY_KEY, delay: float = 0.5) -> None:
        self.path = Path(directory) / f"{key}.json"
        self.delay = max(0.0, float(delay))
        self._lock = threading.Lock()
        self._io_lock = threading.Lock()
        self._timer: Optional[threading.Timer] = None
        self._pending: Optional[Dict[str, Any]] = None

    # -------------------------------------------------------------
    #  Läsning
    # -------------------------------------------------------------
    def load(self) -> Optional[Dict[str, Any]]:
        """
        Läser sparat tillstånd. Saknad eller korrupt fil -> None
        (anroparen faller då tillbaka på standardkatalogen).
        """
        if not self.path.exists():
            return None

        try:
            with self.path.open("r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            log.warning("Kunde inte läsa %s: %s", self.path, e)
            return None

        if not isinstance(data, dict):
            return None
        return data

    # -------------------------------------------------------------
    #  Skrivning
    # -------------------------------------------------------------
    def schedule(self, payload: Dict[str, Any]) -> None:
        with self._lock:
            self._pending = payload
            if self._timer is not None:
                self._timer.cancel()
            self._timer = threading.Timer(self.delay, self.flush)
            self._timer.daemon = True
            self._timer.start()

    def flush(self) -> bool:
        """Skriver väntande data direkt. Returnerar True om något skrevs."""
        with self._io_lock:
            with self._lock:
                if self._timer is not None:
                    self._timer.cancel()
                    self._timer = None
                payload = self._pending
                self._pending = None

            if payload is None:
                return False
            return self._write(payload)

    def _write(self, payload: Dict[str, Any]) -> bool:
        tmp = self.path.with_suffix(".json.tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with tmp.open("w", encoding="utf-8") as f:
                json.dump(payload, f, ensure_ascii=False, indent=2)
            os.replace(tmp, self.path)
        except OSError as e:
            log.warning("Kunde inte skriva %s: %s", self.path, e)
            return False
        return True

