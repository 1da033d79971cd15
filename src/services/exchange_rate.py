from __future__ import annotations

import logging
import math
import threading
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Callable, List, Optional, Tuple

import requests
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from src.core.money import DEFAULT_USD_RATE
from src.server.models import ExchangeRateRow, as_utc, utcnow

log = logging.getLogger("webnova.exchange_rate")

CURRENCY_FROM = "USD"
CURRENCY_TO = "DOP"

LIVE_SOURCES: List[Tuple[str, str]] = [
    ("exchangerate-api.com", "https://api.exchangerate-api.com/v4/latest/USD"),
    ("open.er-api.com", "https://open.er-api.com/v6/latest/USD"),
]


class RateStatus(str, Enum):
    UNINITIALIZED = "uninitialized"
    FETCHING = "fetching"
    READY = "ready"
    STALE = "stale"


@dataclass
class RateSnapshot:
    rate: float
    fetched_at: Optional[datetime]
    source: str
    status: RateStatus


def valid_rate(value: Any) -> Optional[float]:
    """Returnerar kursen som float om den är ett ändligt tal > 0, annars None."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    rate = float(value)
    if math.isnan(rate) or math.isinf(rate) or rate <= 0:
        return None
    return rate


def parse_rate_body(data: Any) -> Optional[float]:
    """
    Läser ut kursen ur ett API-svar. Stödjer:
      {"tasa": 60.1} / {"rate": 60.1} / {"valor": 60.1} / {"rates": {"DOP": 60.1}}
    """
    if not isinstance(data, dict):
        return None
    for key in ("tasa", "rate", "valor"):
        rate = valid_rate(data.get(key))
        if rate is not None:
            return rate
    rates = data.get("rates")
    if isinstance(rates, dict):
        return valid_rate(rates.get(CURRENCY_TO))
    return None


def fetch_live_rate(
    bank_url: str = "",
    *,
    timeout: float = 10.0,
    http_get: Callable[..., Any] = requests.get,
) -> Optional[Tuple[float, str]]:
    """
    Frågar källorna i tur och ordning: bankens URL (om satt), sedan de
    publika API:erna. Returnerar (kurs, källa) för första giltiga svar.
    """
    sources = list(LIVE_SOURCES)
    if bank_url:
        sources.insert(0, ("bank", bank_url))

    for name, url in sources:
        try:
            resp = http_get(url, timeout=timeout)
        except requests.RequestException as e:
            log.warning("Växelkurs: nätverksfel mot %s: %s", name, e)
            continue

        if resp.status_code != 200:
            log.warning("Växelkurs: %s svarade %s", name, resp.status_code)
            continue

        try:
            data = resp.json()
        except ValueError:
            log.warning("Växelkurs: ogiltig JSON från %s", name)
            continue

        rate = parse_rate_body(data)
        if rate is None:
            log.warning("Växelkurs: %s saknar användbar kurs i svaret", name)
            continue
        return rate, name

    return None


class ExchangeRateProvider:
    """
    Håller senaste kursen USD -> DOP.

    Tillstånd: UNINITIALIZED -> FETCHING -> READY | STALE.
    READY när minst en hämtning lyckats under sessionen, annars STALE.
    Kursen är alltid > 0: den startar på ett hårdkodat värde och ett
    misslyckat försök behåller föregående värde. Inga metoder kastar.
    """

    def __init__(
        self,
        session_factory: Optional[Callable[[], Session]] = None,
        *,
        default_rate: float = DEFAULT_USD_RATE,
        interval: float = 300.0,
        bank_url: str = "",
        timeout: float = 10.0,
        fetcher: Optional[Callable[[], Optional[Tuple[float, str]]]] = None,
    ) -> None:
        self._session_factory = session_factory
        self._rate = valid_rate(default_rate) or DEFAULT_USD_RATE
        self._source = "Default"
        self._fetched_at: Optional[datetime] = None
        self._status = RateStatus.UNINITIALIZED
        self._ever_ready = False

        self.interval = interval
        self._fetcher = fetcher or (lambda: fetch_live_rate(bank_url, timeout=timeout))

        self._lock = threading.Lock()
        self._stopped = threading.Event()
        self._thread: Optional[threading.Thread] = None

    # -------------------------------------------------------------
    #  Läsning
    # -------------------------------------------------------------
    @property
    def rate(self) -> float:
        with self._lock:
            return self._rate

    @property
    def status(self) -> RateStatus:
        with self._lock:
            return self._status

    def snapshot(self) -> RateSnapshot:
        with self._lock:
            return RateSnapshot(self._rate, self._fetched_at, self._source, self._status)

    # -------------------------------------------------------------
    #  Intern tillståndshantering
    # -------------------------------------------------------------
    def _begin(self) -> None:
        with self._lock:
            self._status = RateStatus.FETCHING

    def _accept(self, rate: float, source: str, fetched_at: Optional[datetime]) -> None:
        with self._lock:
            self._rate = rate
            self._source = source
            self._fetched_at = fetched_at
            self._ever_ready = True
            self._status = RateStatus.READY

    def _fail(self) -> None:
        with self._lock:
            self._status = RateStatus.READY if self._ever_ready else RateStatus.STALE

    # -------------------------------------------------------------
    #  Läsväg: senaste raden i exchange_rates
    # -------------------------------------------------------------
    def _read_latest_row(self) -> Optional[ExchangeRateRow]:
        if self._session_factory is None:
            return None
        try:
            with self._session_factory() as session:
                stmt = (
                    select(ExchangeRateRow)
                    .where(ExchangeRateRow.currency_from == CURRENCY_FROM)
                    .where(ExchangeRateRow.currency_to == CURRENCY_TO)
                    .order_by(ExchangeRateRow.fetched_at.desc())
                    .limit(1)
                )
                return session.exec(stmt).first()
        except SQLAlchemyError as e:
            log.warning("Växelkurs: kunde inte läsa exchange_rates: %s", e)
            return None

    def load_latest(self) -> float:
        self._begin()
        row = self._read_latest_row()
        rate = valid_rate(row.rate) if row is not None else None
        if rate is None or self._stopped.is_set():
            self._fail()
        else:
            self._accept(rate, row.source, as_utc(row.fetched_at))
        return self.rate

    # -------------------------------------------------------------
    #  Skrivväg: live-källa -> ny rad
    # -------------------------------------------------------------
    def _store(self, rate: float, source: str, fetched_at: datetime) -> None:
        if self._session_factory is None:
            return
        try:
            with self._session_factory() as session:
                session.add(
                    ExchangeRateRow(
                        currency_from=CURRENCY_FROM,
                        currency_to=CURRENCY_TO,
                        rate=rate,
                        source=source,
                        fetched_at=fetched_at,
                    )
                )
                session.commit()
        except SQLAlchemyError as e:
            log.warning("Växelkurs: kunde inte spara kursen: %s", e)

    def refresh(self) -> float:
        """
        Hämtar en färsk kurs och skriver den till databasen. Faller tillbaka
        på läsvägen om alla källor misslyckas. Returnerar alltid en kurs.
        """
        self._begin()
        try:
            result = self._fetcher()
        except Exception:  # noqa: BLE001
            log.exception("Växelkurs: hämtningen kraschade")
            result = None

        if self._stopped.is_set():
            # sent svar efter stop(): ignoreras
            self._fail()
            return self.rate

        rate = valid_rate(result[0]) if result else None
        if rate is None:
            log.warning("Växelkurs: alla källor misslyckades, använder senast kända kurs")
            return self.load_latest()

        source = result[1]
        fetched_at = utcnow()
        self._store(rate, source, fetched_at)
        self._accept(rate, source, fetched_at)
        log.info("Växelkurs uppdaterad: %s (%s)", rate, source, extra={"rate": rate, "source": source})
        return rate

    # -------------------------------------------------------------
    #  Periodisk uppdatering
    # -------------------------------------------------------------
    def _run(self) -> None:
        while not self._stopped.wait(self.interval):
            try:
                self.refresh()
            except Exception:  # noqa: BLE001
                log.exception("Växelkurs: oväntat fel i uppdateringsloopen")

    def start(self) -> None:
        """Läser senaste sparade kurs och startar den periodiska uppdateringen."""
        if self._thread is not None and self._thread.is_alive():
            return
        self._stopped.clear()
        self.load_latest()
        self._thread = threading.Thread(target=self._run, name="exchange-rate-refresh", daemon=True)
        self._thread.start()

    def stop(self, timeout: float = 2.0) -> None:
        self._stopped.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
