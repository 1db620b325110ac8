"""Futures contract metadata used for position sizing and margin checks."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional

from strategy_lab.errors import InstrumentNotFoundError


@dataclass(frozen=True)
class Instrument:
    symbol: str
    name: str = ""
    underlying: str = ""
    lot_size: int = 1
    tick_size: float = 0.05
    margin_required: float = 0.0  # per lot
    last_price: float = 0.0


DEFAULT_INSTRUMENTS: List[Instrument] = [
    Instrument("NIFTY-FUT", "NIFTY 50 Futures", "NIFTY", 50, 0.05, 112500.0, 22450.75),
    Instrument("BANKNIFTY-FUT", "BANK NIFTY Futures", "BANKNIFTY", 25, 0.05, 121250.0, 48500.50),
    Instrument("FINNIFTY-FUT", "FIN NIFTY Futures", "FINNIFTY", 40, 0.05, 88000.0, 22000.25),
    Instrument("RELIANCE-FUT", "RELIANCE Futures", "RELIANCE", 250, 0.05, 68750.0, 2750.50),
    Instrument("TCS-FUT", "TCS Futures", "TCS", 125, 0.05, 50625.0, 4050.00),
]


class InstrumentStore:
    """Registry of tradeable contracts, owned and passed around explicitly."""

    def __init__(self, instruments: Optional[Iterable[Instrument]] = None):
        self._instruments: Dict[str, Instrument] = {}
        for instrument in instruments or []:
            self.add(instrument)

    def __contains__(self, symbol: str) -> bool:
        return symbol in self._instruments

    def __len__(self) -> int:
        return len(self._instruments)

    def add(self, instrument: Instrument) -> None:
        self._instruments[instrument.symbol] = instrument

    def get(self, symbol: str) -> Instrument:
        try:
            return self._instruments[symbol]
        except KeyError:
            raise InstrumentNotFoundError(symbol) from None

    def symbols(self) -> List[str]:
        return list(self._instruments)

    def search(self, query: str) -> List[Instrument]:
        needle = query.lower()
        return [
            inst
            for inst in self._instruments.values()
            if needle in inst.symbol.lower() or needle in inst.name.lower() or needle in inst.underlying.lower()
        ]

    def margin_for(self, symbol: str, quantity: float) -> float:
        instrument = self.get(symbol)
        return instrument.margin_required * (quantity / instrument.lot_size)


def default_store() -> InstrumentStore:
    """Return a fresh store seeded with the reference index and stock futures."""
    return InstrumentStore(DEFAULT_INSTRUMENTS)
