from dataclasses import dataclass
from typing import Dict, Iterable, Iterator, Tuple


# =========================
# STATE MODELS
# =========================
@dataclass
class Position:
    in_position: bool = False
    entry_price: float = 0.0
    qty: float = 0.0
    last_entry_ts: int = 0  # 0 = eligible to buy right away


class PositionTracker:
    """In-memory position per symbol. Nothing is persisted: a restart starts flat."""

    def __init__(self, symbols: Iterable[str]):
        self._positions: Dict[str, Position] = {s: Position() for s in symbols}

    def get(self, symbol: str) -> Position:
        return self._positions[symbol]

    def open_position(self, symbol: str, fill_price: float, filled_qty: float, ts: int) -> Position:
        p = self._positions[symbol]
        p.in_position = True
        p.entry_price = fill_price
        p.qty = filled_qty
        p.last_entry_ts = ts
        return p

    def close_position(self, symbol: str) -> Position:
        # last_entry_ts is kept: the buy cooldown counts from the entry
        p = self._positions[symbol]
        p.in_position = False
        p.entry_price = 0.0
        p.qty = 0.0
        return p

    def open_positions(self) -> Dict[str, Position]:
        return {s: p for s, p in self._positions.items() if p.in_position}

    def __iter__(self) -> Iterator[Tuple[str, Position]]:
        return iter(self._positions.items())

    def __len__(self) -> int:
        return len(self._positions)
