from typing import Dict, Iterable, List, Optional
from copytrade.models import Position

class PositionStore:
    """
    In-memory snapshot of the lead account's positions keyed by pair type.
    """

    def __init__(self) -> None:
        self._data: Dict[str, Position] = {}

    def upsert(self, pos: Position) -> None:
        self._data[pos.pair_type] = pos

    def get(self, pair_type: str) -> Optional[Position]:
        return self._data.get(pair_type)

    def remove(self, pair_type: str) -> Optional[Position]:
        return self._data.pop(pair_type, None)

    def replace_all(self, positions: Iterable[Position]) -> None:
        self._data = {p.pair_type: p for p in positions}

    def clear(self) -> None:
        self._data.clear()

    def pairs(self) -> List[str]:
        return list(self._data.keys())

    def list_all(self) -> List[Position]:
        return list(self._data.values())
