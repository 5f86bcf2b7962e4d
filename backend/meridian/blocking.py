"""
MERIDIAN Blocking: Blocking Strategy Engine

Reduces the O(n^2) comparison space for large duplicate-detection runs.
Records that share no blocking key are never compared.

Payee strategies:
1. Every token of the comparison key (catches reordered names)
2. Soundex of the first token
3. First 4 characters of the comparison key
"""

from collections import defaultdict
from dataclasses import dataclass
from typing import Any, Callable, Iterator

from .phonetic import AmericanSoundex

KeyFunc = Callable[[dict], Any]


@dataclass
class BlockingKey:
    """A blocking key with its source strategy."""
    key: str
    strategy: str
    weight: float = 1.0


@dataclass
class CandidatePair:
    """A candidate pair of records to compare."""
    record1_id: Any
    record2_id: Any
    blocking_keys: list[str]
    priority: float = 1.0


class BlockingEngine:
    """
    Blocking strategy engine for entity resolution.

    Example:
        >>> engine = BlockingEngine()
        >>> engine.add_strategy('prefix4', lambda r: r['key'][:4])
        >>> pairs = list(engine.generate_candidates(records))
    """

    def __init__(self, min_block_size: int = 2, max_block_size: int = 1000):
        """
        Initialize blocking engine.

        Args:
            min_block_size: Minimum records in block to generate pairs
            max_block_size: Maximum block size (skip huge blocks)
        """
        self.min_block_size = min_block_size
        self.max_block_size = max_block_size
        self.strategies: list[tuple[str, KeyFunc, float]] = []

    def add_strategy(self, name: str, key_func: KeyFunc, weight: float = 1.0) -> 'BlockingEngine':
        """
        Add a blocking strategy.

        Args:
            name: Strategy name for tracking
            key_func: Takes a record and returns a key, a list of keys, or None
            weight: Priority weight

        Returns:
            Self for chaining
        """
        self.strategies.append((name, key_func, weight))
        return self

    def generate_blocking_keys(self, record: dict) -> list[BlockingKey]:
        """Generate all blocking keys for a record."""
        keys = []

        for name, key_func, weight in self.strategies:
            result = key_func(record)
            if result is None:
                continue

            values = result if isinstance(result, (list, tuple, set)) else [result]
            for value in values:
                if value:
                    keys.append(BlockingKey(key=f"{name}:{value}", strategy=name, weight=weight))

        return keys

    def build_blocks(self, records: list[dict], id_field: str = 'id') -> dict[str, list[Any]]:
        """Map each blocking key to the ids of records that produce it."""
        blocks = defaultdict(list)

        for record in records:
            record_id = record.get(id_field)
            if record_id is None:
                continue
            # A record can produce the same key twice (repeated tokens)
            for key in {k.key for k in self.generate_blocking_keys(record)}:
                blocks[key].append(record_id)

        return dict(blocks)

    def generate_candidates(self, records: list[dict], id_field: str = 'id') -> Iterator[CandidatePair]:
        """
        Generate each candidate pair once, ordered as (smaller id, larger id).

        Priority is the number of blocking keys the pair shares.
        """
        blocks = self.build_blocks(records, id_field)
        pair_keys: dict[tuple, list[str]] = defaultdict(list)

        for key, record_ids in blocks.items():
            block_size = len(record_ids)
            if block_size < self.min_block_size or block_size > self.max_block_size:
                continue

            for i, id1 in enumerate(record_ids):
                for id2 in record_ids[i + 1:]:
                    pair_keys[(min(id1, id2), max(id1, id2))].append(key)

        for (id1, id2), keys in pair_keys.items():
            yield CandidatePair(
                record1_id=id1,
                record2_id=id2,
                blocking_keys=keys,
                priority=len(keys),
            )


def create_payee_blocking(max_block_size: int = 500) -> BlockingEngine:
    """
    Blocking engine for payee comparison keys.

    Records must carry 'key' (duplicate-detection key) and 'first_token'.
    """
    soundex = AmericanSoundex()
    engine = BlockingEngine(min_block_size=2, max_block_size=max_block_size)

    engine.add_strategy(
        'token',
        lambda r: [t for t in r.get('key', '').split() if len(t) >= 3] or None,
        weight=2.0
    )
    engine.add_strategy(
        'phonetic',
        lambda r: soundex.encode(r.get('first_token', '')) or None,
        weight=3.0
    )
    engine.add_strategy(
        'prefix4',
        lambda r: r.get('key', '')[:4] if len(r.get('key', '')) >= 4 else None,
        weight=1.0
    )
    return engine
