"""
Symmetric two-key storage for per-edge data
"""

import hashlib
import json
import logging
from functools import lru_cache
from typing import Any, Callable, Dict, Generic, Iterator, List, Optional, Set, Tuple, TypeVar

logger = logging.getLogger(__name__)

V = TypeVar('V')

STORE_VERSION = 1


@lru_cache(maxsize=None)
def key_digest(key: str) -> str:
    """MD5 hex digest of an identifier (memoized, identifiers repeat a lot)"""
    return hashlib.md5(key.encode('utf-8')).hexdigest()


def canonical_pair(k1: str, k2: str) -> Tuple[str, str]:
    """Order two identifiers by comparing their digests, not the identifiers themselves"""
    if key_digest(k2) < key_digest(k1):
        return k2, k1
    return k1, k2


class SymmetricPairStore(Generic[V]):
    """Two-level mapping keyed by an unordered pair of identifiers.

    Each pair owns exactly one slot: ``get(a, b)`` and ``get(b, a)`` read the same value.
    With ``append=True``, ``add()`` grows a per-pair list instead of overwriting.
    """

    def __init__(self, append: bool = False):
        self.append_mode = append
        self.data: Dict[str, Dict[str, V]] = {}
        # identifier -> identifiers it is paired with, for node-level lookups
        self._partners: Dict[str, Set[str]] = {}

    def _slot(self, k1: str, k2: str) -> Tuple[str, str]:
        if k1 in self.data and k2 in self.data[k1]:
            return k1, k2
        if k2 in self.data and k1 in self.data[k2]:
            return k2, k1
        return canonical_pair(k1, k2)

    def __len__(self) -> int:
        return sum(len(inner) for inner in self.data.values())

    def __contains__(self, pair: Tuple[str, str]) -> bool:
        return self.has_couple(*pair)

    def __iter__(self) -> Iterator[Tuple[str, str, V]]:
        for k1, inner in list(self.data.items()):
            for k2, value in list(inner.items()):
                yield k1, k2, value

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, SymmetricPairStore):
            return NotImplemented
        if len(self) != len(other):
            return False
        for k1, k2, value in self:
            if not other.has_couple(k1, k2) or other.get(k1, k2) != value:
                return False
        return True

    @property
    def full_tree(self) -> Dict[str, Dict[str, V]]:
        return self.data

    def keys(self) -> Set[str]:
        """All identifiers taking part in at least one pair"""
        return set(self._partners)

    def exists(self, k1: str) -> bool:
        return k1 in self._partners

    def has_couple(self, k1: str, k2: str) -> bool:
        x, y = self._slot(k1, k2)
        return x in self.data and y in self.data[x]

    def get(self, k1: str, k2: str, default: Optional[V] = None) -> Optional[V]:
        x, y = self._slot(k1, k2)
        return self.data.get(x, {}).get(y, default)

    def get_node(self, k1: str) -> Dict[str, V]:
        """Every partner of k1 with the value stored for that pair"""
        return {partner: self.get(k1, partner) for partner in self._partners.get(k1, ())}

    def set(self, k1: str, k2: str, value: V) -> None:
        x, y = self._slot(k1, k2)
        self.data.setdefault(x, {})[y] = value
        self._partners.setdefault(x, set()).add(y)
        self._partners.setdefault(y, set()).add(x)

    def get_or_set(self, k1: str, k2: str, default: V) -> V:
        if self.has_couple(k1, k2):
            return self.get(k1, k2)
        self.set(k1, k2, default)
        return default

    def push(self, k1: str, k2: str, item: Any) -> None:
        self.get_or_set(k1, k2, []).append(item)

    def add(self, k1: str, k2: str, datum: Any) -> None:
        if self.append_mode:
            self.push(k1, k2, datum)
        else:
            self.set(k1, k2, datum)

    def remove(self, k1: str, k2: str) -> None:
        x, y = self._slot(k1, k2)
        inner = self.data.get(x)
        if inner is None or y not in inner:
            return

        del inner[y]
        if not inner:
            del self.data[x]

        for a, b in ((x, y), (y, x)):
            partners = self._partners.get(a)
            if partners is not None:
                partners.discard(b)
                if not partners:
                    del self._partners[a]

    def clear(self) -> None:
        self.data.clear()
        self._partners.clear()

    def to_dict(self, encoder: Optional[Callable[[V], Any]] = None) -> Dict[str, Any]:
        tree = {}
        for k1, k2, value in self:
            tree.setdefault(k1, {})[k2] = encoder(value) if encoder else value
        return {'version': STORE_VERSION, 'append': self.append_mode, 'data': tree}

    def serialize(self, encoder: Optional[Callable[[V], Any]] = None) -> str:
        return json.dumps(self.to_dict(encoder))

    @classmethod
    def from_dict(cls, obj: Dict[str, Any],
                  reviver: Optional[Callable[[Any], Any]] = None) -> 'SymmetricPairStore':
        if obj.get('version') != STORE_VERSION or 'data' not in obj:
            raise ValueError(f"Unsupported pair store payload (version {obj.get('version')})")

        store = cls(append=obj.get('append', False))
        for k1, inner in obj['data'].items():
            for k2, value in inner.items():
                store.set(k1, k2, reviver(value) if reviver else value)
        return store

    @classmethod
    def deserialize(cls, serialized: str,
                    reviver: Optional[Callable[[Any], Any]] = None) -> 'SymmetricPairStore':
        """Rebuild a store from ``serialize()`` output; ``reviver`` rehydrates each value"""
        return cls.from_dict(json.loads(serialized), reviver)


class RankedPairStore(SymmetricPairStore[V]):
    """Pair store that also counts how often each identifier was added"""

    def __init__(self, append: bool = False):
        super().__init__(append)
        self.weights: Dict[str, int] = {}

    def add(self, k1: str, k2: str, datum: Any) -> None:
        super().add(k1, k2, datum)
        self.weights[k1] = self.weights.get(k1, 0) + 1
        self.weights[k2] = self.weights.get(k2, 0) + 1

    def remove(self, k1: str, k2: str) -> None:
        if self.has_couple(k1, k2):
            for key in (k1, k2):
                self.weights[key] -= 1
                if self.weights[key] <= 0:
                    del self.weights[key]
        super().remove(k1, k2)

    def clear(self) -> None:
        super().clear()
        self.weights.clear()

    def rank(self, limit: Optional[int] = None) -> List[Tuple[str, int]]:
        """Identifiers by decreasing weight, ties broken by identifier"""
        ranked = sorted(self.weights.items(), key=lambda item: (-item[1], item[0]))
        return ranked[:limit] if limit is not None else ranked
