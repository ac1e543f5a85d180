"""
curvepool - Holder registry

Keyed store of Holder records. The backing store is any MutableMapping
(a plain dict unless the caller supplies one); records are never deleted.
"""

import logging
from decimal import Decimal
from typing import Dict, Iterator, MutableMapping, Optional

from .decimals import ZERO
from .errors import MissingHolder
from .pool_types import Holder

log = logging.getLogger(__name__)


class HolderRegistry:
    """
    Holder records keyed by external account id.

    Usage:
        registry = HolderRegistry()
        holder = registry.get_or_new("alice", dividend_index=..., jackpot_epoch=1)
        ...mutate a copy...
        registry.put(holder)
    """

    def __init__(self, store: Optional[MutableMapping[str, Holder]] = None):
        self.store: MutableMapping[str, Holder] = store if store is not None else {}

    def __contains__(self, holder_id: str) -> bool:
        return holder_id in self.store

    def __len__(self) -> int:
        return len(self.store)

    def __iter__(self) -> Iterator[Holder]:
        return iter(self.store.values())

    def find(self, holder_id: str) -> Optional[Holder]:
        """Copy of the stored record, or None."""
        holder = self.store.get(holder_id)
        if holder is None:
            return None
        return Holder(**vars(holder))

    def get(self, holder_id: str) -> Holder:
        """Copy of the stored record; MissingHolder if unknown."""
        holder = self.find(holder_id)
        if holder is None:
            raise MissingHolder(f"Holder not found: {holder_id}")
        return holder

    def get_or_new(self, holder_id: str, dividend_index: Decimal,
                   jackpot_epoch: int) -> Holder:
        """Copy of the stored record, or a fresh one starting at the current globals."""
        holder = self.find(holder_id)
        if holder is None:
            holder = Holder(
                holder_id=holder_id,
                dividend_index=dividend_index,
                next_jackpot_epoch=jackpot_epoch,
            )
        return holder

    def put(self, holder: Holder) -> None:
        if holder.holder_id not in self.store:
            log.info(f"New holder registered: {holder.holder_id}")
        self.store[holder.holder_id] = holder

    def total_amount(self) -> Decimal:
        return sum((h.amount for h in self.store.values()), ZERO)

    def to_dict(self) -> Dict[str, dict]:
        return {hid: h.to_dict() for hid, h in self.store.items()}
