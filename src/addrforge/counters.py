from dataclasses import dataclass
from typing import Iterator

from addrforge.network import (
    AddressSpaceExhaustedError,
    UninitializedMaskError,
    block_size,
    format_network,
    host_range,
    prefix_mask,
)


@dataclass
class CounterEntry:
    """Cursor state for one mask length."""

    network: int
    host: int
    base: int


class CounterTable:
    """Counter entries keyed by prefix length, created lazily by ``init``."""

    def __init__(self):
        self._entries: dict[int, CounterEntry] = {}

    def __contains__(self, prefixlen: int) -> bool:
        return prefixlen in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def clear(self) -> None:
        self._entries.clear()

    def set(self, prefixlen: int, network: int, host: int) -> CounterEntry:
        entry = CounterEntry(network=network & prefix_mask(prefixlen), host=host, base=host)
        self._entries[prefixlen] = entry
        return entry

    def get(self, prefixlen: int) -> CounterEntry:
        try:
            return self._entries[prefixlen]
        except KeyError:
            raise UninitializedMaskError(
                f"Mask /{prefixlen} has not been initialised"
            ) from None


class NetworkCounter:
    """Tracks the current network for each mask length."""

    def __init__(self, table: CounterTable):
        self.table = table

    def current(self, prefixlen: int) -> int:
        return self.table.get(prefixlen).network

    def candidates(self, prefixlen: int) -> Iterator[int]:
        """Yield the aligned networks following the current one, in order.

        Stops at the end of the 32-bit address space.
        """
        step = block_size(prefixlen)
        network = self.current(prefixlen)
        while True:
            network = (network + step) & prefix_mask(prefixlen)
            if network == 0:
                return
            yield network

    def advance(self, prefixlen: int, network: int) -> None:
        """Move to ``network`` and rewind the host cursor to the base offset."""
        entry = self.table.get(prefixlen)
        entry.network = network
        entry.host = entry.base


class AddressCounter:
    """Tracks the next host offset within the current network of each mask."""

    def __init__(self, table: CounterTable):
        self.table = table

    def current(self, prefixlen: int) -> int:
        """Return the address the next allocation will hand out."""
        entry = self.table.get(prefixlen)
        _, last = host_range(prefixlen)
        if entry.host > last:
            raise AddressSpaceExhaustedError(
                f"No host addresses left in {format_network(entry.network, prefixlen)}"
            )
        return entry.network | entry.host

    def advance(self, prefixlen: int) -> None:
        self.table.get(prefixlen).host += 1

    def set(self, prefixlen: int, host: int) -> None:
        self.table.get(prefixlen).host = host
