"""Duplicate and overlap detection for allocated addresses and networks.

Every recorded entry is a prefix: a network block of any length, or an
exact address stored as a /32. Entries live in a binary trie walked from
the most significant bit, so an overlap query visits at most one node per
prefix bit, however many allocations have been made.

Two blocks overlap iff one is a bit prefix of the other, so a query for
``network/prefixlen`` overlaps:

* any recorded block on the path from the root to the query node
  (the recorded block contains the query), and
* any recorded entry at or below the query node (the query contains it).
"""
import logging
from typing import Iterator, Optional

from addrforge.network import ADDRESS_BITS, format_network, prefix_mask


logger = logging.getLogger(__name__)

Key = tuple[int, int]


class _Node:
    __slots__ = ("children", "network", "address", "networks_below", "addresses_below")

    def __init__(self):
        self.children: list[Optional["_Node"]] = [None, None]
        self.network = False
        self.address = False
        # Counts include this node.
        self.networks_below = 0
        self.addresses_below = 0


def _bit(value: int, depth: int) -> int:
    return (value >> (ADDRESS_BITS - 1 - depth)) & 1


class AllocationRegistry:
    """Remembers every exact address and network block handed out."""

    def __init__(self):
        self._root = _Node()
        self._addresses: set[int] = set()
        self._networks: set[Key] = set()

    def __len__(self) -> int:
        return len(self._addresses) + len(self._networks)

    def __contains__(self, address: int) -> bool:
        return address in self._addresses

    def clear(self) -> None:
        self._root = _Node()
        self._addresses.clear()
        self._networks.clear()

    def addresses(self) -> list[int]:
        return sorted(self._addresses)

    def networks(self) -> list[Key]:
        return sorted(self._networks)

    def has_address(self, address: int) -> bool:
        return address in self._addresses

    def has_network(self, network: int, prefixlen: int) -> bool:
        return (network & prefix_mask(prefixlen), prefixlen) in self._networks

    def add_address(self, address: int) -> bool:
        """Record an exact address. Returns False if it was already recorded."""
        if address in self._addresses:
            return False
        self._addresses.add(address)
        for node in self._path(address, ADDRESS_BITS):
            node.addresses_below += 1
        node.address = True
        return True

    def add_network(self, network: int, prefixlen: int) -> bool:
        """Record a network block. Returns False if the same block is recorded."""
        network &= prefix_mask(prefixlen)
        key = (network, prefixlen)
        if key in self._networks:
            return False
        self._networks.add(key)
        for node in self._path(network, prefixlen):
            node.networks_below += 1
        node.network = True
        logger.debug("Recorded network %s", format_network(network, prefixlen))
        return True

    def find_overlap(self, network: int, prefixlen: int, addresses: bool = True) -> Optional[Key]:
        """Return one recorded entry overlapping ``network/prefixlen``, or None.

        Exact addresses count as /32 entries unless ``addresses`` is False.
        """
        network &= prefix_mask(prefixlen)
        node = self._root
        for depth in range(prefixlen):
            if node.network:
                return network & prefix_mask(depth), depth
            node = node.children[_bit(network, depth)]
            if node is None:
                return None

        if node.networks_below or (addresses and node.addresses_below):
            return self._first_entry(node, network, prefixlen, addresses)
        return None

    def is_network_allocated(self, network: int, prefixlen: int) -> bool:
        return self.find_overlap(network, prefixlen) is not None

    def _path(self, value: int, prefixlen: int) -> Iterator[_Node]:
        """Yield the nodes from the root down to value/prefixlen, creating them."""
        node = self._root
        yield node
        for depth in range(prefixlen):
            bit = _bit(value, depth)
            child = node.children[bit]
            if child is None:
                child = node.children[bit] = _Node()
            node = child
            yield node

    @staticmethod
    def _first_entry(node: _Node, network: int, depth: int, addresses: bool) -> Key:
        """Descend to the lowest-addressed entry under ``node``."""
        while True:
            if node.network or (addresses and node.address):
                return network, depth
            for bit, child in enumerate(node.children):
                if child is None:
                    continue
                if child.networks_below or (addresses and child.addresses_below):
                    network |= bit << (ADDRESS_BITS - 1 - depth)
                    node = child
                    depth += 1
                    break
