"""Sequential IPv4 network and address generator for topology construction.

An :class:`AddressGenerator` keeps one network cursor and one host cursor
per mask length, and an :class:`AllocationRegistry` that every allocation
is checked against. Networks are handed out pre-increment (``next_network``
returns the new network), host addresses post-increment (``next_address``
returns the address configured by ``init`` first).

Module-level functions of the same names operate on ``default_generator``,
a process-wide instance: everything that uses them draws from one pool.
"""
import enum
import functools
import ipaddress
import logging
from typing import Optional

from addrforge.counters import AddressCounter, CounterTable, NetworkCounter
from addrforge.network import (
    DEFAULT_BASE,
    ALL_ONES,
    AddressSpaceExhaustedError,
    DuplicateAddressError,
    NetworkError,
    OverlappingNetworkError,
    format_network,
    host_range,
    prefix_mask,
    to_address,
    to_prefixlen,
)
from addrforge.registry import AllocationRegistry


logger = logging.getLogger(__name__)

DEFAULT_MAX_NETWORK_PROBES = 1 << 16


class ErrorPolicy(enum.Enum):
    FATAL = "fatal"
    REPORT = "report"


def reports_errors(failure=None):
    """Apply the generator's error policy to a method.

    Under ``ErrorPolicy.FATAL`` a NetworkError is logged and propagates.
    Under ``ErrorPolicy.REPORT`` it is logged, kept on ``last_error`` and
    ``failure`` is returned instead.
    """
    def decorator(fn):
        @functools.wraps(fn)
        def wrapper(self, *args, **kwargs):
            try:
                return fn(self, *args, **kwargs)
            except NetworkError as e:
                self.last_error = e
                if self.policy is ErrorPolicy.FATAL:
                    logger.critical("%s: %s", fn.__name__, e)
                    raise
                logger.warning("%s failed (%s): %s", fn.__name__, e.kind.value, e)
                return failure

        return wrapper

    return decorator


class AddressGenerator:
    """Hands out non-colliding networks and host addresses per mask."""

    def __init__(
        self,
        policy: ErrorPolicy = ErrorPolicy.FATAL,
        skip_overlapping: bool = True,
        max_network_probes: int = DEFAULT_MAX_NETWORK_PROBES,
    ):
        if max_network_probes < 1:
            raise ValueError("max_network_probes must be at least 1")
        self.policy = policy
        self.skip_overlapping = skip_overlapping
        self.max_network_probes = max_network_probes
        self.last_error: Optional[NetworkError] = None

        self.counters = CounterTable()
        self.networks = NetworkCounter(self.counters)
        self.hosts = AddressCounter(self.counters)
        self.registry = AllocationRegistry()

    @classmethod
    def from_options(cls, options) -> "AddressGenerator":
        """Build a generator from a ``GeneratorOptions``."""
        return cls(
            policy=ErrorPolicy.REPORT if options.test_mode else ErrorPolicy.FATAL,
            skip_overlapping=options.skip_overlapping,
            max_network_probes=options.max_network_probes,
        )

    def test_mode(self) -> None:
        """Report violations as failure values instead of raising."""
        self.policy = ErrorPolicy.REPORT

    def reset(self) -> None:
        """Forget every counter and recorded allocation."""
        self.counters.clear()
        self.registry.clear()
        self.last_error = None
        logger.debug("Generator reset")

    @reports_errors(failure=False)
    def init(self, network, mask, address=DEFAULT_BASE) -> bool:
        """Set the base network, mask and first host address for ``mask``.

        Only the host bits of ``address`` are used; they also become the
        offset ``next_network`` rewinds to.
        """
        prefixlen = to_prefixlen(mask)
        net = int(to_address(network)) & prefix_mask(prefixlen)
        host = self._host_offset(address, prefixlen)

        if not self.registry.has_network(net, prefixlen):
            clash = self.registry.find_overlap(net, prefixlen, addresses=False)
            if clash is not None:
                raise OverlappingNetworkError(
                    f"{format_network(net, prefixlen)} overlaps allocated network "
                    f"{format_network(*clash)}"
                )
            self.registry.add_network(net, prefixlen)

        self.counters.set(prefixlen, net, host)
        logger.info(
            "Initialised /%d at %s, first address %s",
            prefixlen, format_network(net, prefixlen), ipaddress.IPv4Address(net | host),
        )
        return True

    @reports_errors()
    def next_network(self, mask) -> ipaddress.IPv4Address:
        """Advance to the next free network for ``mask`` and return it."""
        prefixlen = to_prefixlen(mask)
        probes = 0
        for candidate in self.networks.candidates(prefixlen):
            if probes >= self.max_network_probes:
                break
            probes += 1
            clash = self.registry.find_overlap(candidate, prefixlen)
            if clash is None:
                self.registry.add_network(candidate, prefixlen)
                self.networks.advance(prefixlen, candidate)
                logger.info("Next network for /%d: %s", prefixlen, format_network(candidate, prefixlen))
                return ipaddress.IPv4Address(candidate)
            if not self.skip_overlapping:
                raise OverlappingNetworkError(
                    f"{format_network(candidate, prefixlen)} overlaps allocated "
                    f"{format_network(*clash)}"
                )
            logger.debug(
                "Skipping %s, overlaps %s",
                format_network(candidate, prefixlen), format_network(*clash),
            )

        current = self.networks.current(prefixlen)
        raise AddressSpaceExhaustedError(
            f"No free /{prefixlen} network after {format_network(current, prefixlen)} "
            f"({probes} candidates tried)"
        )

    @reports_errors()
    def get_network(self, mask) -> ipaddress.IPv4Address:
        """Return the current network for ``mask`` without changing state."""
        return ipaddress.IPv4Address(self.networks.current(to_prefixlen(mask)))

    @reports_errors(failure=False)
    def init_address(self, address, mask) -> bool:
        """Make ``address`` the next one handed out in the current network."""
        prefixlen = to_prefixlen(mask)
        host = self._host_offset(address, prefixlen)
        self.hosts.set(prefixlen, host)
        return True

    @reports_errors()
    def next_address(self, mask) -> ipaddress.IPv4Address:
        """Return the next host address for ``mask`` and record it."""
        prefixlen = to_prefixlen(mask)
        address = self.hosts.current(prefixlen)
        self.hosts.advance(prefixlen)
        self._record(address)
        logger.debug("Allocated %s/%d", ipaddress.IPv4Address(address), prefixlen)
        return ipaddress.IPv4Address(address)

    @reports_errors()
    def get_address(self, mask) -> ipaddress.IPv4Address:
        """Return the address ``next_address`` would hand out, without changing state."""
        return ipaddress.IPv4Address(self.hosts.current(to_prefixlen(mask)))

    @reports_errors(failure=False)
    def add_allocated(self, address) -> bool:
        """Record an address assigned outside the generator.

        Returns False if it was already recorded.
        """
        self._record(int(to_address(address)))
        return True

    def is_address_allocated(self, address) -> bool:
        return self.registry.has_address(int(to_address(address)))

    def is_network_allocated(self, address, mask) -> bool:
        """Whether any recorded network or address overlaps ``address/mask``."""
        prefixlen = to_prefixlen(mask)
        return self.registry.is_network_allocated(int(to_address(address)), prefixlen)

    def _record(self, address: int) -> None:
        if not self.registry.add_address(address):
            raise DuplicateAddressError(
                f"Address {ipaddress.IPv4Address(address)} is already allocated"
            )

    @staticmethod
    def _host_offset(address, prefixlen: int) -> int:
        host = int(to_address(address)) & (ALL_ONES ^ prefix_mask(prefixlen))
        first, last = host_range(prefixlen)
        if not first <= host <= last:
            raise ValueError(
                f"Host part of {to_address(address)} is reserved in a /{prefixlen} network"
            )
        return host


default_generator = AddressGenerator()


def init(network, mask, address=DEFAULT_BASE):
    return default_generator.init(network, mask, address)


def next_network(mask):
    return default_generator.next_network(mask)


def get_network(mask):
    return default_generator.get_network(mask)


def init_address(address, mask):
    return default_generator.init_address(address, mask)


def next_address(mask):
    return default_generator.next_address(mask)


def get_address(mask):
    return default_generator.get_address(mask)


def reset():
    default_generator.reset()


def add_allocated(address):
    return default_generator.add_allocated(address)


def is_address_allocated(address):
    return default_generator.is_address_allocated(address)


def is_network_allocated(address, mask):
    return default_generator.is_network_allocated(address, mask)


def test_mode():
    default_generator.test_mode()
