import enum
import ipaddress


DEFAULT_BASE = ipaddress.IPv4Address("0.0.0.1")
ADDRESS_BITS = 32
ALL_ONES = 0xFFFFFFFF


class ErrorKind(enum.Enum):
    UNINITIALIZED_MASK = "uninitialized mask"
    DUPLICATE_ADDRESS = "duplicate address"
    OVERLAPPING_NETWORK = "overlapping network"
    ADDRESS_SPACE_EXHAUSTED = "address space exhausted"


class NetworkError(Exception):
    """Base for allocation failures; ``kind`` says which one."""

    kind: ErrorKind


class UninitializedMaskError(NetworkError):
    kind = ErrorKind.UNINITIALIZED_MASK


class DuplicateAddressError(NetworkError):
    kind = ErrorKind.DUPLICATE_ADDRESS


class OverlappingNetworkError(NetworkError):
    kind = ErrorKind.OVERLAPPING_NETWORK


class AddressSpaceExhaustedError(NetworkError):
    kind = ErrorKind.ADDRESS_SPACE_EXHAUSTED


def to_address(value) -> ipaddress.IPv4Address:
    """Coerce a string, int or IPv4Address to an IPv4Address."""
    if isinstance(value, ipaddress.IPv4Address):
        return value
    try:
        return ipaddress.IPv4Address(value)
    except ipaddress.AddressValueError as e:
        raise ValueError(f"Invalid IPv4 address: {value!r}") from e


def to_prefixlen(mask) -> int:
    """Normalise a mask to its prefix length.

    Accepts a prefix length (``24``), ``"/24"``, ``"24"``, a dotted mask
    (``"255.255.255.0"``) or an IPv4Address holding the mask bits.
    """
    if isinstance(mask, bool):
        raise ValueError(f"Invalid mask: {mask!r}")
    if isinstance(mask, int):
        prefixlen = mask
    elif isinstance(mask, str) and mask.lstrip("/").isdigit():
        prefixlen = int(mask.lstrip("/"))
    else:
        bits = int(to_address(mask))
        prefixlen = bin(bits).count("1")
        if bits != prefix_mask(prefixlen):
            raise ValueError(f"Mask {mask} is not a contiguous prefix")
    if not 0 <= prefixlen <= ADDRESS_BITS:
        raise ValueError(f"Prefix length {prefixlen} out of range 0-32")
    return prefixlen


def prefix_mask(prefixlen: int) -> int:
    """Return the 32-bit mask value for a prefix length."""
    return ALL_ONES >> (ADDRESS_BITS - prefixlen) << (ADDRESS_BITS - prefixlen)


def block_size(prefixlen: int) -> int:
    return 1 << (ADDRESS_BITS - prefixlen)


def host_range(prefixlen: int) -> tuple[int, int]:
    """Return the first and last allocatable host offsets for a prefix.

    The network id and broadcast offsets are reserved, except on /31
    (point-to-point) and /32 networks where every offset is usable.
    """
    size = block_size(prefixlen)
    if prefixlen >= 31:
        return 0, size - 1
    return 1, size - 2


def format_network(network: int, prefixlen: int) -> str:
    return f"{ipaddress.IPv4Address(network)}/{prefixlen}"
