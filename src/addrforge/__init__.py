__version__ = "0.1.0"

from addrforge.generator import AddressGenerator, ErrorPolicy, default_generator
from addrforge.network import (
    AddressSpaceExhaustedError,
    DuplicateAddressError,
    ErrorKind,
    NetworkError,
    OverlappingNetworkError,
    UninitializedMaskError,
)
from addrforge.registry import AllocationRegistry

__all__ = [
    "AddressGenerator",
    "AddressSpaceExhaustedError",
    "AllocationRegistry",
    "DuplicateAddressError",
    "ErrorKind",
    "ErrorPolicy",
    "NetworkError",
    "OverlappingNetworkError",
    "UninitializedMaskError",
    "default_generator",
]
