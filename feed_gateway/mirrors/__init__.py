from .resolver import (
    AddressDescription,
    MirrorResolver,
    MirrorState,
    describe_address,
    is_abstract_address,
    is_valid_abstract_address,
)

__all__ = [
    "AddressDescription",
    "MirrorResolver",
    "MirrorState",
    "describe_address",
    "is_abstract_address",
    "is_valid_abstract_address",
]
