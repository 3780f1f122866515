"""The ordered registry of trusted issuer keys."""

from .keys import modulus_from_key_bytes
from .registry import IssuerRecord, IssuerRegistry, generate_modulus_hashes

__all__ = [
    "IssuerRecord",
    "IssuerRegistry",
    "generate_modulus_hashes",
    "modulus_from_key_bytes",
]
