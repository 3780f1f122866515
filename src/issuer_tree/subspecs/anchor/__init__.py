"""The issuer trust anchor: lookup, integrity check and snapshot serving."""

from .constants import DEPLOYED_CONFIG, PROD_CONFIG, TEST_CONFIG, AnchorConfig, active_config
from .integrity import check_root, parse_published_root
from .lookup import IssuerLookup, find_index
from .service import TrustAnchor, TrustSnapshot, load_issuer_tree, load_modulus_hashes

__all__ = [
    "AnchorConfig",
    "DEPLOYED_CONFIG",
    "IssuerLookup",
    "PROD_CONFIG",
    "TEST_CONFIG",
    "TrustAnchor",
    "TrustSnapshot",
    "active_config",
    "check_root",
    "find_index",
    "load_issuer_tree",
    "load_modulus_hashes",
    "parse_published_root",
]
