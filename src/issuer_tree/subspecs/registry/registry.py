"""Issuer registry loading.

Loads the ordered list of trusted passport signing keys from the registry
document distributed by the key maintainers. JSON and YAML are accepted:

    {
      "issuers": [
        {"country": "FRA", "modulus": "0xc3a1...", "exponent": 65537},
        {"country": "DEU", "modulus": "2617493..."}
      ]
    }

Only `modulus` is consumed. The position of an entry determines its leaf
index, so the document must only ever be appended to: reordering entries
changes every index and the root.
"""

from __future__ import annotations

import hashlib
import json
import logging
from pathlib import Path

import yaml
from pydantic import BaseModel, ConfigDict, Field

from issuer_tree.types import MalformedInputError
from issuer_tree.types.parsing import parse_unsigned

from ..bn254 import Fr
from ..packing import REFERENCE_SCHEME, LimbScheme, hash_pubkey
from ..poseidon import FieldHasher

logger = logging.getLogger(__name__)


class IssuerRecord(BaseModel):
    """A single registry entry. Fields other than `modulus` are kept but not interpreted."""

    model_config = ConfigDict(frozen=True, extra="allow")

    modulus: str | int | None = None
    """RSA modulus as 0x-hex or decimal. Entries without one are not committed."""

    @property
    def has_modulus(self) -> bool:
        """Whether the entry contributes a leaf."""
        return bool(self.modulus)

    def modulus_value(self) -> int:
        """
        The modulus as an integer.

        Raises:
            MalformedInputError: If the entry has no modulus or it does not parse.
        """
        if self.modulus is None:
            raise MalformedInputError(self.model_dump(), "registry entry has no modulus")
        return parse_unsigned(self.modulus)


class IssuerRegistry(BaseModel):
    """An ordered snapshot of the issuer registry."""

    issuers: list[IssuerRecord] = Field(default_factory=list)
    """Registry entries in publication order."""

    @classmethod
    def from_file(cls, path: Path | str) -> IssuerRegistry:
        """
        Load a registry from a JSON or YAML file, chosen by suffix.

        Raises:
            FileNotFoundError: If the file does not exist.
            json.JSONDecodeError | yaml.YAMLError: If the document does not parse.
            pydantic.ValidationError: If the document has the wrong shape.
        """
        path = Path(path)
        with path.open(encoding="utf-8") as f:
            if path.suffix.lower() in (".yaml", ".yml"):
                data = yaml.safe_load(f)
            else:
                data = json.load(f)

        registry = cls.model_validate(data or {})
        logger.info("Loaded %d registry entries from %s", len(registry.issuers), path)
        return registry

    def moduli(self) -> list[int]:
        """
        The committed moduli in registry order.

        Entries without a modulus are skipped; they do not consume a leaf index.

        Raises:
            MalformedInputError: If a present modulus does not parse.
        """
        committed = [record for record in self.issuers if record.has_modulus]
        skipped = len(self.issuers) - len(committed)
        if skipped:
            logger.warning("Skipping %d registry entries without a modulus", skipped)
        return [record.modulus_value() for record in committed]

    def fingerprint(self, scheme: LimbScheme = REFERENCE_SCHEME) -> str:
        """
        A sha256 hex digest of the committed moduli, in order, and the packing scheme.

        Two snapshots with equal fingerprints hash to the same leaves, so a
        cached hash list is reusable exactly when its fingerprint matches.

        Raises:
            MalformedInputError: If a present modulus does not parse.
        """
        digest = hashlib.sha256(scheme.model_dump_json().encode())
        for record in self.issuers:
            if record.has_modulus:
                digest.update(b"\n" + format(record.modulus_value(), "x").encode())
        return digest.hexdigest()


def generate_modulus_hashes(
    registry: IssuerRegistry,
    hasher: FieldHasher,
    scheme: LimbScheme = REFERENCE_SCHEME,
) -> list[Fr]:
    """
    Hash every committed modulus into its leaf, in registry order.

    Raises:
        MalformedInputError: If a modulus does not parse.
        EncodingOverflowError: If a modulus exceeds the limb budget.
    """
    return [hash_pubkey(modulus, hasher, scheme) for modulus in registry.moduli()]
