"""
Configuration presets for the issuer trust anchor.

The production preset matches the deployed circuit: a depth-15 tree (32768
issuer slots) over keys packed into 11 limbs, with keys and signatures passed
to the prover as 32 words of 64 bits. It rejects moduli longer than the limb
budget; the deployed preset hashes the leading groups of such keys instead,
the way the deployed tooling does with 2048-bit keys. The test preset keeps
the production encoding but a shallow tree, so test suites do not pay for
thousands of hashes.
"""

from pydantic import BaseModel, ConfigDict, Field
from typing_extensions import Final

from issuer_tree import config

from ..packing import REFERENCE_SCHEME, TRUNCATING_SCHEME, LimbScheme


class AnchorConfig(BaseModel):
    """A model holding the constants the tree and its circuit agree on."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    TREE_DEPTH: int = Field(ge=0)
    """Fixed depth of the issuer tree."""

    @property
    def CAPACITY(self) -> int:  # noqa: N802
        """Number of leaf slots in the tree."""
        return 1 << self.TREE_DEPTH

    LIMB_SCHEME: LimbScheme
    """How a modulus is packed before hashing into a leaf."""

    WORD_BITS: int = Field(gt=0)
    """Bits per word in the prover's key and signature inputs."""

    WORD_COUNT: int = Field(gt=0)
    """Words per key or signature in the prover's inputs."""


PROD_CONFIG: Final = AnchorConfig(
    TREE_DEPTH=15,
    LIMB_SCHEME=REFERENCE_SCHEME,
    WORD_BITS=64,
    WORD_COUNT=32,
)

DEPLOYED_CONFIG: Final = PROD_CONFIG.model_copy(update={"LIMB_SCHEME": TRUNCATING_SCHEME})

TEST_CONFIG: Final = AnchorConfig(
    TREE_DEPTH=4,
    LIMB_SCHEME=REFERENCE_SCHEME,
    WORD_BITS=64,
    WORD_COUNT=32,
)


def active_config() -> AnchorConfig:
    """The preset selected by `ISSUER_ENV`."""
    return TEST_CONFIG if config.ISSUER_ENV == "test" else PROD_CONFIG
