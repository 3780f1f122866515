"""
Inputs for the passport proof circuit.

The proving engine consumes a JSON object whose keys and array lengths must
match the circuit's declared signals exactly:

    {
      "depth": 15,
      "indices": [0, 1, ...],                 # path bits, bottom to top
      "siblings": [["123..."], ["456..."]],   # one-element lists
      "pubkey": ["...", ...],                 # little-endian words
      "signature": ["...", ...],              # little-endian words
      "eContentSha": ["0", "1", ...],         # digest bits, MSB first
      "recipient": "0x..."                    # optional
    }

Every field value is a decimal string.
"""

from __future__ import annotations

import base64
import binascii
from dataclasses import dataclass
from typing import Annotated
from urllib.parse import unquote

from pydantic import Field

from issuer_tree.types import MalformedInputError, StrictBaseModel

from ..anchor import TrustAnchor
from ..merkle import MerkleProof
from ..packing import split_to_words

Bit = Annotated[str, Field(pattern=r"^[01]$")]
"""A single bit as the string "0" or "1"."""


class ProofInputs(StrictBaseModel):
    """The private and public inputs of one passport proof."""

    depth: int = Field(ge=0, description="Depth of the issuer tree.")

    indices: list[Annotated[int, Field(ge=0, le=1)]] = Field(
        ..., description="Path bits of the issuer leaf, bottom to top."
    )

    siblings: list[Annotated[list[str], Field(min_length=1, max_length=1)]] = Field(
        ..., description="Sibling of each path node, bottom to top."
    )

    pubkey: list[str] = Field(..., description="Issuer modulus as little-endian words.")

    signature: list[str] = Field(..., description="Document signature as little-endian words.")

    e_content_sha: list[Bit] = Field(..., description="Signed content digest bits.")

    recipient: str | None = Field(default=None, description="Address the credential is for.")

    def to_json(self) -> str:
        """Serialize with the circuit's signal names."""
        return self.model_dump_json(by_alias=True, exclude_none=True)


@dataclass(frozen=True, slots=True)
class CallbackData:
    """The three values a passport reader app passes back in its callback URL."""

    digest: bytes
    """Digest of the signed passport content."""

    signature: bytes
    """Document signer's RSA signature over the digest."""

    pubkey: bytes
    """Big-endian RSA modulus of the document signer."""


def parse_callback_data(fragment: str) -> CallbackData:
    """
    Decode the `digest,signature,pubkey` fragment of a callback URL.

    Each part is percent-encoded base64.

    Raises:
        MalformedInputError: If the fragment does not hold three base64 values.
    """
    parts = unquote(fragment.strip()).split(",")
    if len(parts) != 3:
        raise MalformedInputError(fragment, f"expected 3 comma-separated values, got {len(parts)}")

    try:
        digest, signature, pubkey = (base64.b64decode(part, validate=True) for part in parts)
    except (binascii.Error, ValueError) as e:
        raise MalformedInputError(fragment, f"invalid base64: {e}") from e

    if not pubkey or not signature or not digest:
        raise MalformedInputError(fragment, "callback values must not be empty")
    return CallbackData(digest=digest, signature=signature, pubkey=pubkey)


def bytes_to_bits(data: bytes) -> list[str]:
    """Bits of `data`, most significant first, as "0"/"1" strings."""
    return list(format(int.from_bytes(data, "big"), f"0{len(data) * 8}b")) if data else []


def make_proof_inputs(
    proof: MerkleProof,
    pubkey: int,
    signature: int,
    digest: bytes,
    *,
    word_bits: int,
    word_count: int,
    recipient: str | None = None,
) -> ProofInputs:
    """
    Assemble circuit inputs from an inclusion proof and the passport values.

    Raises:
        EncodingOverflowError: If the key or signature exceeds the word layout.
    """
    return ProofInputs(
        depth=proof.depth,
        indices=list(proof.path_indices),
        siblings=[[str(node) for node in sibling] for sibling in proof.siblings],
        pubkey=[str(w) for w in split_to_words(pubkey, word_bits, word_count)],
        signature=[str(w) for w in split_to_words(signature, word_bits, word_count)],
        e_content_sha=bytes_to_bits(digest),
        recipient=recipient,
    )


def make_proof_inputs_from_callback(
    anchor: TrustAnchor,
    fragment: str,
    recipient: str | None = None,
) -> ProofInputs:
    """
    Full path from a callback URL fragment to circuit inputs.

    Raises:
        MalformedInputError: If the fragment does not decode.
        UnknownIssuerError: If the document signer is not a trusted issuer.
    """
    callback = parse_callback_data(fragment)
    pubkey = int.from_bytes(callback.pubkey, "big")
    signature = int.from_bytes(callback.signature, "big")

    index = anchor.index_of_key(pubkey)
    proof = anchor.create_proof(index)

    return make_proof_inputs(
        proof,
        pubkey,
        signature,
        callback.digest,
        word_bits=anchor.config.WORD_BITS,
        word_count=anchor.config.WORD_COUNT,
        recipient=recipient,
    )
