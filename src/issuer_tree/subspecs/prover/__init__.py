"""Inputs for the external passport proving engine."""

from .inputs import (
    CallbackData,
    ProofInputs,
    bytes_to_bits,
    make_proof_inputs,
    make_proof_inputs_from_callback,
    parse_callback_data,
)

__all__ = [
    "CallbackData",
    "ProofInputs",
    "bytes_to_bits",
    "make_proof_inputs",
    "make_proof_inputs_from_callback",
    "parse_callback_data",
]
