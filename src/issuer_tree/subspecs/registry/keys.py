"""Extraction of RSA moduli from encoded public keys and certificates."""

from __future__ import annotations

from cryptography import x509
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.hazmat.primitives.serialization import load_der_public_key, load_pem_public_key

from issuer_tree.types import MalformedInputError


def modulus_from_key_bytes(data: bytes) -> int:
    """
    Return the RSA modulus of a PEM or DER public key or X.509 certificate.

    Document signer certificates are the usual source of a candidate key, so
    certificates are accepted alongside bare public keys.

    Raises:
        MalformedInputError: If the data is not a parseable RSA key or certificate.
    """
    loaders = (
        load_pem_public_key,
        load_der_public_key,
        lambda blob: x509.load_pem_x509_certificate(blob).public_key(),
        lambda blob: x509.load_der_x509_certificate(blob).public_key(),
    )

    for loader in loaders:
        try:
            key = loader(data)
        except ValueError:
            continue
        if not isinstance(key, rsa.RSAPublicKey):
            raise MalformedInputError(type(key).__name__, "only RSA issuer keys are supported")
        return key.public_numbers().n

    raise MalformedInputError(data[:32], "not a PEM/DER RSA public key or certificate")
