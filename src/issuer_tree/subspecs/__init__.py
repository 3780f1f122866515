"""Subspecifications of the passport issuer trust anchor."""
