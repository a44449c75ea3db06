"""Codec utilities for decoding and re-encoding WebAuthn credential payloads."""
from .decode import (
    decode_attestation_object,
    decode_authenticator_data,
    decode_client_data_json,
    parse_attestation_object,
    parse_authenticator_data,
    parse_client_data_json,
)

__all__ = [
    "decode_attestation_object",
    "decode_authenticator_data",
    "decode_client_data_json",
    "parse_attestation_object",
    "parse_authenticator_data",
    "parse_client_data_json",
]
