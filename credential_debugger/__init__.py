"""Decode, prettify and re-encode WebAuthn credential ceremony results."""
from __future__ import annotations

from .decoder.decode import (
    decode_attestation_object,
    decode_authenticator_data,
    parse_attestation_object,
    parse_authenticator_data,
    parse_client_data_json,
)
from .decoder.encode import (
    FieldExport,
    decode_credentials_cbor,
    encode_credentials_cbor,
    encode_credentials_json,
    export_field,
    prettify_credentials,
)
from .errors import (
    BufferUnderrun,
    DecodeError,
    FieldNotFound,
    MalformedEncoding,
    UnsupportedExportAction,
)
from .reader import BinaryFieldReader
from .session import CredentialSession
from .transform import (
    PARSE_TRANSFORMATIONS,
    PRETTIFY_TRANSFORMATIONS,
    ExportAction,
    TransformEntry,
    select_transformations,
    transform,
)

__all__ = [
    "BinaryFieldReader",
    "BufferUnderrun",
    "CredentialSession",
    "DecodeError",
    "ExportAction",
    "FieldExport",
    "FieldNotFound",
    "MalformedEncoding",
    "PARSE_TRANSFORMATIONS",
    "PRETTIFY_TRANSFORMATIONS",
    "TransformEntry",
    "UnsupportedExportAction",
    "decode_attestation_object",
    "decode_authenticator_data",
    "decode_credentials_cbor",
    "encode_credentials_cbor",
    "encode_credentials_json",
    "export_field",
    "parse_attestation_object",
    "parse_authenticator_data",
    "parse_client_data_json",
    "prettify_credentials",
    "select_transformations",
    "transform",
]
