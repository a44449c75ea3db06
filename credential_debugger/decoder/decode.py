"""Staged decoders for the binary payloads of a WebAuthn credential.

The attestation object nests three encodings: the outer CBOR map carries an
``authData`` byte string, whose fixed header may be followed by attested
credential data ending in a CBOR encoded COSE key. Each stage decodes its own
buffer so a failure is confined to the smallest structure that produced it.
"""
from __future__ import annotations

import json
import logging
from io import BytesIO
from typing import Any, Dict, Union

import cbor2
from fido2.webauthn import AuthenticatorData

from ..errors import BufferUnderrun, DecodeError, MalformedEncoding
from ..reader import BinaryFieldReader
from ..utils import coerce_bytes

__all__ = [
    "ATTESTATION_OBJECT_ERROR",
    "EXTENSIONS_NOT_DECODED",
    "decode_attestation_object",
    "decode_authenticator_data",
    "decode_client_data_json",
    "decode_first_cbor_item",
    "parse_attestation_object",
    "parse_authenticator_data",
    "parse_client_data_json",
]

logger = logging.getLogger(__name__)

ATTESTATION_OBJECT_ERROR = "Failed to decode attestationObject, unknown attestation type?"

# Extension data is flagged but its layout is never inferred.
EXTENSIONS_NOT_DECODED = "not decoded"

RP_ID_HASH_LENGTH = 32
AAGUID_LENGTH = 16

_FLAG_RESERVED_1 = 0x02
_FLAG_RESERVED_2_MASK = 0x38

BinaryInput = Union[bytes, bytearray, memoryview]


def _describe_error(exc: BaseException) -> str:
    return f"Decode error: {exc}"


def decode_first_cbor_item(data: BinaryInput) -> Any:
    """Decode the first CBOR item in ``data``, ignoring trailing bytes."""

    try:
        return cbor2.CBORDecoder(BytesIO(bytes(data))).decode()
    except (cbor2.CBORDecodeError, EOFError, ValueError) as exc:
        raise MalformedEncoding(f"Invalid CBOR data: {exc}") from exc


def _decode_flags(flags: int) -> Dict[str, Any]:
    return {
        "userPresent": bool(flags & AuthenticatorData.FLAG.UP),
        "reserved1": bool(flags & _FLAG_RESERVED_1),
        "userVerified": bool(flags & AuthenticatorData.FLAG.UV),
        "reserved2": f"{(flags & _FLAG_RESERVED_2_MASK) >> 3:x}",
        "attestedCredentialData": bool(flags & AuthenticatorData.FLAG.AT),
        "extensionDataIncluded": bool(flags & AuthenticatorData.FLAG.ED),
    }


def _encode_credential_public_key(reader: BinaryFieldReader) -> Union[bytes, str]:
    """Re-encode the COSE key occupying the rest of ``reader`` canonically."""

    tail = reader.read_remaining()
    try:
        public_key = decode_first_cbor_item(tail)
        return cbor2.dumps(public_key, canonical=True)
    except (DecodeError, cbor2.CBOREncodeError, ValueError, TypeError) as exc:
        logger.error("Failed to decode CBOR data: %s", exc)
        return _describe_error(exc)


def _decode_attested_credential_data(
    reader: BinaryFieldReader, strict: bool
) -> Dict[str, Any]:
    attested: Dict[str, Any] = {}
    try:
        attested["aaguid"] = reader.read_bytes_as_hex(AAGUID_LENGTH)
        attested["credentialIdLength"] = reader.read_u16_be()
        attested["credentialId"] = reader.read_bytes_as_hex(attested["credentialIdLength"])
    except BufferUnderrun as exc:
        if strict:
            raise
        logger.error("Attested credential data is truncated: %s", exc)
        attested["decodeError"] = _describe_error(exc)
        return attested

    attested["credentialPublicKey"] = _encode_credential_public_key(reader)
    return attested


def decode_authenticator_data(data: BinaryInput, strict: bool = False) -> Dict[str, Any]:
    """Decode an authenticator data buffer into a record.

    The 37 byte header is mandatory and an under-run there raises
    :class:`BufferUnderrun`. Inside the attested credential data an under-run
    raises only when ``strict`` is set; otherwise the fields read so far are
    returned together with a ``decodeError`` diagnostic.
    """

    reader = BinaryFieldReader(data)

    result: Dict[str, Any] = {}
    result["rpIdHash"] = reader.read_bytes_as_hex(RP_ID_HASH_LENGTH)
    result["flags"] = _decode_flags(reader.read_u8())
    result["signCount"] = reader.read_u32_be()

    if result["flags"]["attestedCredentialData"]:
        result["attestedCredentialData"] = _decode_attested_credential_data(reader, strict)

    if result["flags"]["extensionDataIncluded"]:
        result["extensions"] = EXTENSIONS_NOT_DECODED

    return result


def decode_attestation_object(data: BinaryInput) -> Dict[str, Any]:
    """Decode an attestation object and expand its ``authData`` entry.

    Raises :class:`DecodeError` when the envelope is not a CBOR map carrying
    an ``authData`` byte string, or when the authenticator data header is
    truncated.
    """

    decoded = decode_first_cbor_item(data)
    if not isinstance(decoded, dict):
        raise MalformedEncoding("Attestation object must be a CBOR map.")

    auth_data = coerce_bytes(decoded.get("authData"))
    if auth_data is None:
        raise MalformedEncoding("Attestation object has no authData byte string.")

    decoded["authData"] = decode_authenticator_data(auth_data)
    return decoded


def decode_client_data_json(data: BinaryInput) -> Any:
    try:
        text = bytes(data).decode("utf-8")
        return json.loads(text)
    except (ValueError, RecursionError) as exc:
        raise MalformedEncoding(f"Invalid client data JSON: {exc}") from exc


def parse_authenticator_data(value: Any) -> Any:
    """Registry handler: decoded record, diagnostic text, or ``value`` as is."""

    data = coerce_bytes(value)
    if data is None:
        return value
    try:
        return decode_authenticator_data(data)
    except DecodeError as exc:
        logger.error("Failed to decode authenticatorData: %s", exc)
        return _describe_error(exc)


def parse_attestation_object(value: Any) -> Any:
    """Registry handler for ``attestationObject`` values."""

    data = coerce_bytes(value)
    if data is None:
        return value
    try:
        return decode_attestation_object(data)
    except DecodeError as exc:
        logger.error("%s (%s)", ATTESTATION_OBJECT_ERROR, exc)
        return ATTESTATION_OBJECT_ERROR


def parse_client_data_json(value: Any) -> Any:
    """Registry handler for ``clientDataJSON`` values."""

    data = coerce_bytes(value)
    if data is None:
        return value
    try:
        return decode_client_data_json(data)
    except DecodeError as exc:
        logger.error("Failed to decode clientDataJSON: %s", exc)
        return _describe_error(exc)
