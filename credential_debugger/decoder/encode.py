"""Export helpers: CBOR round trips, pretty text and per-field downloads."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Mapping, Optional, Tuple

import cbor2

from ..certificates import x5c_array_to_cert_info, x5c_array_to_pem
from ..cose import cose_to_jwk, jwk_to_cose, jwk_to_pem, load_cose_key
from ..errors import DecodeError, MalformedEncoding, UnsupportedExportAction
from ..transform import (
    PRETTIFY_TRANSFORMATIONS,
    ExportAction,
    TransformEntry,
    transform,
)
from ..utils import coerce_bytes, deep_clone, find_key, hex_to_bytes, pretty_stringify

__all__ = [
    "DROPPED_EXPORT_KEYS",
    "FieldExport",
    "annotate_actions",
    "decode_credentials_cbor",
    "encode_credentials_cbor",
    "encode_credentials_json",
    "export_field",
    "prettify_credentials",
]

logger = logging.getLogger(__name__)

# Not part of the serialisable credential result.
DROPPED_EXPORT_KEYS = ("getClientExtensionResults",)


@dataclass(frozen=True)
class FieldExport:
    filename: str
    content: bytes
    media_type: str = "application/octet-stream"

    @property
    def text(self) -> str:
        return self.content.decode("utf-8")


def _without_dropped_keys(credentials: Mapping[str, Any]) -> Dict[str, Any]:
    creds = deep_clone(credentials)
    for key in DROPPED_EXPORT_KEYS:
        creds.pop(key, None)
    return creds


def _encode_binary_default(encoder: cbor2.CBOREncoder, value: Any) -> None:
    data = coerce_bytes(value)
    if data is None:
        raise cbor2.CBOREncodeError(f"Cannot CBOR encode value of type {type(value).__name__}")
    encoder.encode(data)


def encode_credentials_cbor(credentials: Mapping[str, Any]) -> bytes:
    """Encode the untransformed credential result as CBOR."""

    return cbor2.dumps(_without_dropped_keys(credentials), default=_encode_binary_default)


def decode_credentials_cbor(data: bytes) -> Any:
    """Load a credential result previously exported as CBOR."""

    try:
        return cbor2.loads(data)
    except (cbor2.CBORDecodeError, EOFError, ValueError) as exc:
        raise MalformedEncoding(f"Invalid credential CBOR: {exc}") from exc


def prettify_credentials(
    credentials: Mapping[str, Any],
    transformations: Mapping[str, TransformEntry] = PRETTIFY_TRANSFORMATIONS,
) -> str:
    """Render a fully transformed copy of ``credentials`` as indented JSON."""

    return pretty_stringify(transform(deep_clone(credentials), transformations))


def encode_credentials_json(credentials: Mapping[str, Any]) -> bytes:
    """Render the credential result for a JSON download."""

    creds = _without_dropped_keys(credentials)
    return pretty_stringify(transform(creds, PRETTIFY_TRANSFORMATIONS)).encode("utf-8")


def annotate_actions(
    pretty_text: str,
    transformations: Mapping[str, TransformEntry] = PRETTIFY_TRANSFORMATIONS,
) -> str:
    """Mark lines of pretty output whose key offers export actions."""

    lines = []
    for line in pretty_text.split("\n"):
        for key, entry in transformations.items():
            actions = entry.export_actions()
            key_str = f'"{key}": '
            index = line.find(key_str)
            if index == -1 or not actions:
                continue
            position = index + len(key_str)
            labels = "".join(f"[{action.value}]" for action in actions)
            line = f"{line[:position]}{labels} {line[position:]}"
        lines.append(line)
    return "\n".join(lines)


def _require_binary(key: str, value: Any) -> bytes:
    data = hex_to_bytes(value)
    if data is None:
        raise MalformedEncoding(f"Field {key!r} does not hold binary data.")
    return data


def _export_binary(key: str, value: Any, action: ExportAction) -> FieldExport:
    if action is ExportAction.DOWNLOAD:
        return FieldExport(f"{key}.bin", _require_binary(key, value))
    if action is ExportAction.USE and key == "rawId":
        return FieldExport(f"{key}.txt", _require_binary(key, value).hex().encode("ascii"), "text/plain")
    raise UnsupportedExportAction(f"{action.value} is not available for {key}.")


def _export_certificate_chain(key: str, value: Any, action: ExportAction) -> FieldExport:
    if not isinstance(value, (list, tuple)):
        raise MalformedEncoding(f"Field {key!r} is not a certificate chain.")
    if action is ExportAction.VIEW:
        return FieldExport(f"{key}.txt", x5c_array_to_cert_info(value).encode("utf-8"), "text/plain")
    if action is ExportAction.DOWNLOAD_PEM:
        try:
            bundle = x5c_array_to_pem(value)
        except ValueError as exc:
            raise MalformedEncoding(str(exc)) from exc
        return FieldExport(f"{key}.pem", bundle.encode("ascii"), "application/x-pem-file")
    raise UnsupportedExportAction(f"{action.value} is not available for {key}.")


def _resolve_public_key(value: Any) -> Tuple[Optional[bytes], Dict[str, Any]]:
    """Return the original COSE bytes (when known) and the JWK of a key."""

    if isinstance(value, Mapping) and "kty" in value:
        return None, dict(value)
    cose_bytes = coerce_bytes(value)
    if cose_bytes is None and isinstance(value, str):
        cose_bytes = hex_to_bytes(value)
    if cose_bytes is None and isinstance(value, Mapping):
        cose_bytes = cbor2.dumps(load_cose_key(value), canonical=True)
    if cose_bytes is None:
        raise MalformedEncoding(f"Public key could not be decoded: {value!r}")
    jwk = cose_to_jwk(cose_bytes)
    if not isinstance(jwk, Mapping):
        raise MalformedEncoding(str(jwk))
    return cose_bytes, dict(jwk)


def _export_public_key(key: str, value: Any, action: ExportAction) -> FieldExport:
    if action not in (
        ExportAction.DOWNLOAD_COSE,
        ExportAction.DOWNLOAD_JWK,
        ExportAction.DOWNLOAD_PEM,
    ):
        raise UnsupportedExportAction(f"{action.value} is not available for {key}.")

    cose_bytes, jwk = _resolve_public_key(value)
    if action is ExportAction.DOWNLOAD_COSE:
        return FieldExport(f"{key}.cose", cose_bytes if cose_bytes is not None else jwk_to_cose(jwk))
    if action is ExportAction.DOWNLOAD_JWK:
        return FieldExport(f"{key}.jwk", pretty_stringify(jwk).encode("utf-8"), "application/jwk+json")
    return FieldExport(f"{key}.pem", jwk_to_pem(jwk).encode("ascii"), "application/x-pem-file")


_FIELD_EXPORTERS: Dict[str, Callable[[str, Any, ExportAction], FieldExport]] = {
    "rawId": _export_binary,
    "sig": _export_binary,
    "signature": _export_binary,
    "userHandle": _export_binary,
    "x5c": _export_certificate_chain,
    "credentialPublicKey": _export_public_key,
}


def export_field(parsed_credentials: Any, key: str, action: Any) -> FieldExport:
    """Render the ``key`` field of a parsed credential for ``action``.

    ``parsed_credentials`` may be the parsed copy (binary leaves) or the
    prettified copy (hex and JWK leaves); both forms are accepted.
    """

    resolved = ExportAction.parse(action)
    entry = PRETTIFY_TRANSFORMATIONS.get(key)
    if entry is None or resolved not in entry.export_actions():
        raise UnsupportedExportAction(f"{resolved.value} is not available for {key}.")

    value = find_key(parsed_credentials, key)
    try:
        export = _FIELD_EXPORTERS[key](key, value, resolved)
    except DecodeError:
        logger.error("Failed to export %s as %s.", key, resolved.value)
        raise
    logger.debug("Exported %s as %s (%d bytes).", key, export.filename, len(export.content))
    return export
