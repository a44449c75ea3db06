"""Helpers for the attestation certificate chain (``x5c``) field."""
from __future__ import annotations

import base64
import logging
import textwrap
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from cryptography import x509
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec, ed448, ed25519, rsa

from .config import PEM_SEPARATOR
from .utils import hex_to_bytes

__all__ = [
    "colon_hex",
    "der_to_pem",
    "format_hex_bytes_lines",
    "format_x509_name",
    "serialize_certificate",
    "x5c_array_to_cert_info",
    "x5c_array_to_pem",
]

logger = logging.getLogger(__name__)


def _ensure_utc_datetime(value: datetime) -> datetime:
    """Return ``value`` normalised to a timezone-aware UTC datetime."""

    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _certificate_datetime(cert: x509.Certificate, attribute: str) -> datetime:
    """Retrieve *attribute* from *cert* preferring the UTC variant if present."""

    utc_attribute = f"{attribute}_utc"
    value = getattr(cert, utc_attribute, None)
    if value is None:
        value = getattr(cert, attribute)
    return _ensure_utc_datetime(value)


def colon_hex(data: bytes) -> str:
    return ":".join(f"{byte:02x}" for byte in data)


def format_hex_bytes_lines(data: bytes, bytes_per_line: int = 16) -> List[str]:
    """Return colon separated hex grouped across multiple lines."""
    if not data:
        return []

    hex_pairs = [f"{byte:02x}" for byte in data]
    return [
        ":".join(hex_pairs[start : start + bytes_per_line])
        for start in range(0, len(hex_pairs), bytes_per_line)
    ]


def format_x509_name(name: x509.Name) -> str:
    try:
        return name.rfc4514_string()
    except ValueError:
        return str(name)


def der_to_pem(value: Any) -> str:
    """Wrap a DER certificate (bytes or hex) in PEM armour."""

    der_bytes = hex_to_bytes(value)
    if der_bytes is None:
        raise ValueError("Certificate must be DER bytes or a hex string.")
    der_base64 = base64.b64encode(der_bytes).decode("ascii")
    pem_body = "\n".join(textwrap.wrap(der_base64, 64))
    return f"-----BEGIN CERTIFICATE-----\n{pem_body}\n-----END CERTIFICATE-----"


def x5c_array_to_pem(chain: Iterable[Any], separator: Optional[str] = None) -> str:
    """Join a certificate chain into one PEM bundle."""

    joiner = PEM_SEPARATOR if separator is None else separator
    return joiner.join(der_to_pem(entry) for entry in chain)


def _serialize_public_key_info(public_key) -> Dict[str, Any]:
    info: Dict[str, Any] = {
        "type": public_key.__class__.__name__,
        "keySize": getattr(public_key, "key_size", None),
    }

    if isinstance(public_key, ec.EllipticCurvePublicKey):
        info.update(
            {
                "type": "ECC",
                "curve": getattr(public_key.curve, "name", "unknown"),
                "uncompressedPoint": public_key.public_bytes(
                    encoding=serialization.Encoding.X962,
                    format=serialization.PublicFormat.UncompressedPoint,
                ),
            }
        )
    elif isinstance(public_key, rsa.RSAPublicKey):
        numbers = public_key.public_numbers()
        info.update(
            {
                "type": "RSA",
                "publicExponent": numbers.e,
                "modulusHex": f"0x{numbers.n:x}",
            }
        )
    elif isinstance(public_key, (ed25519.Ed25519PublicKey, ed448.Ed448PublicKey)):
        info["publicKeyRaw"] = public_key.public_bytes(
            encoding=serialization.Encoding.Raw,
            format=serialization.PublicFormat.Raw,
        )

    return info


def serialize_certificate(cert_bytes: bytes) -> Dict[str, Any]:
    """Return the displayable metadata of a DER encoded certificate.

    Raises ``ValueError`` or :class:`cryptography.x509.InvalidVersion` when
    the certificate cannot be parsed.
    """

    certificate = x509.load_der_x509_certificate(cert_bytes)

    signature_algorithm_oid = certificate.signature_algorithm_oid
    signature_algorithm = getattr(signature_algorithm_oid, "_name", None)
    if not signature_algorithm or signature_algorithm.lower() == "unknown oid":
        signature_algorithm = signature_algorithm_oid.dotted_string

    try:
        public_key_info: Optional[Dict[str, Any]] = _serialize_public_key_info(
            certificate.public_key()
        )
    except (UnsupportedAlgorithm, ValueError) as exc:
        logger.warning("Unsupported certificate public key: %s", exc)
        public_key_info = None

    return {
        "version": certificate.version.value + 1,
        "serialNumber": certificate.serial_number,
        "subject": format_x509_name(certificate.subject),
        "issuer": format_x509_name(certificate.issuer),
        "notBefore": _certificate_datetime(certificate, "not_valid_before").isoformat(),
        "notAfter": _certificate_datetime(certificate, "not_valid_after").isoformat(),
        "signatureAlgorithm": signature_algorithm,
        "publicKeyInfo": public_key_info,
        "sha256Fingerprint": certificate.fingerprint(hashes.SHA256()),
    }


def _build_public_key_lines(info: Optional[Dict[str, Any]]) -> List[str]:
    if info is None:
        return ["Subject Public Key Info: (unsupported key type)"]

    lines = ["Subject Public Key Info:", f"  Type: {info['type']}"]
    if isinstance(info.get("keySize"), int):
        lines.append(f"  Public-Key: ({info['keySize']} bit)")
    if info.get("curve"):
        lines.append(f"  Curve: {info['curve']}")
    if info.get("publicExponent") is not None:
        lines.append(f"  Exponent: {info['publicExponent']}")
    if info.get("modulusHex"):
        lines.append(f"  Modulus: {info['modulusHex']}")
    for label in ("uncompressedPoint", "publicKeyRaw"):
        data = info.get(label)
        if data:
            lines.append("  pub:")
            lines.extend(f"    {line}" for line in format_hex_bytes_lines(data))
    return lines


def _format_serial_hex(serial: int) -> str:
    sign = "-" if serial < 0 else ""
    return f"{sign}0x{abs(serial):x}"


def _build_certificate_lines(decoded: Dict[str, Any]) -> List[str]:
    serial = decoded["serialNumber"]
    lines = [
        f"Version: {decoded['version']}",
        f"Serial Number: {serial} ({_format_serial_hex(serial)})",
        f"Signature Algorithm: {decoded['signatureAlgorithm']}",
        f"Issuer: {decoded['issuer']}",
        "Validity",
        f"  Not Before: {decoded['notBefore']}",
        f"  Not After: {decoded['notAfter']}",
        f"Subject: {decoded['subject']}",
    ]
    lines.extend(_build_public_key_lines(decoded["publicKeyInfo"]))
    lines.append(f"SHA-256 Fingerprint: {colon_hex(decoded['sha256Fingerprint'])}")
    return lines


def x5c_array_to_cert_info(chain: Iterable[Any]) -> str:
    """Describe every certificate of a chain as readable text.

    A certificate that cannot be parsed contributes a diagnostic line
    instead of aborting the whole description.
    """

    sections: List[str] = []
    for index, entry in enumerate(chain, start=1):
        header = f"Certificate #{index}"
        cert_bytes = hex_to_bytes(entry)
        if not cert_bytes:
            sections.append(f"{header}\nFailed to parse certificate: not binary data.")
            continue
        try:
            decoded = serialize_certificate(cert_bytes)
        except (ValueError, x509.InvalidVersion) as exc:
            logger.error("Failed to parse certificate #%d: %s", index, exc)
            sections.append(f"{header}\nFailed to parse certificate: {exc}")
            continue
        sections.append("\n".join([header, *_build_certificate_lines(decoded)]))
    return "\n\n".join(sections)
