"""Conversions between COSE keys, JSON Web Keys and PEM public keys."""
from __future__ import annotations

import logging
from typing import Any, Dict, Mapping, Optional

import cbor2
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec, ed448, ed25519, rsa, types
from fido2.cose import CoseKey, UnsupportedKey
from fido2.utils import bytes2int, int2bytes, websafe_decode, websafe_encode

from .errors import DecodeError, MalformedEncoding
from .utils import coerce_bytes

__all__ = [
    "cose_to_jwk",
    "cose_to_public_key",
    "jwk_to_cose",
    "jwk_to_pem",
    "jwk_to_public_key",
    "load_cose_key",
    "public_key_to_pem",
]

logger = logging.getLogger(__name__)

# COSE key parameters (RFC 9053).
KTY = 1
ALG = 3
CRV = -1
EC_X = -2
EC_Y = -3
RSA_N = -1
RSA_E = -2
OKP_X = -2

KTY_OKP = 1
KTY_EC2 = 2
KTY_RSA = 3

_EC2_CURVES: Dict[int, tuple] = {
    1: ("P-256", ec.SECP256R1, 32),
    2: ("P-384", ec.SECP384R1, 48),
    3: ("P-521", ec.SECP521R1, 66),
    8: ("secp256k1", ec.SECP256K1, 32),
}

_OKP_CURVES: Dict[int, str] = {
    6: "Ed25519",
    7: "Ed448",
}

_JWK_EC_CURVES = {name: (crv, curve_cls, size) for crv, (name, curve_cls, size) in _EC2_CURVES.items()}

# Default COSE algorithm for keys converted back from a JWK without "alg".
_DEFAULT_EC_ALG = {"P-256": -7, "P-384": -35, "P-521": -36, "secp256k1": -47}


def load_cose_key(value: Any) -> Dict[int, Any]:
    """Return the COSE key map held in ``value`` (CBOR bytes or a mapping)."""

    if isinstance(value, Mapping):
        return dict(value)
    data = coerce_bytes(value)
    if data is None:
        raise MalformedEncoding("COSE key must be CBOR bytes or a mapping.")
    try:
        decoded = cbor2.loads(data)
    except (cbor2.CBORDecodeError, EOFError, ValueError) as exc:
        raise MalformedEncoding(f"Invalid COSE key CBOR: {exc}") from exc
    if not isinstance(decoded, Mapping):
        raise MalformedEncoding("COSE key must be a CBOR map.")
    return dict(decoded)


def _jwk_algorithm(alg: Any) -> Optional[str]:
    if not isinstance(alg, int):
        return None
    cls = CoseKey.for_alg(alg)
    if cls is UnsupportedKey:
        return None
    return cls.__name__


def _require_bytes(cose: Mapping[int, Any], label: int, name: str) -> bytes:
    data = coerce_bytes(cose.get(label))
    if not data:
        raise MalformedEncoding(f"COSE key is missing the {name} parameter.")
    return data


def _require_curve(cose: Mapping[int, Any]) -> int:
    crv = cose.get(CRV)
    if not isinstance(crv, int) or isinstance(crv, bool):
        raise MalformedEncoding(f"COSE key curve must be an integer, got {crv!r}")
    return crv


def _cose_map_to_jwk(cose: Mapping[int, Any]) -> Dict[str, Any]:
    kty = cose.get(KTY)
    jwk: Dict[str, Any]

    if kty == KTY_EC2:
        curve = _EC2_CURVES.get(_require_curve(cose))
        if curve is None:
            raise MalformedEncoding(f"Unsupported EC2 curve: {cose.get(CRV)!r}")
        jwk = {
            "kty": "EC",
            "crv": curve[0],
            "x": websafe_encode(_require_bytes(cose, EC_X, "x")),
            "y": websafe_encode(_require_bytes(cose, EC_Y, "y")),
        }
    elif kty == KTY_RSA:
        jwk = {
            "kty": "RSA",
            "n": websafe_encode(_require_bytes(cose, RSA_N, "n")),
            "e": websafe_encode(_require_bytes(cose, RSA_E, "e")),
        }
    elif kty == KTY_OKP:
        curve_name = _OKP_CURVES.get(_require_curve(cose))
        if curve_name is None:
            raise MalformedEncoding(f"Unsupported OKP curve: {cose.get(CRV)!r}")
        jwk = {
            "kty": "OKP",
            "crv": curve_name,
            "x": websafe_encode(_require_bytes(cose, OKP_X, "x")),
        }
    else:
        raise MalformedEncoding(f"Unsupported COSE key type: {kty!r}")

    alg_name = _jwk_algorithm(cose.get(ALG))
    if alg_name:
        jwk["alg"] = alg_name
    return jwk


def cose_to_jwk(value: Any) -> Any:
    """Registry handler: convert a COSE encoded public key into a JWK.

    Values that are neither binary nor a COSE map (for example a JWK from a
    previous pass, or a decode diagnostic) are returned unchanged. Malformed
    keys produce a diagnostic string.
    """

    if isinstance(value, Mapping):
        if "kty" in value:
            return value
    elif coerce_bytes(value) is None:
        return value

    try:
        return _cose_map_to_jwk(load_cose_key(value))
    except DecodeError as exc:
        logger.error("Failed to convert COSE key to JWK: %s", exc)
        return f"Decode error: {exc}"


def _jwk_bytes(jwk: Mapping[str, Any], name: str) -> bytes:
    value = jwk.get(name)
    if not isinstance(value, str) or not value:
        raise MalformedEncoding(f"JWK is missing the {name!r} member.")
    try:
        return websafe_decode(value)
    except ValueError as exc:
        raise MalformedEncoding(f"JWK member {name!r} is not base64url: {exc}") from exc


def jwk_to_public_key(jwk: Mapping[str, Any]) -> types.PublicKeyTypes:
    kty = jwk.get("kty")
    if kty == "EC":
        crv = jwk.get("crv")
        curve = _JWK_EC_CURVES.get(crv) if isinstance(crv, str) else None
        if curve is None:
            raise MalformedEncoding(f"Unsupported JWK curve: {jwk.get('crv')!r}")
        numbers = ec.EllipticCurvePublicNumbers(
            bytes2int(_jwk_bytes(jwk, "x")), bytes2int(_jwk_bytes(jwk, "y")), curve[1]()
        )
        try:
            return numbers.public_key()
        except ValueError as exc:
            raise MalformedEncoding(f"Invalid EC point: {exc}") from exc
    if kty == "RSA":
        numbers = rsa.RSAPublicNumbers(
            bytes2int(_jwk_bytes(jwk, "e")), bytes2int(_jwk_bytes(jwk, "n"))
        )
        try:
            return numbers.public_key()
        except ValueError as exc:
            raise MalformedEncoding(f"Invalid RSA key: {exc}") from exc
    if kty == "OKP":
        crv = jwk.get("crv")
        raw = _jwk_bytes(jwk, "x")
        try:
            if crv == "Ed25519":
                return ed25519.Ed25519PublicKey.from_public_bytes(raw)
            if crv == "Ed448":
                return ed448.Ed448PublicKey.from_public_bytes(raw)
        except ValueError as exc:
            raise MalformedEncoding(f"Invalid {crv} key: {exc}") from exc
        raise MalformedEncoding(f"Unsupported JWK curve: {crv!r}")
    raise MalformedEncoding(f"Unsupported JWK key type: {kty!r}")


def cose_to_public_key(value: Any) -> types.PublicKeyTypes:
    return jwk_to_public_key(_cose_map_to_jwk(load_cose_key(value)))


def public_key_to_pem(public_key: types.PublicKeyTypes) -> str:
    return public_key.public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    ).decode("ascii")


def jwk_to_pem(jwk: Mapping[str, Any]) -> str:
    """Render a JWK as a PEM encoded SubjectPublicKeyInfo."""

    return public_key_to_pem(jwk_to_public_key(jwk))


def _cose_alg_for_jwk(jwk: Mapping[str, Any], public_key: types.PublicKeyTypes) -> int:
    name = jwk.get("alg")
    if isinstance(name, str):
        cls = CoseKey.for_name(name)
        if cls is not UnsupportedKey and cls.ALGORITHM is not None:
            return cls.ALGORITHM
    if isinstance(public_key, ec.EllipticCurvePublicKey):
        return _DEFAULT_EC_ALG[jwk["crv"]]
    if isinstance(public_key, rsa.RSAPublicKey):
        return -257
    return -8


def jwk_to_cose(jwk: Mapping[str, Any]) -> bytes:
    """Encode a JWK back into canonical COSE key bytes."""

    public_key = jwk_to_public_key(jwk)
    alg = _cose_alg_for_jwk(jwk, public_key)

    if isinstance(public_key, ec.EllipticCurvePublicKey):
        crv, _, size = _JWK_EC_CURVES[jwk["crv"]]
        numbers = public_key.public_numbers()
        cose: Dict[int, Any] = {
            KTY: KTY_EC2,
            ALG: alg,
            CRV: crv,
            EC_X: int2bytes(numbers.x, size),
            EC_Y: int2bytes(numbers.y, size),
        }
    elif isinstance(public_key, rsa.RSAPublicKey):
        numbers = public_key.public_numbers()
        cose = {KTY: KTY_RSA, ALG: alg, RSA_N: int2bytes(numbers.n), RSA_E: int2bytes(numbers.e)}
    else:
        crv = 6 if jwk.get("crv") == "Ed25519" else 7
        raw = public_key.public_bytes(serialization.Encoding.Raw, serialization.PublicFormat.Raw)
        cose = {KTY: KTY_OKP, ALG: alg, CRV: crv, OKP_X: raw}

    return cbor2.dumps(cose, canonical=True)
