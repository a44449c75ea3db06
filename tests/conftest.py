import hashlib
import json
import struct
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import cbor2
import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509.oid import NameOID
from fido2.cose import ES256

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

RP_ID_HASH = hashlib.sha256(b"example.com").digest()
AAGUID = bytes.fromhex("0a0b0c0d0e0f00010203040506070809")
CREDENTIAL_ID = bytes.fromhex("622518ecb4dd41109f3a62008c269c085f63")


def build_auth_data(flags, counter=7, attested=b"", rp_id_hash=RP_ID_HASH):
    return rp_id_hash + bytes([flags]) + struct.pack(">I", counter) + attested


def build_attested(public_key_bytes, credential_id=CREDENTIAL_ID, aaguid=AAGUID):
    return aaguid + struct.pack(">H", len(credential_id)) + credential_id + public_key_bytes


def make_certificate(private_key, common_name="Test Attestation"):
    name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, common_name)])
    now = datetime.now(timezone.utc)
    certificate = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(private_key.public_key())
        .serial_number(0x1234)
        .not_valid_before(now - timedelta(days=1))
        .not_valid_after(now + timedelta(days=30))
        .sign(private_key, hashes.SHA256())
    )
    return certificate.public_bytes(serialization.Encoding.DER)


@pytest.fixture
def ec_private_key():
    return ec.generate_private_key(ec.SECP256R1())


@pytest.fixture
def cose_key(ec_private_key):
    return dict(ES256.from_cryptography_key(ec_private_key.public_key()))


@pytest.fixture
def cose_key_bytes(cose_key):
    return cbor2.dumps(cose_key, canonical=True)


@pytest.fixture
def certificate_der(ec_private_key):
    return make_certificate(ec_private_key)


@pytest.fixture
def registration_auth_data(cose_key_bytes):
    return build_auth_data(0x45, attested=build_attested(cose_key_bytes))


@pytest.fixture
def attestation_object(registration_auth_data, certificate_der):
    return cbor2.dumps(
        {
            "fmt": "packed",
            "attStmt": {"alg": -7, "sig": b"\x30\x45" + b"\x11" * 8, "x5c": [certificate_der]},
            "authData": registration_auth_data,
        }
    )


@pytest.fixture
def client_data_bytes():
    return json.dumps(
        {
            "type": "webauthn.create",
            "challenge": "AAECAwQFBgcICQoLDA0ODw",
            "origin": "https://example.com",
            "crossOrigin": False,
        }
    ).encode("utf-8")


@pytest.fixture
def registration_credential(attestation_object, client_data_bytes):
    return {
        "id": "YiUY7LTdQRCfOmIAjCacCF9j",
        "rawId": CREDENTIAL_ID,
        "type": "public-key",
        "response": {
            "clientDataJSON": client_data_bytes,
            "attestationObject": attestation_object,
        },
        "getClientExtensionResults": {},
    }


@pytest.fixture
def assertion_credential(client_data_bytes):
    return {
        "id": "YiUY7LTdQRCfOmIAjCacCF9j",
        "rawId": CREDENTIAL_ID,
        "type": "public-key",
        "response": {
            "clientDataJSON": client_data_bytes,
            "authenticatorData": build_auth_data(0x05, counter=42),
            "signature": bytes.fromhex("3045022100aa"),
            "userHandle": b"user-handle",
        },
    }
