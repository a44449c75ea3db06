from cryptography import x509
from cryptography.hazmat.primitives import serialization

from credential_debugger.certificates import (
    _build_certificate_lines,
    der_to_pem,
    format_hex_bytes_lines,
    serialize_certificate,
    x5c_array_to_cert_info,
    x5c_array_to_pem,
)


def test_der_to_pem_round_trips_through_cryptography(certificate_der):
    pem = der_to_pem(certificate_der)

    assert pem.startswith("-----BEGIN CERTIFICATE-----\n")
    assert pem.endswith("\n-----END CERTIFICATE-----")
    assert all(len(line) <= 64 for line in pem.splitlines())
    loaded = x509.load_pem_x509_certificate(pem.encode("ascii"))
    assert loaded.public_bytes(encoding=serialization.Encoding.DER) == certificate_der


def test_der_to_pem_accepts_hex(certificate_der):
    assert der_to_pem(certificate_der.hex()) == der_to_pem(certificate_der)


def test_pem_bundle_is_joined_with_separator(certificate_der):
    bundle = x5c_array_to_pem([certificate_der, certificate_der], separator="\r\n")

    assert bundle.count("-----BEGIN CERTIFICATE-----") == 2
    assert "-----END CERTIFICATE-----\r\n-----BEGIN CERTIFICATE-----" in bundle


def test_cert_info_lists_metadata(certificate_der):
    info = x5c_array_to_cert_info([certificate_der])

    assert info.startswith("Certificate #1")
    assert "Subject: CN=Test Attestation" in info
    assert "Issuer: CN=Test Attestation" in info
    assert "Serial Number: 4660 (0x1234)" in info
    assert "Not Before:" in info
    assert "Not After:" in info
    assert "Type: ECC" in info
    assert "Curve: secp256r1" in info
    assert "SHA-256 Fingerprint:" in info


def test_cert_info_reports_unparseable_entries(certificate_der):
    info = x5c_array_to_cert_info([b"\x30\x03\x02\x01\x00", certificate_der.hex(), 7])

    sections = info.split("\n\n")
    assert sections[0].startswith("Certificate #1\nFailed to parse certificate:")
    assert sections[1].startswith("Certificate #2\nVersion: 3")
    assert sections[2] == "Certificate #3\nFailed to parse certificate: not binary data."


def test_format_hex_bytes_lines():
    assert format_hex_bytes_lines(bytes(range(18)), bytes_per_line=16) == [
        "00:01:02:03:04:05:06:07:08:09:0a:0b:0c:0d:0e:0f",
        "10:11",
    ]
    assert format_hex_bytes_lines(b"") == []


def test_cert_info_reports_unsupported_version(certificate_der):
    version_field = bytes.fromhex("a003020102")
    assert version_field in certificate_der
    patched = certificate_der.replace(version_field, bytes.fromhex("a003020107"), 1)

    info = x5c_array_to_cert_info([patched, certificate_der])

    sections = info.split("\n\n")
    assert sections[0].startswith("Certificate #1\nFailed to parse certificate:")
    assert sections[1].startswith("Certificate #2\nVersion: 3")


def test_negative_serial_keeps_sign_outside_hex(certificate_der):
    decoded = dict(serialize_certificate(certificate_der), serialNumber=-5)

    assert "Serial Number: -5 (-0x5)" in _build_certificate_lines(decoded)
