import json

import cbor2
import pytest
from cryptography import x509

from conftest import CREDENTIAL_ID, build_attested, build_auth_data
from credential_debugger.cose import cose_to_jwk, jwk_to_pem
from credential_debugger.decoder.encode import (
    annotate_actions,
    decode_credentials_cbor,
    encode_credentials_cbor,
    encode_credentials_json,
    export_field,
    prettify_credentials,
)
from credential_debugger.errors import FieldNotFound, MalformedEncoding, UnsupportedExportAction
from credential_debugger.transform import PARSE_TRANSFORMATIONS, PRETTIFY_TRANSFORMATIONS, transform


@pytest.fixture
def parsed(registration_credential):
    return transform(registration_credential, PARSE_TRANSFORMATIONS)


def test_cbor_round_trip_preserves_credential(registration_credential):
    encoded = encode_credentials_cbor(registration_credential)

    decoded = decode_credentials_cbor(encoded)

    expected = dict(registration_credential)
    del expected["getClientExtensionResults"]
    assert decoded == expected


def test_cbor_export_normalises_binary_types(assertion_credential):
    credential = dict(assertion_credential)
    credential["rawId"] = memoryview(CREDENTIAL_ID)
    credential["extra"] = bytearray(b"\x01\x02")

    decoded = cbor2.loads(encode_credentials_cbor(credential))

    assert decoded["rawId"] == CREDENTIAL_ID
    assert decoded["extra"] == b"\x01\x02"


def test_decode_credentials_cbor_rejects_garbage():
    with pytest.raises(MalformedEncoding):
        decode_credentials_cbor(b"\xa2\x01")


def test_pretty_text_is_json_with_transformed_fields(registration_credential):
    text = prettify_credentials(registration_credential)

    rendered = json.loads(text)
    assert rendered["rawId"] == CREDENTIAL_ID.hex()
    attestation = rendered["response"]["attestationObject"]
    assert attestation["authData"]["attestedCredentialData"]["credentialPublicKey"]["kty"] == "EC"
    assert "getClientExtensionResults" in rendered


def test_json_export_drops_extension_callable_and_hexes_chain(registration_credential, certificate_der):
    rendered = json.loads(encode_credentials_json(registration_credential))

    assert "getClientExtensionResults" not in rendered
    assert rendered["response"]["attestationObject"]["attStmt"]["x5c"] == [certificate_der.hex()]


def test_pretty_text_stringifies_integer_keys():
    text = prettify_credentials({"response": {"publicKey": {1: 2, -1: b"\x0f"}}})

    assert json.loads(text) == {"response": {"publicKey": {"1": 2, "-1": "0f"}}}


def test_annotate_actions_marks_keys_with_exports(registration_credential):
    annotated = annotate_actions(prettify_credentials(registration_credential))

    raw_id_line = next(line for line in annotated.split("\n") if '"rawId"' in line)
    assert f'"rawId": [Use][Download] "{CREDENTIAL_ID.hex()}"' in raw_id_line
    assert '"x5c": [View][Download PEM] [' in annotated
    assert '"credentialPublicKey": [Download COSE][Download JWK][Download PEM] {' in annotated
    client_line = next(line for line in annotated.split("\n") if '"clientDataJSON"' in line)
    assert "[" not in client_line


def test_export_raw_id_from_parsed_and_pretty_copies(parsed, registration_credential):
    export = export_field(parsed, "rawId", "Download")
    assert export.filename == "rawId.bin"
    assert export.content == CREDENTIAL_ID

    pretty = transform(registration_credential, PRETTIFY_TRANSFORMATIONS)
    assert export_field(pretty, "rawId", "download").content == CREDENTIAL_ID


def test_use_raw_id_yields_hex(parsed):
    export = export_field(parsed, "rawId", "Use")

    assert export.text == CREDENTIAL_ID.hex()


def test_export_signature_and_user_handle(assertion_credential):
    parsed = transform(assertion_credential, PARSE_TRANSFORMATIONS)

    assert export_field(parsed, "signature", "Download").filename == "signature.bin"
    assert export_field(parsed, "signature", "Download").content == bytes.fromhex("3045022100aa")
    assert export_field(parsed, "userHandle", "Download").content == b"user-handle"


def test_export_attestation_signature(parsed):
    export = export_field(parsed, "sig", "Download")

    assert export.filename == "sig.bin"
    assert export.content.startswith(b"\x30\x45")


def test_export_certificate_chain_as_pem(parsed, certificate_der):
    export = export_field(parsed, "x5c", "Download PEM")

    assert export.filename == "x5c.pem"
    certificate = x509.load_pem_x509_certificate(export.content)
    assert certificate.subject.rfc4514_string() == "CN=Test Attestation"


def test_view_certificate_chain(parsed):
    export = export_field(parsed, "x5c", "View")

    assert "Subject: CN=Test Attestation" in export.text


def test_export_public_key_forms(parsed, cose_key_bytes):
    cose = export_field(parsed, "credentialPublicKey", "Download COSE")
    jwk = export_field(parsed, "credentialPublicKey", "Download JWK")
    pem = export_field(parsed, "credentialPublicKey", "Download PEM")

    assert (cose.filename, cose.content) == ("credentialPublicKey.cose", cose_key_bytes)
    assert jwk.filename == "credentialPublicKey.jwk"
    assert json.loads(jwk.text) == cose_to_jwk(cose_key_bytes)
    assert pem.filename == "credentialPublicKey.pem"
    assert pem.text == jwk_to_pem(cose_to_jwk(cose_key_bytes))


def test_export_public_key_from_pretty_copy(registration_credential, cose_key_bytes):
    pretty = transform(registration_credential, PRETTIFY_TRANSFORMATIONS)

    assert export_field(pretty, "credentialPublicKey", "Download COSE").content == cose_key_bytes


@pytest.mark.parametrize(
    "key, action",
    [
        ("rawId", "View"),
        ("x5c", "Download"),
        ("credentialPublicKey", "Download"),
        ("clientDataJSON", "Download"),
        ("fmt", "Download"),
        ("rawId", "print"),
    ],
)
def test_unsupported_actions(parsed, key, action):
    with pytest.raises(UnsupportedExportAction):
        export_field(parsed, key, action)


def test_missing_field(assertion_credential):
    parsed = transform(assertion_credential, PARSE_TRANSFORMATIONS)

    with pytest.raises(FieldNotFound):
        export_field(parsed, "x5c", "View")


def test_public_key_diagnostic_cannot_be_exported():
    parsed = {"authData": {"attestedCredentialData": {"credentialPublicKey": "Decode error: EOF"}}}

    with pytest.raises(MalformedEncoding):
        export_field(parsed, "credentialPublicKey", "Download PEM")


def test_malformed_public_key_does_not_abort_prettify(registration_credential):
    bad_key = cbor2.dumps({1: 2, 3: -7, -1: [1], -2: b"x" * 32, -3: b"y" * 32})
    auth_data = build_auth_data(0x45, attested=build_attested(bad_key))
    credential = dict(registration_credential)
    credential["response"] = dict(
        registration_credential["response"],
        attestationObject=cbor2.dumps({"fmt": "none", "attStmt": {}, "authData": auth_data}),
    )

    rendered = json.loads(prettify_credentials(credential))

    attested = rendered["response"]["attestationObject"]["authData"]["attestedCredentialData"]
    assert attested["credentialPublicKey"].startswith("Decode error:")
    assert rendered["rawId"] == CREDENTIAL_ID.hex()
