"""Holds the most recent credential result and its derived views."""
from __future__ import annotations

import json
import logging
from typing import Any, Mapping, Optional

from .config import ANNOTATE_ACTIONS
from .decoder.encode import (
    FieldExport,
    annotate_actions,
    decode_credentials_cbor,
    encode_credentials_cbor,
    encode_credentials_json,
    export_field,
    prettify_credentials,
)
from .errors import MalformedEncoding
from .transform import PARSE_TRANSFORMATIONS, transform
from .utils import bin_to_hex, deep_clone, find_key, from_webauthn_json

__all__ = ["CredentialSession"]

logger = logging.getLogger(__name__)


class CredentialSession:
    """The last credential result handled by the debugger.

    Three views are kept: an untouched copy for CBOR round trips, a parsed
    copy whose binary carriers are decoded (field exports read from it) and
    the prettified text shown to the user.
    """

    def __init__(self) -> None:
        self.last_credentials: Optional[dict] = None
        self.last_credentials_parsed: Optional[dict] = None
        self.pretty: Optional[str] = None

    def handle_credentials(self, credentials: Mapping[str, Any]) -> str:
        if not isinstance(credentials, Mapping):
            raise MalformedEncoding("Credential result must be a mapping.")

        self.last_credentials = deep_clone(credentials)
        self.last_credentials_parsed = transform(deep_clone(credentials), PARSE_TRANSFORMATIONS)
        self.pretty = prettify_credentials(credentials)

        logger.debug("Credential result:\n%s", self.pretty)
        return self.render()

    def render(self, annotate: Optional[bool] = None) -> str:
        """Return the pretty text, optionally marked with export actions."""

        self._require_credentials()
        annotate = ANNOTATE_ACTIONS if annotate is None else annotate
        return annotate_actions(self.pretty) if annotate else self.pretty

    def load_cbor(self, data: bytes) -> str:
        return self.handle_credentials(decode_credentials_cbor(data))

    def load_json(self, text: str) -> str:
        """Load a credential in the WebAuthn JSON form (base64url binaries)."""

        try:
            parsed = json.loads(text)
        except (ValueError, RecursionError) as exc:
            raise MalformedEncoding(f"Invalid credential JSON: {exc}") from exc
        return self.handle_credentials(from_webauthn_json(parsed))

    def download_cbor(self) -> FieldExport:
        return FieldExport("output.cbor", encode_credentials_cbor(self._require_credentials()), "application/cbor")

    def download_json(self) -> FieldExport:
        return FieldExport("output.json", encode_credentials_json(self._require_credentials()), "application/json")

    def export_field(self, key: str, action: Any) -> FieldExport:
        self._require_credentials()
        return export_field(self.last_credentials_parsed, key, action)

    def last_raw_id_hex(self) -> str:
        """Hex of the last ``rawId``, ready to be reused in an allow list."""

        return bin_to_hex(find_key(self._require_credentials(), "rawId"))

    def _require_credentials(self) -> dict:
        if self.last_credentials is None:
            raise RuntimeError("No credential result has been handled yet.")
        return self.last_credentials
