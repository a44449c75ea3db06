"""Tree helpers shared by the decoders, transformer and exporters."""
from __future__ import annotations

import binascii
import copy
import json
import logging
from typing import Any, Iterable, Mapping, Optional

from fido2.utils import ByteBuffer, websafe_decode

from .config import JSON_INDENT
from .errors import FieldNotFound

__all__ = [
    "BINARY_FIELDS",
    "bin_to_hex",
    "coerce_bytes",
    "deep_clone",
    "find_key",
    "from_webauthn_json",
    "hex_to_bytes",
    "is_binary",
    "object_slice",
    "pretty_stringify",
    "stringify_mapping_keys",
]

logger = logging.getLogger(__name__)

# Credential fields that carry raw binary payloads in the browser result.
BINARY_FIELDS = frozenset(
    {
        "rawId",
        "clientDataJSON",
        "attestationObject",
        "authenticatorData",
        "signature",
        "userHandle",
    }
)


def is_binary(value: Any) -> bool:
    return isinstance(value, (bytes, bytearray, memoryview, ByteBuffer))


def coerce_bytes(value: Any) -> Optional[bytes]:
    """Return ``value`` as ``bytes`` when it is a binary payload."""

    if isinstance(value, ByteBuffer):
        return value.getvalue()
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value)
    return None


def bin_to_hex(value: Any) -> Any:
    """Render a binary value as lowercase hex, leaving anything else as is."""

    data = coerce_bytes(value)
    if data is None:
        return value
    return data.hex()


def hex_to_bytes(value: Any) -> Optional[bytes]:
    """Accept raw bytes or a hex string and return the bytes it denotes."""

    data = coerce_bytes(value)
    if data is not None:
        return data
    if isinstance(value, str):
        cleaned = "".join(value.split()).replace(":", "")
        try:
            return bytes.fromhex(cleaned)
        except ValueError:
            return None
    return None


def deep_clone(value: Any) -> Any:
    """Copy a credential tree, normalising binary payloads to ``bytes``.

    ``memoryview`` and ``ByteBuffer`` values cannot be deep-copied directly,
    so binary leaves become immutable ``bytes`` in the clone.
    """

    if is_binary(value):
        return coerce_bytes(value)
    if isinstance(value, Mapping):
        return {key: deep_clone(item) for key, item in value.items()}
    if isinstance(value, list):
        return [deep_clone(item) for item in value]
    if isinstance(value, tuple):
        return tuple(deep_clone(item) for item in value)
    return copy.deepcopy(value)


def object_slice(source: Mapping[str, Any], keys: Iterable[str]) -> dict:
    """Return a new mapping with only the listed ``keys`` of ``source``."""

    return {key: source[key] for key in keys if key in source}


def find_key(tree: Any, key: str) -> Any:
    """Return the value of the first ``key`` found depth-first in ``tree``."""

    found, value = _find_key(tree, key)
    if not found:
        raise FieldNotFound(key)
    return value


def _find_key(tree: Any, key: str):
    if isinstance(tree, Mapping):
        if key in tree:
            return True, tree[key]
        children: Iterable[Any] = tree.values()
    elif isinstance(tree, (list, tuple)):
        children = tree
    else:
        return False, None

    for child in children:
        found, value = _find_key(child, key)
        if found:
            return True, value
    return False, None


def stringify_mapping_keys(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {str(key): stringify_mapping_keys(val) for key, val in value.items()}
    if isinstance(value, (list, tuple)):
        return [stringify_mapping_keys(item) for item in value]
    return value


def _json_default(value: Any) -> Any:
    data = coerce_bytes(value)
    if data is not None:
        return data.hex()
    if isinstance(value, (set, frozenset)):
        return list(value)
    return str(value)


def pretty_stringify(value: Any, indent: Optional[int] = None) -> str:
    """Render ``value`` as indented JSON; leftover binary becomes hex."""

    return json.dumps(
        stringify_mapping_keys(value),
        indent=JSON_INDENT if indent is None else indent,
        ensure_ascii=False,
        default=_json_default,
    )


def _decode_json_binary(key: str, value: Any) -> Any:
    if not isinstance(value, str):
        return value
    try:
        return websafe_decode(value)
    except (ValueError, binascii.Error) as exc:
        logger.warning("Field %s is not valid base64url, keeping text: %s", key, exc)
        return value


def from_webauthn_json(value: Any) -> Any:
    """Convert a WebAuthn JSON credential into the binary credential tree.

    Fields listed in :data:`BINARY_FIELDS` are base64url decoded at any depth;
    everything else is copied unchanged.
    """

    if isinstance(value, Mapping):
        result = {}
        for key, item in value.items():
            if key in BINARY_FIELDS:
                result[key] = _decode_json_binary(key, item)
            else:
                result[key] = from_webauthn_json(item)
        return result
    if isinstance(value, list):
        return [from_webauthn_json(item) for item in value]
    return value
