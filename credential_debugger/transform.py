"""Keyed recursive transformation of credential trees.

A registry maps well known credential field names to a handler and to the
export actions that make sense for the rendered field. :func:`transform`
rebuilds a tree, replacing the value of every registered key with the
handler output and descending into mappings and sequences.
"""
from __future__ import annotations

import enum
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Callable, Iterable, Mapping, Tuple

from .cose import cose_to_jwk
from .decoder.decode import (
    parse_attestation_object,
    parse_authenticator_data,
    parse_client_data_json,
)
from .errors import UnsupportedExportAction
from .utils import bin_to_hex, object_slice

__all__ = [
    "ExportAction",
    "PARSE_TRANSFORMATIONS",
    "PRETTIFY_TRANSFORMATIONS",
    "TransformEntry",
    "select_transformations",
    "transform",
    "x5c_to_hex",
]


class ExportAction(str, enum.Enum):
    """Export affordances offered for a rendered field."""

    USE = "Use"
    DOWNLOAD = "Download"
    VIEW = "View"
    DOWNLOAD_PEM = "Download PEM"
    DOWNLOAD_COSE = "Download COSE"
    DOWNLOAD_JWK = "Download JWK"

    @classmethod
    def parse(cls, label: Any) -> "ExportAction":
        """Resolve a label such as ``"download pem"`` or ``"download-jwk"``."""

        if isinstance(label, cls):
            return label
        normalised = " ".join(str(label).replace("-", " ").replace("_", " ").split()).lower()
        for action in cls:
            if action.value.lower() == normalised or action.name.lower() == normalised.replace(" ", "_"):
                return action
        raise UnsupportedExportAction(f"Unknown export action: {label!r}")


@dataclass(frozen=True)
class TransformEntry:
    name: str
    handler: Callable[[Any], Any]
    actions: Tuple[ExportAction, ...] = ()

    def transform(self, value: Any) -> Any:
        return self.handler(value)

    def export_actions(self) -> Tuple[ExportAction, ...]:
        return self.actions


def x5c_to_hex(value: Any) -> Any:
    """Render every DER certificate of a chain as hex."""

    if not isinstance(value, (list, tuple)):
        return value
    return [bin_to_hex(entry) for entry in value]


_ENTRIES = (
    TransformEntry("rawId", bin_to_hex, (ExportAction.USE, ExportAction.DOWNLOAD)),
    TransformEntry("sig", bin_to_hex, (ExportAction.DOWNLOAD,)),
    TransformEntry("signature", bin_to_hex, (ExportAction.DOWNLOAD,)),
    TransformEntry("userHandle", bin_to_hex, (ExportAction.DOWNLOAD,)),
    TransformEntry("x5c", x5c_to_hex, (ExportAction.VIEW, ExportAction.DOWNLOAD_PEM)),
    TransformEntry(
        "credentialPublicKey",
        cose_to_jwk,
        (ExportAction.DOWNLOAD_COSE, ExportAction.DOWNLOAD_JWK, ExportAction.DOWNLOAD_PEM),
    ),
    TransformEntry("authenticatorData", parse_authenticator_data),
    TransformEntry("attestationObject", parse_attestation_object),
    TransformEntry("clientDataJSON", parse_client_data_json),
)

PRETTIFY_TRANSFORMATIONS: Mapping[str, TransformEntry] = MappingProxyType(
    {entry.name: entry for entry in _ENTRIES}
)


def select_transformations(names: Iterable[str]) -> Mapping[str, TransformEntry]:
    """Return a read-only subset of the registry limited to ``names``."""

    return MappingProxyType(object_slice(PRETTIFY_TRANSFORMATIONS, names))


# Decodes the binary carriers only; used for the copy that field exports read.
PARSE_TRANSFORMATIONS = select_transformations(
    ["clientDataJSON", "authenticatorData", "attestationObject"]
)


def transform(tree: Any, transformations: Mapping[str, TransformEntry]) -> Any:
    """Return a rebuilt ``tree`` with registered keys transformed.

    The input is never mutated. Transformed values are descended into only
    when they are mappings, lists or tuples; strings and binary output are
    leaves.
    """

    if isinstance(tree, Mapping):
        result = {}
        for key, value in tree.items():
            entry = transformations.get(key) if isinstance(key, str) else None
            if entry is not None:
                value = entry.transform(value)
            result[key] = transform(value, transformations)
        return result
    if isinstance(tree, list):
        return [transform(item, transformations) for item in tree]
    if isinstance(tree, tuple):
        return tuple(transform(item, transformations) for item in tree)
    return tree
