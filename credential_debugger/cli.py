"""Command line entry point for inspecting exported credential results."""
from __future__ import annotations

import argparse
import logging
import os
import sys
from typing import NoReturn, Optional, Sequence

from .config import OUTPUT_DIR, configure_logging
from .decoder.encode import FieldExport
from .errors import DecodeError, FieldNotFound, UnsupportedExportAction
from .session import CredentialSession
from .transform import ExportAction

logger = logging.getLogger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="credential-debugger",
        description="Decode, prettify and re-export WebAuthn credential results.",
    )
    parser.add_argument("--log-level", default=None, help="Override the configured log level.")
    commands = parser.add_subparsers(dest="command", required=True)

    inspect = commands.add_parser("inspect", help="Print the prettified credential result.")
    inspect.add_argument("input", help="CBOR export or WebAuthn JSON credential file.")
    inspect.add_argument("--plain", action="store_true", help="Do not mark export actions.")

    for name, help_text in (
        ("export-cbor", "Re-encode the credential result as CBOR."),
        ("export-json", "Write the prettified credential result as JSON."),
    ):
        command = commands.add_parser(name, help=help_text)
        command.add_argument("input")
        command.add_argument("-o", "--output", default=None)

    field = commands.add_parser("export-field", help="Export a single decoded field.")
    field.add_argument("input")
    field.add_argument("key", help="Field name, for example x5c or credentialPublicKey.")
    field.add_argument(
        "action",
        help="Export action: " + ", ".join(repr(action.value) for action in ExportAction),
    )
    field.add_argument("-o", "--output", default=None)

    return parser


def _load_session(path: str) -> CredentialSession:
    with open(path, "rb") as handle:
        data = handle.read()

    session = CredentialSession()
    if data.lstrip()[:1] == b"{":
        session.load_json(data.decode("utf-8"))
    else:
        session.load_cbor(data)
    return session


def _write_export(export: FieldExport, output: Optional[str]) -> str:
    target = output or os.path.join(OUTPUT_DIR, export.filename)
    with open(target, "wb") as handle:
        handle.write(export.content)
    logger.info("Wrote %s (%d bytes).", target, len(export.content))
    return target


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = _build_parser().parse_args(argv)
    configure_logging(args.log_level)

    try:
        session = _load_session(args.input)
        if args.command == "inspect":
            print(session.render(annotate=not args.plain))
        elif args.command == "export-cbor":
            _write_export(session.download_cbor(), args.output)
        elif args.command == "export-json":
            _write_export(session.download_json(), args.output)
        else:
            _write_export(session.export_field(args.key, args.action), args.output)
    except OSError as exc:
        logger.error("File error: %s", exc)
        return 1
    except FieldNotFound as exc:
        logger.error("Field %s is not present in the credential result.", exc.args[0])
        return 1
    except (DecodeError, UnsupportedExportAction, ValueError) as exc:
        logger.error("%s", exc)
        return 1
    return 0


def run() -> NoReturn:
    sys.exit(main())


if __name__ == "__main__":  # pragma: no cover - CLI execution
    run()
