#!/usr/bin/env python3
"""
Decode a Windows product key from a DigitalProductId record.

Sources (first match wins):
  --hex TEXT        hex bytes or a `reg export` fragment
  --file PATH       binary dump or text export of the value
  --registry        HKLM\\SOFTWARE\\Microsoft\\Windows NT\\CurrentVersion (Windows only)
  (none)            `record_file` from settings, then the registry

When no record is available the masked partial key (--partial-key or the
`partial_key` setting) is printed instead.
--save stores the given file, value name and partial key in settings.

Exit codes: 0 ok, 2 invalid record or unreadable source, 3 nothing to show.
"""

import argparse
import json
import sys
from pathlib import Path

from _cli_logging import setup_cli_logging

from winkey.key_sources import (
    SOURCE_UNAVAILABLE,
    RecordSourceError,
    load_record,
    resolve_display_key,
)
from winkey.product_key import InvalidRecordError
from winkey.settings_store import load_settings, save_settings

EXIT_OK = 0
EXIT_INVALID = 2
EXIT_UNAVAILABLE = 3


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Decode a Windows product key from a DigitalProductId record")
    src = parser.add_mutually_exclusive_group()
    src.add_argument("--file", help="Path to a DigitalProductId dump (.bin) or registry export (.reg/.txt)")
    src.add_argument("--hex", dest="hex_text", help="Record as hex text")
    src.add_argument("--registry", action="store_true", help="Read the record from the local registry")
    parser.add_argument("--value-name", default=None, help="Registry value name (default from settings)")
    parser.add_argument("--partial-key", default=None, help="Last five symbols reported by the licensing service")
    out = parser.add_mutually_exclusive_group()
    out.add_argument("--raw", action="store_true", help="Print the undivided decoder output")
    out.add_argument("--json", action="store_true", help="Print the result as JSON")
    parser.add_argument("--save", action="store_true", help="Remember --file, --value-name and --partial-key in settings")
    parser.add_argument("--debug", action="store_true", help="Verbose logging")
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)
    settings = load_settings()
    logger = setup_cli_logging(debug=args.debug or bool(settings.get("debug")))
    if args.value_name:
        settings["registry_value"] = args.value_name
    partial_key = args.partial_key if args.partial_key is not None else settings.get("partial_key")

    try:
        record = load_record(settings, file_path=args.file, hex_text=args.hex_text, use_registry=args.registry)
        resolution = resolve_display_key(record, partial_key)
    except (RecordSourceError, InvalidRecordError) as e:
        logger.error("Cannot decode product key: %s", e)
        return EXIT_INVALID

    if resolution.source == SOURCE_UNAVAILABLE:
        logger.error("No product id record and no partial key available")
        return EXIT_UNAVAILABLE

    logger.info("Product key source: %s", resolution.source)
    if args.save:
        updates = {}
        if args.file:
            updates["record_file"] = str(Path(args.file).resolve())
        if args.value_name:
            updates["registry_value"] = args.value_name
        if args.partial_key is not None:
            updates["partial_key"] = args.partial_key.strip().upper()
        if updates and not save_settings(updates):
            logger.warning("Could not save settings")
    if args.json:
        print(json.dumps(resolution.as_dict()))
    elif args.raw and resolution.digits:
        print(resolution.digits)
    else:
        print(resolution.key)
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
