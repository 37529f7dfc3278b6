#!/usr/bin/env python
from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any

from dissect.rpm.exceptions import Error
from dissect.rpm.package import PackageMetadata
from dissect.rpm.tags import TagType
from dissect.rpm.tools.utils import (
    catch_sigpipe,
    configure_generic_arguments,
    process_generic_arguments,
)

if TYPE_CHECKING:
    from dissect.rpm.header import Header, IndexEntry

log = logging.getLogger(__name__)
logging.lastResort = None
logging.raiseExceptions = False

PREVIEW_SIZE = 64


@catch_sigpipe
def main() -> int:
    help_formatter = argparse.ArgumentDefaultsHelpFormatter
    parser = argparse.ArgumentParser(
        description="rpm-info",
        fromfile_prefix_chars="@",
        formatter_class=help_formatter,
    )
    parser.add_argument("package", metavar="PACKAGE", type=Path, help="RPM package to display info from")
    parser.add_argument("-j", "--json", action="store_true", help="output as pretty json")
    configure_generic_arguments(parser)

    args = parser.parse_args()
    process_generic_arguments(args)

    try:
        with args.package.open("rb") as fh:
            metadata = PackageMetadata.parse(fh)
    except (Error, OSError) as e:
        log.error("Unable to parse %s: %s", args.package, e)  # noqa: TRY400
        log.debug("", exc_info=e)
        return 1

    if args.json:
        print(json.dumps(get_package_info(metadata), indent=4, default=str))
    else:
        print_package_info(metadata)

    return 0


def get_package_info(metadata: PackageMetadata) -> dict[str, Any]:
    lead = metadata.lead
    return {
        "lead": {
            "name": lead.name,
            "version": f"{lead.major}.{lead.minor}",
            "type": "source" if lead.is_source else "binary",
            "archnum": lead.archnum,
            "osnum": lead.osnum,
        },
        "signature": get_header_info(metadata.signature),
        "header": get_header_info(metadata.header),
    }


def get_header_info(header: Header) -> list[dict[str, Any]]:
    return [
        {
            "tag": header.domain.tag_name(entry.tag),
            "id": int(entry.tag),
            "type": entry.type.name,
            "count": entry.count,
            "value": preview(entry),
        }
        for entry in sorted(header, key=lambda entry: int(entry.tag))
    ]


def preview(entry: IndexEntry) -> Any:
    if entry.type in (TagType.BIN, TagType.CHAR):
        value = entry.value[:PREVIEW_SIZE].hex()
        return value + "..." if len(entry.value) > PREVIEW_SIZE else value
    if isinstance(entry.value, str) and len(entry.value) > PREVIEW_SIZE:
        return entry.value[:PREVIEW_SIZE] + "..."
    return entry.value


def print_package_info(metadata: PackageMetadata) -> None:
    info = get_package_info(metadata)

    for name, value in info["lead"].items():
        print(f"{name.capitalize():14s} : {value}")

    for section in ("signature", "header"):
        print(f"\n{section.capitalize()} header")
        for entry in info[section]:
            print(f"- {entry['tag']:24s} {entry['type']:12s} [{entry['count']}] {entry['value']}")


if __name__ == "__main__":
    main()
