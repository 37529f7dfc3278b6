#!/usr/bin/env python
from __future__ import annotations

import argparse
import logging
from pathlib import Path

from dissect.rpm.exceptions import Error
from dissect.rpm.package import Package
from dissect.rpm.signature import RSASigner
from dissect.rpm.tools.utils import (
    catch_sigpipe,
    configure_generic_arguments,
    process_generic_arguments,
)

log = logging.getLogger(__name__)
logging.lastResort = None
logging.raiseExceptions = False


@catch_sigpipe
def main() -> int:
    help_formatter = argparse.ArgumentDefaultsHelpFormatter
    parser = argparse.ArgumentParser(
        description="rpm-sign",
        fromfile_prefix_chars="@",
        formatter_class=help_formatter,
    )
    parser.add_argument("package", metavar="PACKAGE", type=Path, help="RPM package to sign")
    parser.add_argument("-k", "--key", type=Path, help="RSA private key (PEM or DER), defaults to SIGNING_KEY")
    parser.add_argument("-p", "--passphrase", help="passphrase of the private key")
    parser.add_argument("-w", "--write", type=Path, help="output file, defaults to overwriting PACKAGE")
    configure_generic_arguments(parser)

    args = parser.parse_args()
    config = process_generic_arguments(args)

    key = args.key or config.SIGNING_KEY
    if not key:
        parser.error("no signing key given and no SIGNING_KEY configured")

    try:
        signer = RSASigner.load_from(Path(key), args.passphrase)

        with args.package.open("rb") as fh:
            package = Package.parse(fh)

        package.sign(signer)
    except (Error, OSError) as e:
        log.error("Unable to sign %s: %s", args.package, e)  # noqa: TRY400
        log.debug("", exc_info=e)
        return 1

    # The package is completely in memory, so the input can safely be overwritten
    with (args.write or args.package).open("wb") as fh:
        package.write(fh)

    log.info("Signed %s", args.package)
    return 0


if __name__ == "__main__":
    main()
