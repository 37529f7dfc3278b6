#!/usr/bin/env python
from __future__ import annotations

import argparse
import logging
from pathlib import Path

from dissect.rpm.exceptions import Error
from dissect.rpm.package import Package, PackageMetadata
from dissect.rpm.processor import DigestVerifier, Processor
from dissect.rpm.signature import RSAVerifier
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
        description="rpm-verify",
        fromfile_prefix_chars="@",
        formatter_class=help_formatter,
    )
    parser.add_argument("package", metavar="PACKAGE", type=Path, help="RPM package to verify")
    parser.add_argument("-k", "--key", type=Path, help="RSA public key (PEM or DER), defaults to VERIFYING_KEY")
    parser.add_argument("-w", "--write", type=Path, help="copy the package to this file while verifying")
    configure_generic_arguments(parser)

    args = parser.parse_args()
    config = process_generic_arguments(args)

    # The copy is opened for writing while the package is still being read
    if args.write and args.write.resolve() == args.package.resolve():
        parser.error("argument -w/--write: must not be the package that is verified")

    try:
        verify_digests(args.package, args.write, config.BUFFER_SIZE)

        key = args.key or config.VERIFYING_KEY
        if key:
            verify_signatures(args.package, Path(key))
    except (Error, OSError) as e:
        log.error("Verification of %s failed: %s", args.package, e)  # noqa: TRY400
        log.debug("", exc_info=e)
        if args.write:
            args.write.unlink(missing_ok=True)
        return 1

    print(f"{args.package}: OK")
    return 0


def verify_digests(path: Path, output: Path | None, buffer_size: int) -> None:
    """Stream the package through a digest verifier, optionally copying it to ``output`` at the same time."""
    with path.open("rb") as fh:
        metadata = PackageMetadata.parse(fh)
        processor = Processor(buffer_size).add_verifier(DigestVerifier(metadata))

        if output is None:
            processor.process(metadata, fh)
            return

        with output.open("wb") as out:
            processor.add_destination(out).process(metadata, fh)


def verify_signatures(path: Path, key: Path) -> None:
    verifier = RSAVerifier.load_from(key)
    with path.open("rb") as fh:
        package = Package.parse(fh)
    package.verify_signature(verifier)


if __name__ == "__main__":
    main()
