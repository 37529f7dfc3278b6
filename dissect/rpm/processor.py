from __future__ import annotations

import hashlib
from typing import TYPE_CHECKING, BinaryIO, Protocol, runtime_checkable

from dissect.rpm.exceptions import ProcessError
from dissect.rpm.helpers.logging import get_logger
from dissect.rpm.package import check_digests

if TYPE_CHECKING:
    from typing_extensions import Self

    from dissect.rpm.package import PackageMetadata

log = get_logger(__name__)

BUFFER_SIZE = 32768


@runtime_checkable
class ProcessVerifier(Protocol):
    """A writable sink that, once all input has been written to it, can check what it received."""

    def write(self, data: bytes) -> int | None: ...

    def verify(self, metadata: PackageMetadata) -> None: ...


class MultiWriter:
    """Fan out every write to all verifiers first, then to all destinations.

    Each chunk is forwarded as-is. A verifier has to accept the whole chunk before any destination sees it. The
    reported count is the number of bytes every destination accepted, the minimum over all of them.
    """

    def __init__(self):
        self.verifiers: list[ProcessVerifier] = []
        self.destinations: list[BinaryIO] = []

    def write(self, data: bytes) -> int:
        size = len(data)

        for verifier in self.verifiers:
            written = verifier.write(data)
            if written is not None and written != size:
                raise ProcessError(f"Verifier {verifier!r} accepted {written} of {size} bytes")

        accepted = size
        for destination in self.destinations:
            written = destination.write(data)
            if written is not None:
                accepted = min(accepted, written)

        return accepted

    def flush(self) -> None:
        for verifier in self.verifiers:
            if hasattr(verifier, "flush"):
                verifier.flush()
        for destination in self.destinations:
            if not destination.closed:
                destination.flush()

    def verify(self, metadata: PackageMetadata) -> None:
        for verifier in self.verifiers:
            verifier.verify(metadata)


class Processor:
    """Write parsed package metadata and the remaining package body to several sinks in a single pass.

    This allows a package to be parsed, verified and persisted from a non-seekable stream::

        metadata = PackageMetadata.parse(fh)
        Processor().add_verifier(DigestVerifier(metadata)).add_destination(out).process(metadata, fh)

    The body is read in chunks of ``buffer_size`` bytes, each chunk is passed on to the sinks unchanged.
    """

    def __init__(self, buffer_size: int = BUFFER_SIZE):
        self.buffer_size = buffer_size
        self.writer = MultiWriter()

    def add_verifier(self, verifier: ProcessVerifier) -> Self:
        self.writer.verifiers.append(verifier)
        return self

    def add_destination(self, destination: BinaryIO) -> Self:
        self.writer.destinations.append(destination)
        return self

    def process(self, metadata: PackageMetadata, body: BinaryIO) -> int:
        """Write ``metadata`` and the rest of ``body`` to the sinks, then run the verifiers.

        Returns the number of bytes processed.
        """
        total = self._write(metadata.dumps())

        buf = body.read(self.buffer_size)
        while buf:
            total += self._write(buf)
            buf = body.read(self.buffer_size)

        self.writer.flush()
        log.debug("Processed %d bytes to %d destinations", total, len(self.writer.destinations))

        self.writer.verify(metadata)
        log.info("Processed package %r, %d verifiers passed", metadata.lead.name, len(self.writer.verifiers))
        return total

    def _write(self, data: bytes) -> int:
        written = self.writer.write(data)
        if written != len(data):
            raise ProcessError(f"Destinations accepted {written} of {len(data)} bytes")
        return written


class DigestVerifier:
    """Digest a streamed package and check the result against its signature header.

    The stream is expected to start with the lead and the signature header, as written by :class:`Processor`. The
    main header starts at ``metadata.header_offset``.
    """

    def __init__(self, metadata: PackageMetadata):
        self.header_offset = metadata.header_offset
        self.header_size = metadata.header.size

        self.md5 = hashlib.md5()
        self.sha1 = hashlib.sha1()
        self.offset = 0

    def __repr__(self) -> str:
        return f"<DigestVerifier offset={self.offset}>"

    def write(self, data: bytes) -> int:
        start = self.offset
        end = start + len(data)
        self.offset = end

        signed = max(self.header_offset - start, 0)
        if signed < len(data):
            self.md5.update(data[signed:])

        header_end = self.header_offset + self.header_size
        if start < header_end and end > self.header_offset:
            self.sha1.update(data[signed : header_end - start])

        return len(data)

    def flush(self) -> None:
        pass

    def verify(self, metadata: PackageMetadata) -> None:
        size = self.offset - self.header_offset
        check_digests(metadata.signature, size, self.md5.digest(), self.sha1.hexdigest())
        log.debug("Digests of %d bytes match the signature header", size)
