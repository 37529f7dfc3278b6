from __future__ import annotations

import gc
from io import BytesIO

import pytest

from dissect.rpm.exceptions import DigestMismatchError, ProcessError, SignatureMissingError
from dissect.rpm.package import Package, PackageMetadata
from dissect.rpm.processor import DigestVerifier, MultiWriter, Processor, ProcessVerifier
from dissect.rpm.tags import HeaderTag, SignatureTag
from tests._utils import PAYLOAD


class RecordingVerifier:
    def __init__(self, name: str, events: list, fail: bool = False):
        self.name = name
        self.events = events
        self.fail = fail
        self.data = b""

    def write(self, data: bytes) -> int:
        self.events.append((self.name, len(data)))
        self.data += data
        return len(data)

    def verify(self, metadata: PackageMetadata) -> None:
        self.events.append((self.name, "verify"))
        if self.fail:
            raise DigestMismatchError(f"{self.name} failed")


class RecordingDestination(BytesIO):
    def __init__(self, name: str, events: list):
        super().__init__()
        self.name = name
        self.events = events

    def write(self, data: bytes) -> int:
        self.events.append((self.name, len(data)))
        return super().write(data)


class ShortDestination(BytesIO):
    def write(self, data: bytes) -> int:
        super().write(data[:1])
        return 1


def parse_metadata(data: bytes) -> tuple[PackageMetadata, BytesIO]:
    fh = BytesIO(data)
    return PackageMetadata.parse(fh), fh


def test_processor_copy(package_bytes: bytes) -> None:
    metadata, body = parse_metadata(package_bytes)
    first = BytesIO()
    second = BytesIO()

    total = Processor().add_destination(first).add_destination(second).process(metadata, body)

    assert total == len(package_bytes)
    assert first.getvalue() == package_bytes
    assert second.getvalue() == package_bytes


def test_processor_order(package_bytes: bytes) -> None:
    events = []
    metadata, body = parse_metadata(package_bytes)
    verifier = RecordingVerifier("verifier", events)
    destination = RecordingDestination("destination", events)

    Processor(buffer_size=4096).add_destination(destination).add_verifier(verifier).process(metadata, body)

    writes = [event for event in events if event[1] != "verify"]
    # Every chunk reaches the verifier before the destination, unchanged
    assert writes[0::2] == [("verifier", size) for _, size in writes[1::2]]
    assert writes[1::2] == [("destination", size) for _, size in writes[0::2]]
    assert writes[0] == ("verifier", len(package_bytes) - len(PAYLOAD))
    assert all(size <= 4096 for _, size in writes[2:])
    assert events[-1] == ("verifier", "verify")
    assert verifier.data == package_bytes


def test_processor_verifier_failure(package_bytes: bytes) -> None:
    events = []
    metadata, body = parse_metadata(package_bytes)
    processor = (
        Processor()
        .add_verifier(RecordingVerifier("first", events))
        .add_verifier(RecordingVerifier("second", events, fail=True))
        .add_verifier(RecordingVerifier("third", events))
    )

    with pytest.raises(DigestMismatchError, match="second"):
        processor.process(metadata, body)

    verifications = [name for name, event in events if event == "verify"]
    assert verifications == ["first", "second"]


def test_processor_short_write(package_bytes: bytes) -> None:
    metadata, body = parse_metadata(package_bytes)
    processor = Processor().add_destination(BytesIO()).add_destination(ShortDestination())

    with pytest.raises(ProcessError):
        processor.process(metadata, body)


def test_multi_writer_min_count() -> None:
    writer = MultiWriter()
    full = BytesIO()
    short = ShortDestination()
    writer.destinations.extend([full, short])

    assert writer.write(b"abcdef") == 1
    assert full.getvalue() == b"abcdef"
    assert short.getvalue() == b"a"


def test_multi_writer_short_verifier() -> None:
    class ShortVerifier(RecordingVerifier):
        def write(self, data: bytes) -> int:
            return 0

    writer = MultiWriter()
    destination = BytesIO()
    writer.verifiers.append(ShortVerifier("short", []))
    writer.destinations.append(destination)

    with pytest.raises(ProcessError):
        writer.write(b"data")

    # The destination never saw the rejected chunk
    assert destination.getvalue() == b""


def test_multi_writer_no_sinks() -> None:
    writer = MultiWriter()
    assert writer.write(b"data") == 4


def test_digest_verifier(package_bytes: bytes) -> None:
    metadata, body = parse_metadata(package_bytes)
    verifier = DigestVerifier(metadata)
    assert isinstance(verifier, ProcessVerifier)

    Processor(buffer_size=1).add_verifier(verifier).process(metadata, body)


@pytest.mark.parametrize("buffer_size", [1, 7, 4096, 1 << 20])
def test_digest_verifier_tampered(package_bytes: bytes, buffer_size: int) -> None:
    metadata, body = parse_metadata(package_bytes[:-10] + b"\x00" * 10)
    destination = BytesIO()
    processor = Processor(buffer_size).add_verifier(DigestVerifier(metadata))

    with pytest.raises(DigestMismatchError):
        processor.add_destination(destination).process(metadata, body)


def test_digest_verifier_tampered_header(package_bytes: bytes) -> None:
    metadata, body = parse_metadata(package_bytes)
    # Changing the header changes both its size and its digests
    metadata.header.remove_entry(HeaderTag.LONGSIZE)

    with pytest.raises(DigestMismatchError):
        Processor().add_verifier(DigestVerifier(metadata)).process(metadata, body)


def test_digest_verifier_signed_package(package: Package, signer) -> None:
    package.sign(signer)
    metadata, body = parse_metadata(package.dumps())

    Processor().add_verifier(DigestVerifier(metadata)).process(metadata, body)


def test_digest_verifier_without_digests(package: Package) -> None:
    package.metadata.signature.remove_entry(SignatureTag.MD5)
    package.metadata.signature.remove_entry(SignatureTag.SHA1)
    metadata, body = parse_metadata(package.dumps())

    with pytest.raises(SignatureMissingError):
        Processor().add_verifier(DigestVerifier(metadata)).process(metadata, body)


def test_processor_flushes_once(package_bytes: bytes) -> None:
    class FlushCountingVerifier(RecordingVerifier):
        flushes = 0

        def flush(self) -> None:
            self.flushes += 1

    metadata, body = parse_metadata(package_bytes)
    verifier = FlushCountingVerifier("verifier", [])
    processor = Processor().add_verifier(verifier)

    processor.process(metadata, body)
    assert verifier.flushes == 1

    # Discarding the processor leaves its sinks alone
    del processor
    gc.collect()
    assert verifier.flushes == 1
