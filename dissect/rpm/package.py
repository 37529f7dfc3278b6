from __future__ import annotations

from io import BytesIO
from typing import TYPE_CHECKING, BinaryIO

from dissect.rpm.c_rpm import LEAD_SIZE
from dissect.rpm.cursor import SequentialCursor
from dissect.rpm.exceptions import (
    CryptoError,
    DigestMismatchError,
    HeaderSignatureError,
    PayloadSignatureError,
    SignatureMissingError,
    TagNotFoundError,
)
from dissect.rpm.header import Header
from dissect.rpm.helpers.logging import PackageLogAdapter, get_logger
from dissect.rpm.lead import Lead
from dissect.rpm.signature import compute_digests
from dissect.rpm.tags import HEADER_TAGS, HeaderTag, SignatureTag

if TYPE_CHECKING:
    from typing_extensions import Self

    from dissect.rpm.signature import Signing, Verifying

log = get_logger(__name__)


class PackageMetadata:
    """The lead, signature header and main header of an RPM package, in file order."""

    def __init__(self, lead: Lead, signature: Header, header: Header):
        self.lead = lead
        self.signature = signature
        self.header = header

    def __repr__(self) -> str:
        return f"<PackageMetadata lead={self.lead.name!r} signature={self.signature!r} header={self.header!r}>"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, PackageMetadata):
            return NotImplemented
        return self.lead == other.lead and self.signature == other.signature and self.header == other.header

    @classmethod
    def parse(cls, fh: BinaryIO) -> Self:
        lead = Lead.parse(fh)
        signature = Header.parse_signature(fh)
        header = Header.parse(fh, HEADER_TAGS)
        return cls(lead, signature, header)

    def write(self, fh: BinaryIO) -> int:
        written = self.lead.write(fh)
        written += self.signature.write_signature(fh)
        written += self.header.write(fh)
        return written

    def dumps(self) -> bytes:
        buf = BytesIO()
        self.write(buf)
        return buf.getvalue()

    @property
    def header_offset(self) -> int:
        """The offset of the main header within the package."""
        return LEAD_SIZE + self.signature.signature_size

    @property
    def name(self) -> str:
        return self.header.get_string(HeaderTag.NAME)

    @property
    def version(self) -> str:
        return self.header.get_string(HeaderTag.VERSION)

    @property
    def release(self) -> str:
        return self.header.get_string(HeaderTag.RELEASE)

    @property
    def epoch(self) -> int:
        # A package without an epoch is treated as epoch 0
        if HeaderTag.EPOCH not in self.header:
            return 0
        return self.header.get_int32(HeaderTag.EPOCH)

    @property
    def arch(self) -> str:
        return self.header.get_string(HeaderTag.ARCH)

    @property
    def summary(self) -> str:
        return self.header.get_string(HeaderTag.SUMMARY)

    @property
    def license(self) -> str:
        return self.header.get_string(HeaderTag.LICENSE)

    @property
    def payload_format(self) -> str:
        return self.header.get_string(HeaderTag.PAYLOADFORMAT)

    @property
    def payload_compressor(self) -> str:
        return self.header.get_string(HeaderTag.PAYLOADCOMPRESSOR)

    @property
    def nevra(self) -> str:
        """Return the package identity as ``name-[epoch:]version-release.arch``."""
        epoch = f"{self.epoch}:" if self.epoch else ""
        return f"{self.name}-{epoch}{self.version}-{self.release}.{self.arch}"


class Package:
    """A complete RPM package: its metadata and the (compressed) payload, which is kept opaque.

    References:
        - https://rpm-software-management.github.io/rpm/manual/format_v4.html
        - https://rpm-software-management.github.io/rpm/manual/signatures_digests.html
    """

    def __init__(self, metadata: PackageMetadata, content: bytes):
        self.metadata = metadata
        self.content = content
        self.log = PackageLogAdapter(log, {"package": metadata.lead.name})

    def __repr__(self) -> str:
        return f"<Package name={self.metadata.lead.name!r} content={len(self.content)} bytes>"

    @classmethod
    def parse(cls, fh: BinaryIO) -> Self:
        metadata = PackageMetadata.parse(fh)
        return cls(metadata, fh.read())

    def write(self, fh: BinaryIO) -> int:
        written = self.metadata.write(fh)
        written += fh.write(self.content)
        return written

    def dumps(self) -> bytes:
        buf = BytesIO()
        self.write(buf)
        return buf.getvalue()

    def sign(self, signer: Signing) -> None:
        """Sign the package, replacing the signature header.

        The main header is serialized anew and digested together with the payload. The signer is invoked twice, once
        for the header alone and once for the header and payload. The signature header is only replaced when every
        step succeeded.
        """
        header_bytes = self.metadata.header.dumps()
        cursor = SequentialCursor([header_bytes, self.content])

        md5, sha1 = compute_digests(cursor, len(header_bytes))
        self.log.debug("Digests: md5=%s sha1=%s", md5.hex(), sha1)

        cursor.seek(0)

        signature_header_only = signer.sign(header_bytes)
        signature_header_and_payload = signer.sign(cursor)

        self.metadata.signature = Header.new_signature_header(
            len(cursor),
            md5,
            sha1,
            signature_header_only,
            signature_header_and_payload,
        )
        self.log.info("Signed package (%d bytes header and payload)", len(cursor))

    def verify_signature(self, verifier: Verifying) -> None:
        """Verify both signatures of the package.

        Raises:
            SignatureMissingError: If either signature is absent from the signature header.
            HeaderSignatureError: If the signature over the main header does not verify.
            PayloadSignatureError: If the signature over the main header and payload does not verify.
        """
        header_bytes = self.metadata.header.dumps()

        signature_header_only = self._get_signature(SignatureTag.RSA)
        signature_header_and_payload = self._get_signature(SignatureTag.PGP)

        try:
            verifier.verify(header_bytes, signature_header_only)
        except CryptoError as e:
            raise HeaderSignatureError("Signature over the header does not verify", cause=e)

        cursor = SequentialCursor([header_bytes, self.content])
        try:
            verifier.verify(cursor, signature_header_and_payload)
        except CryptoError as e:
            raise PayloadSignatureError("Signature over the header and payload does not verify", cause=e)

        self.log.info("Verified header and payload signatures")

    def _get_signature(self, tag: SignatureTag) -> bytes:
        try:
            return self.metadata.signature.get_binary(tag)
        except TagNotFoundError as e:
            raise SignatureMissingError(f"Package has no {tag.name} signature", cause=e)

    def verify_digests(self) -> None:
        """Verify the size and digests recorded in the signature header, without checking any signature."""
        header_bytes = self.metadata.header.dumps()
        cursor = SequentialCursor([header_bytes, self.content])
        md5, sha1 = compute_digests(cursor, len(header_bytes))
        check_digests(self.metadata.signature, len(cursor), md5, sha1)
        self.log.info("Verified digests")


def check_digests(signature: Header, size: int, md5: bytes, sha1: str) -> None:
    """Compare computed values against the size and digest entries of a signature header.

    Entries that are absent are skipped, but at least one digest has to be present.
    """
    checked = 0

    for tag, getter in ((SignatureTag.SIZE, signature.get_int32), (SignatureTag.LONGSIZE, signature.get_int64)):
        if tag in signature and getter(tag) != size:
            raise DigestMismatchError(f"Size mismatch: expected {getter(tag)}, got {size}")

    if SignatureTag.MD5 in signature:
        expected = signature.get_binary(SignatureTag.MD5)
        if expected != md5:
            raise DigestMismatchError(f"MD5 digest mismatch: expected {expected.hex()}, got {md5.hex()}")
        checked += 1

    if SignatureTag.SHA1 in signature:
        expected = signature.get_string(SignatureTag.SHA1)
        if expected != sha1:
            raise DigestMismatchError(f"SHA1 digest mismatch: expected {expected}, got {sha1}")
        checked += 1

    if not checked:
        raise SignatureMissingError("Signature header contains no MD5 or SHA1 digest")
