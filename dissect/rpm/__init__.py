from dissect.rpm.cursor import SequentialCursor
from dissect.rpm.exceptions import Error
from dissect.rpm.header import Header, IndexEntry
from dissect.rpm.lead import Lead
from dissect.rpm.package import Package, PackageMetadata
from dissect.rpm.processor import DigestVerifier, Processor
from dissect.rpm.tags import HEADER_TAGS, SIGNATURE_TAGS, HeaderTag, SignatureTag, TagType

__all__ = [
    "HEADER_TAGS",
    "SIGNATURE_TAGS",
    "DigestVerifier",
    "Error",
    "Header",
    "HeaderTag",
    "IndexEntry",
    "Lead",
    "Package",
    "PackageMetadata",
    "Processor",
    "SequentialCursor",
    "SignatureTag",
    "TagType",
]
