from __future__ import annotations

import struct
from dataclasses import dataclass
from io import BytesIO
from typing import TYPE_CHECKING, Any, BinaryIO

from dissect.rpm.c_rpm import (
    INDEX_ENTRY_SIZE,
    INDEX_HEADER_SIZE,
    REGION_TRAILER_SIZE,
    RPM_HEADER_MAGIC,
    c_rpm,
)
from dissect.rpm.exceptions import FormatError, TagNotFoundError, TypeMismatchError
from dissect.rpm.helpers.logging import get_logger
from dissect.rpm.tags import (
    HEADER_TAGS,
    INTEGER_TYPES,
    SIGNATURE_TAGS,
    STRING_TYPES,
    HeaderTag,
    SignatureTag,
    Tag,
    TagDomain,
    TagType,
)

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator

    from typing_extensions import Self

log = get_logger(__name__)

INTEGER_FORMATS = {
    TagType.INT8: "B",
    TagType.INT16: "H",
    TagType.INT32: "I",
    TagType.INT64: "Q",
}

REGION_TAGS = (HeaderTag.HEADERIMAGE, HeaderTag.HEADERSIGNATURES, HeaderTag.HEADERIMMUTABLE)

MD5_SIZE = 16
SHA1_HEX_SIZE = 40


@dataclass
class IndexEntry:
    """A single header entry: the tag, its value type and the decoded value.

    The value representation depends on the type:

    - ``NULL``: ``None``
    - ``CHAR``, ``BIN``: ``bytes``
    - ``INT8``, ``INT16``, ``INT32``, ``INT64``: ``list[int]``
    - ``STRING``: ``str``
    - ``STRING_ARRAY``, ``I18NSTRING``: ``list[str]``

    Store offsets are not part of the entry, they are derived from the layout every time the header is written.
    """

    tag: Tag
    type: TagType
    value: Any

    def __post_init__(self) -> None:
        self.type = TagType(self.type)
        self.value = _check_value(self.type, self.value)

    @property
    def count(self) -> int:
        if self.type == TagType.NULL:
            return 1
        if self.type == TagType.STRING:
            return 1
        return len(self.value)

    def dumps(self) -> bytes:
        """Return the store representation of the value, without alignment padding."""
        if self.type == TagType.NULL:
            return b""

        if self.type in (TagType.CHAR, TagType.BIN):
            return self.value

        if self.type in INTEGER_TYPES:
            return struct.pack(f">{len(self.value)}{INTEGER_FORMATS[self.type]}", *self.value)

        if self.type == TagType.STRING:
            return self.value.encode(errors="surrogateescape") + b"\x00"

        return b"".join(value.encode(errors="surrogateescape") + b"\x00" for value in self.value)


def _check_value(type: TagType, value: Any) -> Any:
    """Normalize a value to the representation used for ``type``, or raise :class:`TypeMismatchError`."""
    if type == TagType.NULL:
        if value is not None:
            raise TypeMismatchError(f"NULL entries carry no value, got {value!r}")
        return None

    if type in (TagType.CHAR, TagType.BIN):
        if not isinstance(value, (bytes, bytearray, memoryview)):
            raise TypeMismatchError(f"{type.name} entries require bytes, got {value.__class__.__name__}")
        return bytes(value)

    if type in INTEGER_TYPES:
        if isinstance(value, int):
            value = [value]

        if not isinstance(value, (list, tuple)) or not all(isinstance(v, int) for v in value):
            raise TypeMismatchError(f"{type.name} entries require a list of integers, got {value!r}")

        limit = 1 << (8 * type.width)
        if any(v < 0 or v >= limit for v in value):
            raise TypeMismatchError(f"Value out of range for {type.name}: {value!r}")
        return list(value)

    if type == TagType.STRING:
        if not isinstance(value, str):
            raise TypeMismatchError(f"STRING entries require a str, got {value!r}")
        return value

    if isinstance(value, str) or not isinstance(value, (list, tuple)) or not all(isinstance(v, str) for v in value):
        raise TypeMismatchError(f"{type.name} entries require a list of str, got {value!r}")
    return list(value)


def _decode_value(type: TagType, count: int, store: bytes, offset: int) -> Any:
    """Decode ``count`` elements of ``type`` at ``offset``, validating them against the store bounds."""
    if offset < 0 or offset > len(store):
        raise FormatError(f"Entry offset {offset} outside of store (size {len(store)})")

    if offset % type.alignment:
        raise FormatError(f"Misaligned {type.name} entry at offset {offset}")

    if type == TagType.NULL:
        return None

    if type in STRING_TYPES:
        if type == TagType.STRING and count != 1:
            raise FormatError(f"STRING entry with count {count}")

        # Every string takes at least its terminator
        if count > len(store) - offset:
            raise FormatError(f"{type.name} entry with count {count} exceeds store at offset {offset}")

        values = []
        pos = offset
        for _ in range(count):
            end = store.find(b"\x00", pos)
            if end == -1:
                raise FormatError(f"Unterminated {type.name} entry at offset {offset}")
            values.append(store[pos:end].decode(errors="surrogateescape"))
            pos = end + 1

        return values[0] if type == TagType.STRING else values

    size = count * type.width
    if offset + size > len(store):
        raise FormatError(f"{type.name} entry of {size} bytes at offset {offset} exceeds store (size {len(store)})")

    data = store[offset : offset + size]
    if type in INTEGER_TYPES:
        return list(struct.unpack(f">{count}{INTEGER_FORMATS[type]}", data))

    return data


def _region_trailer(tag: int, num_entries: int) -> bytes:
    return c_rpm.IndexEntry(
        tag=tag,
        type=TagType.BIN,
        offset=-(num_entries * INDEX_ENTRY_SIZE),
        count=REGION_TRAILER_SIZE,
    ).dumps()


def _signature_padding(store_size: int) -> int:
    # The intro and index are multiples of 8, so only the store determines the alignment
    return -store_size % 8


class Header:
    """A tag indexed RPM header, consisting of an index of entries and a store holding their values.

    The same codec serves both the signature header and the main header, the :class:`TagDomain` determines which tags
    are recognized. Headers carry a region entry (``HEADERSIGNATURES`` or ``HEADERIMMUTABLE``) whose trailer records the
    size of the index. The region, the entry count and the store size are never kept as state, they are recomputed
    from the entries every time the header is serialized.

    Entries are kept in store order: the order in which they were added, or for a parsed header the order of their
    original offsets. The index itself is always written sorted by tag.

    References:
        - https://rpm-software-management.github.io/rpm/manual/format_v4.html
        - https://github.com/rpm-software-management/rpm/blob/master/lib/header.c
    """

    def __init__(
        self,
        domain: TagDomain = HEADER_TAGS,
        entries: Iterable[IndexEntry] = (),
        region_tag: int | None = -1,
        region_position: int | None = None,
    ):
        self.domain = domain
        self.entries: list[IndexEntry] = []

        # -1 selects the domain default, None creates a header without a region (as found in some legacy packages)
        self.region_tag = domain.region_tag if region_tag == -1 else region_tag
        self.region_trailer_tag = self.region_tag
        self._region_position = region_position
        # Store size as found on disk, which can include slack after the last entry
        self.parsed_store_size: int | None = None

        for entry in entries:
            self._put(entry)

    def __repr__(self) -> str:
        return f"<Header domain={self.domain.name} entries={len(self.entries)} size={self.size}>"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Header):
            return NotImplemented
        return (
            self.domain is other.domain
            and self.region_tag == other.region_tag
            and self._compare_key() == other._compare_key()
        )

    def _compare_key(self) -> list[tuple[int, TagType, Any]]:
        # Store order is a layout detail, zero sized entries do not keep it through a parse
        return sorted(((int(e.tag), e.type, e.value) for e in self.entries), key=lambda item: item[0])

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self) -> Iterator[IndexEntry]:
        return iter(self.entries)

    def __contains__(self, tag: Tag) -> bool:
        return self._find(tag) is not None

    @classmethod
    def from_entries(cls, domain: TagDomain, entries: Iterable[IndexEntry]) -> Self:
        """Create a new header from ``entries``, with a region trailer at the end of the store."""
        return cls(domain, entries)

    @classmethod
    def new_signature_header(
        cls,
        size: int,
        md5: bytes,
        sha1: str,
        rsa_header: bytes,
        rsa_header_and_payload: bytes,
    ) -> Self:
        """Create a signature header holding the digests and signatures of a package.

        Args:
            size: The combined size of the main header and the payload.
            md5: The MD5 digest over the main header and the payload.
            sha1: The hex encoded SHA1 digest over the main header.
            rsa_header: The signature spanning the main header.
            rsa_header_and_payload: The signature spanning the main header and the payload.
        """
        if len(md5) != MD5_SIZE:
            raise TypeMismatchError(f"MD5 digest must be {MD5_SIZE} bytes, got {len(md5)}")

        if len(sha1) != SHA1_HEX_SIZE:
            raise TypeMismatchError(f"SHA1 digest must be {SHA1_HEX_SIZE} hex characters, got {len(sha1)}")

        if size < 1 << 32:
            size_entry = IndexEntry(SignatureTag.SIZE, TagType.INT32, [size])
        else:
            size_entry = IndexEntry(SignatureTag.LONGSIZE, TagType.INT64, [size])

        return cls.from_entries(
            SIGNATURE_TAGS,
            [
                size_entry,
                IndexEntry(SignatureTag.MD5, TagType.BIN, md5),
                IndexEntry(SignatureTag.SHA1, TagType.STRING, sha1),
                IndexEntry(SignatureTag.RSA, TagType.BIN, rsa_header),
                IndexEntry(SignatureTag.PGP, TagType.BIN, rsa_header_and_payload),
            ],
        )

    @classmethod
    def parse(cls, fh: BinaryIO, domain: TagDomain = HEADER_TAGS) -> Self:
        """Parse a header from ``fh``, leaving ``fh`` positioned directly after the store."""
        try:
            intro = c_rpm.IndexHeader(fh)
        except EOFError as e:
            raise FormatError(f"Truncated {domain.name} header intro", cause=e)

        if intro.magic != RPM_HEADER_MAGIC:
            raise FormatError(f"Invalid {domain.name} header magic {intro.magic.hex()}")

        if intro.version != c_rpm.HEADER_VERSION:
            raise FormatError(f"Unsupported {domain.name} header version {intro.version}")

        if intro.num_entries > c_rpm.HEADER_MAX_ENTRIES:
            raise FormatError(f"Too many {domain.name} header entries: {intro.num_entries}")

        if intro.store_size > c_rpm.HEADER_MAX_STORE:
            raise FormatError(f"{domain.name} header store too large: {intro.store_size}")

        index_size = intro.num_entries * INDEX_ENTRY_SIZE
        index = fh.read(index_size)
        if len(index) != index_size:
            raise FormatError(f"Truncated {domain.name} header index ({len(index)} of {index_size} bytes)")

        store = fh.read(intro.store_size)
        if len(store) != intro.store_size:
            raise FormatError(f"Truncated {domain.name} header store ({len(store)} of {intro.store_size} bytes)")

        log.debug("Parsing %s header: %d entries, %d bytes store", domain.name, intro.num_entries, intro.store_size)

        buf = BytesIO(index)
        header = cls._from_index(domain, [c_rpm.IndexEntry(buf) for _ in range(intro.num_entries)], store)
        header.parsed_store_size = intro.store_size
        return header

    @classmethod
    def parse_signature(cls, fh: BinaryIO) -> Self:
        """Parse a signature header from ``fh``, including the padding that aligns it to 8 bytes."""
        header = cls.parse(fh, SIGNATURE_TAGS)

        padding = _signature_padding(header.parsed_store_size)
        if padding:
            if len(fh.read(padding)) != padding:
                raise FormatError("Truncated signature header padding")
            log.trace("Skipped %d bytes of signature header padding", padding)

        return header

    @classmethod
    def _from_index(cls, domain: TagDomain, index: list, store: bytes) -> Self:
        placed = []
        region = None
        region_trailer_tag = None
        previous_tag = -1

        for position, raw in enumerate(index):
            try:
                type = TagType(raw.type)
            except ValueError:
                raise FormatError(f"Unknown value type {raw.type} for tag {raw.tag}")

            if raw.tag < previous_tag:
                log.debug("%s header index is not sorted at tag %d", domain.name, raw.tag)
            previous_tag = raw.tag

            if position == 0 and raw.tag in REGION_TAGS:
                region_trailer_tag = cls._check_region(domain, raw, type, len(index), store)
                region = raw
                continue

            tag = domain.resolve(raw.tag)
            if not domain.is_known(raw.tag):
                log.debug("Preserving unknown %s tag %d (%s)", domain.name, raw.tag, type.name)

            value = _decode_value(type, raw.count, store, raw.offset)
            log.trace("%s entry %s %s[%d] @ %d", domain.name, domain.tag_name(tag), type.name, raw.count, raw.offset)
            placed.append((raw.offset, IndexEntry(tag, type, value)))

        placed.sort(key=lambda item: item[0])

        if region is None:
            header = cls(domain, (entry for _, entry in placed), region_tag=None)
        else:
            # Zero sized entries can share their offset with the trailer, they were placed before it
            position = sum(1 for offset, _ in placed if offset <= region.offset)
            header = cls(domain, (entry for _, entry in placed), region_tag=region.tag, region_position=position)
            header.region_trailer_tag = region_trailer_tag

        return header

    @staticmethod
    def _check_region(domain: TagDomain, raw: Any, type: TagType, num_entries: int, store: bytes) -> int:
        if type != TagType.BIN or raw.count != REGION_TRAILER_SIZE:
            raise FormatError(f"Invalid {domain.name} header region entry: {type.name}[{raw.count}]")

        if raw.offset < 0 or raw.offset + REGION_TRAILER_SIZE > len(store):
            raise FormatError(f"{domain.name} header region trailer at {raw.offset} outside of store")

        trailer = c_rpm.IndexEntry(store[raw.offset : raw.offset + REGION_TRAILER_SIZE])

        # Old rpm versions wrote HEADERIMAGE in the trailer of the signature region
        if trailer.tag not in (raw.tag, HeaderTag.HEADERIMAGE):
            raise FormatError(f"{domain.name} header region trailer tag {trailer.tag} does not match {raw.tag}")

        if trailer.offset >= 0 or -trailer.offset % INDEX_ENTRY_SIZE:
            raise FormatError(f"Invalid {domain.name} header region trailer offset {trailer.offset}")

        region_entries = -trailer.offset // INDEX_ENTRY_SIZE
        if region_entries > num_entries:
            raise FormatError(f"{domain.name} header region spans {region_entries} of {num_entries} entries")

        if region_entries != num_entries:
            log.warning("%s header region covers %d of %d entries", domain.name, region_entries, num_entries)

        return trailer.tag

    def _find(self, tag: Tag) -> int | None:
        for idx, entry in enumerate(self.entries):
            if entry.tag == tag:
                return idx
        return None

    def _put(self, entry: IndexEntry) -> None:
        if self.region_tag is not None and entry.tag == self.region_tag:
            raise FormatError(f"The region entry {self.domain.tag_name(entry.tag)} is managed by the header")

        idx = self._find(entry.tag)
        if idx is None:
            self.entries.append(entry)
        else:
            self.entries[idx] = entry

    def add_entry(self, tag: Tag, type: TagType, value: Any) -> IndexEntry:
        """Add an entry, replacing any existing entry for ``tag`` in place."""
        type = TagType(type)
        expected = self.domain.expected_type(tag)
        if expected is not None and expected != type:
            raise TypeMismatchError(
                f"{self.domain.name} tag {self.domain.tag_name(tag)} expects {expected.name}, got {type.name}"
            )

        entry = IndexEntry(self.domain.resolve(int(tag)), type, value)
        self._put(entry)
        return entry

    def remove_entry(self, tag: Tag) -> IndexEntry:
        idx = self._find(tag)
        if idx is None:
            raise TagNotFoundError(f"Tag {self.domain.tag_name(tag)} not found in {self.domain.name} header")

        if self._region_position is not None and idx < self._region_position:
            self._region_position -= 1

        return self.entries.pop(idx)

    def get_entry(self, tag: Tag) -> IndexEntry:
        idx = self._find(tag)
        if idx is None:
            raise TagNotFoundError(f"Tag {self.domain.tag_name(tag)} not found in {self.domain.name} header")
        return self.entries[idx]

    def get_entry_as(self, tag: Tag, type: TagType) -> Any:
        """Return the value of ``tag``, requiring it to be stored as ``type``."""
        entry = self.get_entry(tag)
        if entry.type != type:
            raise TypeMismatchError(
                f"Tag {self.domain.tag_name(tag)} holds {entry.type.name}, requested {TagType(type).name}"
            )
        return entry.value

    def get_binary(self, tag: Tag) -> bytes:
        return self.get_entry_as(tag, TagType.BIN)

    def get_string(self, tag: Tag) -> str:
        """Return a string value. For ``I18NSTRING`` entries the first (untranslated) string is returned."""
        entry = self.get_entry(tag)
        if entry.type == TagType.STRING:
            return entry.value
        if entry.type == TagType.I18NSTRING:
            return entry.value[0]
        raise TypeMismatchError(f"Tag {self.domain.tag_name(tag)} holds {entry.type.name}, requested STRING")

    def get_string_array(self, tag: Tag) -> list[str]:
        return self.get_entry_as(tag, TagType.STRING_ARRAY)

    def get_int8(self, tag: Tag) -> int:
        return self.get_entry_as(tag, TagType.INT8)[0]

    def get_int16(self, tag: Tag) -> int:
        return self.get_entry_as(tag, TagType.INT16)[0]

    def get_int32(self, tag: Tag) -> int:
        return self.get_entry_as(tag, TagType.INT32)[0]

    def get_int64(self, tag: Tag) -> int:
        return self.get_entry_as(tag, TagType.INT64)[0]

    def _layout(self) -> tuple[list[tuple[int, int, int, int]], bytes]:
        """Lay out the store and build the index as ``(tag, type, offset, count)`` tuples, sorted by tag."""
        store = bytearray()
        index = []

        def place(tag: int, type: TagType, count: int, data: bytes) -> None:
            store.extend(b"\x00" * (-len(store) % type.alignment))
            index.append((int(tag), int(type), len(store), count))
            store.extend(data)

        region_position = None
        if self.region_tag is not None:
            num_entries = len(self.entries) + 1
            region_position = len(self.entries) if self._region_position is None else self._region_position
            region_position = min(region_position, len(self.entries))
            region_data = _region_trailer(self.region_trailer_tag, num_entries)

        for position, entry in enumerate(self.entries):
            if position == region_position:
                place(self.region_tag, TagType.BIN, REGION_TRAILER_SIZE, region_data)
            place(entry.tag, entry.type, entry.count, entry.dumps())

        if region_position == len(self.entries):
            place(self.region_tag, TagType.BIN, REGION_TRAILER_SIZE, region_data)

        index.sort(key=lambda item: item[0])
        return index, bytes(store)

    @property
    def size(self) -> int:
        """The serialized size of the header: intro, index and store."""
        index, store = self._layout()
        return INDEX_HEADER_SIZE + len(index) * INDEX_ENTRY_SIZE + len(store)

    @property
    def signature_size(self) -> int:
        """The serialized size of the header when written as a signature header, including padding."""
        index, store = self._layout()
        return INDEX_HEADER_SIZE + len(index) * INDEX_ENTRY_SIZE + len(store) + _signature_padding(len(store))

    def dumps(self) -> bytes:
        index, store = self._layout()

        if len(index) > c_rpm.HEADER_MAX_ENTRIES:
            raise FormatError(f"Too many {self.domain.name} header entries: {len(index)}")

        if len(store) > c_rpm.HEADER_MAX_STORE:
            raise FormatError(f"{self.domain.name} header store too large: {len(store)}")

        intro = c_rpm.IndexHeader(
            magic=RPM_HEADER_MAGIC,
            version=c_rpm.HEADER_VERSION,
            reserved=b"\x00" * 4,
            num_entries=len(index),
            store_size=len(store),
        )

        buf = [intro.dumps()]
        buf.extend(
            c_rpm.IndexEntry(tag=tag, type=type, offset=offset, count=count).dumps()
            for tag, type, offset, count in index
        )
        buf.append(store)
        return b"".join(buf)

    def write(self, fh: BinaryIO) -> int:
        return fh.write(self.dumps())

    def write_signature(self, fh: BinaryIO) -> int:
        """Write the header as a signature header, padded to a multiple of 8 bytes."""
        data = self.dumps()
        data += b"\x00" * _signature_padding(len(data))
        return fh.write(data)
