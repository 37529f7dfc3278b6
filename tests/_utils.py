import hashlib
import struct

LEAD_MAGIC = b"\xed\xab\xee\xdb"
HEADER_INTRO = b"\x8e\xad\xe8\x01\x00\x00\x00\x00"

HEADERSIGNATURES = 62
HEADERIMMUTABLE = 63

NULL, CHAR, INT8, INT16, INT32, INT64, STRING, BIN, STRING_ARRAY, I18NSTRING = range(10)
ALIGNMENT = {INT16: 2, INT32: 4, INT64: 8}

# A gzip magic followed by filler, the payload is opaque to the codec
PAYLOAD = b"\x1f\x8b\x08\x00" + bytes(range(256)) * 64


def string(value):
    return value.encode() + b"\x00"


def lead(name="fixture-1.0.0-1", major=3, signature_type=5):
    return LEAD_MAGIC + struct.pack(">BBHH66sHH16s", major, 0, 0, 1, name.encode(), 1, signature_type, b"")


def index_entry(tag, type, offset, count):
    return struct.pack(">IIiI", tag, type, offset, count)


def raw_header(index, store, num_entries=None, store_size=None):
    """Assemble a header from explicit ``(tag, type, offset, count)`` tuples and a store, without any checks."""
    num_entries = len(index) if num_entries is None else num_entries
    store_size = len(store) if store_size is None else store_size
    return (
        HEADER_INTRO
        + struct.pack(">II", num_entries, store_size)
        + b"".join(index_entry(*entry) for entry in index)
        + store
    )


def header(entries, region_tag, signature=False, slack=b""):
    """Lay out ``(tag, type, count, data)`` entries the way rpm does, with the region trailer at the end.

    ``slack`` is appended to the store after the last entry and counted in the store size.
    """
    store = b""
    index = []
    for tag, type, count, data in entries:
        store += b"\x00" * (-len(store) % ALIGNMENT.get(type, 1))
        index.append((tag, type, len(store), count))
        store += data

    if region_tag is not None:
        index.append((region_tag, BIN, len(store), 16))
        store += index_entry(region_tag, BIN, -16 * len(index), 16)

    store += slack
    data = raw_header(sorted(index), store)
    if signature:
        data += b"\x00" * (-len(data) % 8)
    return data


MAIN_ENTRIES = [
    (1000, STRING, 1, string("fixture")),
    (1001, STRING, 1, string("1.0.0")),
    (1002, STRING, 1, string("1")),
    (1003, INT32, 1, struct.pack(">I", 1)),
    (1004, I18NSTRING, 1, string("A fixture package")),
    (1022, STRING, 1, string("x86_64")),
    (1030, INT16, 2, struct.pack(">2H", 0o100644, 0o100755)),
    (1124, STRING, 1, string("cpio")),
    (1125, STRING, 1, string("gzip")),
    (5009, INT64, 1, struct.pack(">Q", 123456)),
]


def main_header(entries=MAIN_ENTRIES):
    return header(entries, HEADERIMMUTABLE)


def signature_header(main, payload):
    md5 = hashlib.md5(main + payload).digest()
    sha1 = hashlib.sha1(main).hexdigest()
    return header(
        [
            (1000, INT32, 1, struct.pack(">I", len(main) + len(payload))),
            (1004, BIN, 16, md5),
            (269, STRING, 1, string(sha1)),
        ],
        HEADERSIGNATURES,
        signature=True,
    )


def build_package(entries=MAIN_ENTRIES, payload=PAYLOAD):
    """Build a complete, digest-only (unsigned) package."""
    main = main_header(entries)
    return lead() + signature_header(main, payload) + main + payload
