from __future__ import annotations

from dissect.cstruct import cstruct

# References:
# - https://rpm-software-management.github.io/rpm/manual/format_v4.html
# - https://github.com/rpm-software-management/rpm/blob/master/include/rpm/rpmlead.h
# - https://github.com/rpm-software-management/rpm/blob/master/lib/header_internal.h
rpm_def = """
#define RPM_LEAD_MAGIC              0xedabeedb
#define RPM_LEAD_MAJOR              3
#define RPM_LEAD_MINOR              0
#define RPM_LEAD_NAME_SIZE          66

#define RPMLEAD_BINARY              0
#define RPMLEAD_SOURCE              1

#define RPMSIGTYPE_HEADERSIG        5

#define HEADER_VERSION              1

#define HEADER_MAX_ENTRIES          0x0000ffff      // hdrchkTags
#define HEADER_MAX_STORE            0x10000000      // hdrchkData, 256 MiB

struct Lead {
    uint32      magic;
    uint8       major;
    uint8       minor;
    uint16      type;
    uint16      archnum;
    char        name[66];
    uint16      osnum;
    uint16      signature_type;
    char        reserved[16];
};

struct IndexHeader {
    char        magic[3];                           // 8e ad e8
    uint8       version;
    char        reserved[4];
    uint32      num_entries;
    uint32      store_size;
};

struct IndexEntry {
    uint32      tag;
    uint32      type;
    int32       offset;                             // negative for region trailers
    uint32      count;
};
"""

c_rpm = cstruct(endian=">").load(rpm_def)

RPM_HEADER_MAGIC = b"\x8e\xad\xe8"

LEAD_SIZE = len(c_rpm.Lead)  # 96
INDEX_HEADER_SIZE = len(c_rpm.IndexHeader)  # 16
INDEX_ENTRY_SIZE = len(c_rpm.IndexEntry)  # 16

# The region trailer is a serialized index entry stored as BIN data
REGION_TRAILER_SIZE = INDEX_ENTRY_SIZE
