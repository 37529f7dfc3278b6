from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, BinaryIO

from dissect.rpm.c_rpm import LEAD_SIZE, c_rpm
from dissect.rpm.exceptions import FormatError
from dissect.rpm.helpers.logging import get_logger

if TYPE_CHECKING:
    from typing_extensions import Self

log = get_logger(__name__)

# Lead architecture and os numbers, as listed in the rpmrc ``arch_canon`` and ``os_canon`` tables. Modern rpm only
# uses the header for this information, the lead values are kept for compatibility with old tooling.
ARCH_NUMBERS = {
    "noarch": 0,
    "i386": 1,
    "i486": 1,
    "i586": 1,
    "i686": 1,
    "x86_64": 1,
    "alpha": 2,
    "sparc": 3,
    "mips": 4,
    "ppc": 5,
    "m68k": 6,
    "sgi": 7,
    "rs6000": 8,
    "ia64": 9,
    "s390": 14,
    "s390x": 15,
    "ppc64": 16,
    "aarch64": 19,
}

OS_LINUX = 1

SUPPORTED_MAJOR_VERSIONS = (3, 4)


@dataclass(frozen=True)
class Lead:
    """The fixed 96 byte block every RPM file starts with.

    References:
        - https://rpm-software-management.github.io/rpm/manual/format_v3.html
    """

    major: int
    minor: int
    type: int
    archnum: int
    name: str
    osnum: int
    signature_type: int
    reserved: bytes = b"\x00" * 16
    # The name field as read, including anything after the terminator
    raw_name: bytes | None = field(default=None, compare=False, repr=False)

    @classmethod
    def new(cls, name: str, arch: str = "noarch", type: int = c_rpm.RPMLEAD_BINARY) -> Self:
        return cls(
            major=c_rpm.RPM_LEAD_MAJOR,
            minor=c_rpm.RPM_LEAD_MINOR,
            type=type,
            archnum=ARCH_NUMBERS.get(arch, 0),
            name=name,
            osnum=OS_LINUX,
            signature_type=c_rpm.RPMSIGTYPE_HEADERSIG,
        )

    @classmethod
    def parse(cls, fh: BinaryIO) -> Self:
        try:
            lead = c_rpm.Lead(fh)
        except EOFError as e:
            raise FormatError("Truncated lead", cause=e)

        if lead.magic != c_rpm.RPM_LEAD_MAGIC:
            raise FormatError(f"Invalid lead magic 0x{lead.magic:08x}")

        if lead.major not in SUPPORTED_MAJOR_VERSIONS:
            raise FormatError(f"Unsupported lead version {lead.major}.{lead.minor}")

        if lead.signature_type != c_rpm.RPMSIGTYPE_HEADERSIG:
            raise FormatError(f"Unsupported signature type {lead.signature_type}")

        name = lead.name.split(b"\x00", 1)[0].decode(errors="surrogateescape")
        log.debug("Parsed lead for %r (version %d.%d, type %d)", name, lead.major, lead.minor, lead.type)

        return cls(
            major=lead.major,
            minor=lead.minor,
            type=lead.type,
            archnum=lead.archnum,
            name=name,
            osnum=lead.osnum,
            signature_type=lead.signature_type,
            reserved=lead.reserved,
            raw_name=lead.name,
        )

    def dumps(self) -> bytes:
        # The name is always NUL terminated, so at most 65 significant bytes fit
        name = self.name.encode(errors="surrogateescape")[: c_rpm.RPM_LEAD_NAME_SIZE - 1]
        if self.raw_name is not None and self.raw_name.split(b"\x00", 1)[0] == name:
            name = self.raw_name

        return c_rpm.Lead(
            magic=c_rpm.RPM_LEAD_MAGIC,
            major=self.major,
            minor=self.minor,
            type=self.type,
            archnum=self.archnum,
            name=name.ljust(c_rpm.RPM_LEAD_NAME_SIZE, b"\x00"),
            osnum=self.osnum,
            signature_type=self.signature_type,
            reserved=self.reserved,
        ).dumps()

    def write(self, fh: BinaryIO) -> int:
        return fh.write(self.dumps())

    @property
    def is_source(self) -> bool:
        return self.type == c_rpm.RPMLEAD_SOURCE

    def __len__(self) -> int:
        return LEAD_SIZE
