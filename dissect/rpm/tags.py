from __future__ import annotations

from enum import IntEnum
from typing import Union


class TagType(IntEnum):
    NULL = 0
    CHAR = 1
    INT8 = 2
    INT16 = 3
    INT32 = 4
    INT64 = 5
    STRING = 6
    BIN = 7
    STRING_ARRAY = 8
    I18NSTRING = 9

    @property
    def width(self) -> int:
        """Size in bytes of a single element, 1 for variable sized types."""
        return TYPE_WIDTHS[self]

    @property
    def alignment(self) -> int:
        return TYPE_WIDTHS[self] if self in INTEGER_TYPES else 1


TYPE_WIDTHS = {
    TagType.NULL: 0,
    TagType.CHAR: 1,
    TagType.INT8: 1,
    TagType.INT16: 2,
    TagType.INT32: 4,
    TagType.INT64: 8,
    TagType.STRING: 1,
    TagType.BIN: 1,
    TagType.STRING_ARRAY: 1,
    TagType.I18NSTRING: 1,
}

INTEGER_TYPES = (TagType.INT8, TagType.INT16, TagType.INT32, TagType.INT64)
STRING_TYPES = (TagType.STRING, TagType.STRING_ARRAY, TagType.I18NSTRING)


class SignatureTag(IntEnum):
    """Tags recognized in the signature header.

    References:
        - https://github.com/rpm-software-management/rpm/blob/master/include/rpm/rpmtag.h (rpmSigTag_e)
    """

    HEADERSIGNATURES = 62
    DSA = 267
    RSA = 268
    SHA1 = 269
    LONGSIZE = 270
    LONGARCHIVESIZE = 271
    SHA256 = 273
    FILESIGNATURES = 274
    FILESIGNATURELENGTH = 275
    VERITYSIGNATURES = 276
    VERITYSIGNATUREALGO = 277
    OPENPGP = 278
    SHA3_256 = 279
    SIZE = 1000
    LEMD5_1 = 1001
    PGP = 1002
    LEMD5_2 = 1003
    MD5 = 1004
    GPG = 1005
    PGP5 = 1006
    PAYLOADSIZE = 1007
    RESERVEDSPACE = 1008


class HeaderTag(IntEnum):
    """Tags recognized in the main header.

    References:
        - https://github.com/rpm-software-management/rpm/blob/master/include/rpm/rpmtag.h (rpmTag_e)
    """

    HEADERIMAGE = 61
    HEADERSIGNATURES = 62
    HEADERIMMUTABLE = 63
    HEADERREGIONS = 64
    HEADERI18NTABLE = 100
    SIGSIZE = 257
    SIGMD5 = 261
    SIGGPG = 262
    PUBKEYS = 266
    DSAHEADER = 267
    RSAHEADER = 268
    SHA1HEADER = 269
    LONGSIGSIZE = 270
    LONGARCHIVESIZE = 271
    SHA256HEADER = 273
    VERITYSIGNATURES = 276
    VERITYSIGNATUREALGO = 277
    OPENPGP = 278
    SHA3_256HEADER = 279
    NAME = 1000
    VERSION = 1001
    RELEASE = 1002
    EPOCH = 1003
    SUMMARY = 1004
    DESCRIPTION = 1005
    BUILDTIME = 1006
    BUILDHOST = 1007
    INSTALLTIME = 1008
    SIZE = 1009
    DISTRIBUTION = 1010
    VENDOR = 1011
    GIF = 1012
    XPM = 1013
    LICENSE = 1014
    PACKAGER = 1015
    GROUP = 1016
    CHANGELOG = 1017
    SOURCE = 1018
    PATCH = 1019
    URL = 1020
    OS = 1021
    ARCH = 1022
    PREIN = 1023
    POSTIN = 1024
    PREUN = 1025
    POSTUN = 1026
    OLDFILENAMES = 1027
    FILESIZES = 1028
    FILESTATES = 1029
    FILEMODES = 1030
    FILERDEVS = 1033
    FILEMTIMES = 1034
    FILEDIGESTS = 1035
    FILELINKTOS = 1036
    FILEFLAGS = 1037
    FILEUSERNAME = 1039
    FILEGROUPNAME = 1040
    ICON = 1043
    SOURCERPM = 1044
    FILEVERIFYFLAGS = 1045
    ARCHIVESIZE = 1046
    PROVIDENAME = 1047
    REQUIREFLAGS = 1048
    REQUIRENAME = 1049
    REQUIREVERSION = 1050
    NOSOURCE = 1051
    NOPATCH = 1052
    CONFLICTFLAGS = 1053
    CONFLICTNAME = 1054
    CONFLICTVERSION = 1055
    EXCLUDEARCH = 1059
    EXCLUDEOS = 1060
    EXCLUSIVEARCH = 1061
    EXCLUSIVEOS = 1062
    RPMVERSION = 1064
    TRIGGERSCRIPTS = 1065
    TRIGGERNAME = 1066
    TRIGGERVERSION = 1067
    TRIGGERFLAGS = 1068
    TRIGGERINDEX = 1069
    VERIFYSCRIPT = 1079
    CHANGELOGTIME = 1080
    CHANGELOGNAME = 1081
    CHANGELOGTEXT = 1082
    PREINPROG = 1085
    POSTINPROG = 1086
    PREUNPROG = 1087
    POSTUNPROG = 1088
    BUILDARCHS = 1089
    OBSOLETENAME = 1090
    VERIFYSCRIPTPROG = 1091
    TRIGGERSCRIPTPROG = 1092
    COOKIE = 1094
    FILEDEVICES = 1095
    FILEINODES = 1096
    FILELANGS = 1097
    PREFIXES = 1098
    INSTPREFIXES = 1099
    SOURCEPACKAGE = 1106
    PROVIDEFLAGS = 1112
    PROVIDEVERSION = 1113
    OBSOLETEFLAGS = 1114
    OBSOLETEVERSION = 1115
    DIRINDEXES = 1116
    BASENAMES = 1117
    DIRNAMES = 1118
    OPTFLAGS = 1122
    DISTURL = 1123
    PAYLOADFORMAT = 1124
    PAYLOADCOMPRESSOR = 1125
    PAYLOADFLAGS = 1126
    INSTALLCOLOR = 1127
    INSTALLTID = 1128
    REMOVETID = 1129
    PLATFORM = 1132
    FILECOLORS = 1140
    FILECLASS = 1141
    CLASSDICT = 1142
    FILEDEPENDSX = 1143
    FILEDEPENDSN = 1144
    DEPENDSDICT = 1145
    SOURCEPKGID = 1146
    PRETRANS = 1151
    POSTTRANS = 1152
    PRETRANSPROG = 1153
    POSTTRANSPROG = 1154
    DISTTAG = 1155
    LONGFILESIZES = 5008
    LONGSIZE = 5009
    FILECAPS = 5010
    FILEDIGESTALGO = 5011
    BUGURL = 5012
    ORDERNAME = 5035
    ORDERVERSION = 5036
    ORDERFLAGS = 5037
    RECOMMENDNAME = 5046
    RECOMMENDVERSION = 5047
    RECOMMENDFLAGS = 5048
    SUGGESTNAME = 5049
    SUGGESTVERSION = 5050
    SUGGESTFLAGS = 5051
    SUPPLEMENTNAME = 5052
    SUPPLEMENTVERSION = 5053
    SUPPLEMENTFLAGS = 5054
    ENHANCENAME = 5055
    ENHANCEVERSION = 5056
    ENHANCEFLAGS = 5057
    ENCODING = 5062
    PAYLOADDIGEST = 5092
    PAYLOADDIGESTALGO = 5093
    MODULARITYLABEL = 5096
    PAYLOADDIGESTALT = 5097


Tag = Union[SignatureTag, HeaderTag, int]


class TagDomain:
    """The set of tags a header recognizes, with the value type each of them is expected to carry.

    The signature header and the main header share one codec and differ only in their domain. Tag ids outside
    the enumeration are not rejected, they resolve to plain integers and are carried along opaquely.
    """

    def __init__(self, name: str, tags: type[IntEnum], region_tag: IntEnum, types: dict[IntEnum, TagType]):
        self.name = name
        self.tags = tags
        self.region_tag = region_tag
        self.types = types

    def __repr__(self) -> str:
        return f"<TagDomain {self.name}>"

    def resolve(self, value: int) -> Tag:
        """Map a raw tag id to its enumeration member, or return it unchanged if it is not recognized."""
        try:
            return self.tags(value)
        except ValueError:
            return value

    def is_known(self, value: int) -> bool:
        return isinstance(self.resolve(value), self.tags)

    def expected_type(self, tag: Tag) -> TagType | None:
        return self.types.get(self.resolve(int(tag)))

    def tag_name(self, tag: Tag) -> str:
        tag = self.resolve(int(tag))
        return tag.name if isinstance(tag, self.tags) else f"UNKNOWN_{tag}"


SIGNATURE_TAGS = TagDomain(
    "signature",
    SignatureTag,
    SignatureTag.HEADERSIGNATURES,
    {
        SignatureTag.HEADERSIGNATURES: TagType.BIN,
        SignatureTag.DSA: TagType.BIN,
        SignatureTag.RSA: TagType.BIN,
        SignatureTag.SHA1: TagType.STRING,
        SignatureTag.LONGSIZE: TagType.INT64,
        SignatureTag.LONGARCHIVESIZE: TagType.INT64,
        SignatureTag.SHA256: TagType.STRING,
        SignatureTag.FILESIGNATURES: TagType.STRING_ARRAY,
        SignatureTag.FILESIGNATURELENGTH: TagType.INT32,
        SignatureTag.VERITYSIGNATURES: TagType.STRING_ARRAY,
        SignatureTag.VERITYSIGNATUREALGO: TagType.INT32,
        SignatureTag.OPENPGP: TagType.STRING_ARRAY,
        SignatureTag.SHA3_256: TagType.STRING,
        SignatureTag.SIZE: TagType.INT32,
        SignatureTag.LEMD5_1: TagType.BIN,
        SignatureTag.PGP: TagType.BIN,
        SignatureTag.LEMD5_2: TagType.BIN,
        SignatureTag.MD5: TagType.BIN,
        SignatureTag.GPG: TagType.BIN,
        SignatureTag.PGP5: TagType.BIN,
        SignatureTag.PAYLOADSIZE: TagType.INT32,
        SignatureTag.RESERVEDSPACE: TagType.BIN,
    },
)

HEADER_TAGS = TagDomain(
    "header",
    HeaderTag,
    HeaderTag.HEADERIMMUTABLE,
    {
        HeaderTag.HEADERIMAGE: TagType.BIN,
        HeaderTag.HEADERSIGNATURES: TagType.BIN,
        HeaderTag.HEADERIMMUTABLE: TagType.BIN,
        HeaderTag.HEADERREGIONS: TagType.BIN,
        HeaderTag.HEADERI18NTABLE: TagType.STRING_ARRAY,
        HeaderTag.NAME: TagType.STRING,
        HeaderTag.VERSION: TagType.STRING,
        HeaderTag.RELEASE: TagType.STRING,
        HeaderTag.EPOCH: TagType.INT32,
        HeaderTag.SUMMARY: TagType.I18NSTRING,
        HeaderTag.DESCRIPTION: TagType.I18NSTRING,
        HeaderTag.BUILDTIME: TagType.INT32,
        HeaderTag.BUILDHOST: TagType.STRING,
        HeaderTag.SIZE: TagType.INT32,
        HeaderTag.DISTRIBUTION: TagType.STRING,
        HeaderTag.VENDOR: TagType.STRING,
        HeaderTag.LICENSE: TagType.STRING,
        HeaderTag.PACKAGER: TagType.STRING,
        HeaderTag.GROUP: TagType.I18NSTRING,
        HeaderTag.URL: TagType.STRING,
        HeaderTag.OS: TagType.STRING,
        HeaderTag.ARCH: TagType.STRING,
        HeaderTag.PREIN: TagType.STRING,
        HeaderTag.POSTIN: TagType.STRING,
        HeaderTag.PREUN: TagType.STRING,
        HeaderTag.POSTUN: TagType.STRING,
        HeaderTag.FILESIZES: TagType.INT32,
        HeaderTag.FILEMODES: TagType.INT16,
        HeaderTag.FILERDEVS: TagType.INT16,
        HeaderTag.FILEMTIMES: TagType.INT32,
        HeaderTag.FILEDIGESTS: TagType.STRING_ARRAY,
        HeaderTag.FILELINKTOS: TagType.STRING_ARRAY,
        HeaderTag.FILEFLAGS: TagType.INT32,
        HeaderTag.FILEUSERNAME: TagType.STRING_ARRAY,
        HeaderTag.FILEGROUPNAME: TagType.STRING_ARRAY,
        HeaderTag.SOURCERPM: TagType.STRING,
        HeaderTag.FILEVERIFYFLAGS: TagType.INT32,
        HeaderTag.ARCHIVESIZE: TagType.INT32,
        HeaderTag.PROVIDENAME: TagType.STRING_ARRAY,
        HeaderTag.REQUIREFLAGS: TagType.INT32,
        HeaderTag.REQUIRENAME: TagType.STRING_ARRAY,
        HeaderTag.REQUIREVERSION: TagType.STRING_ARRAY,
        HeaderTag.CONFLICTFLAGS: TagType.INT32,
        HeaderTag.CONFLICTNAME: TagType.STRING_ARRAY,
        HeaderTag.CONFLICTVERSION: TagType.STRING_ARRAY,
        HeaderTag.RPMVERSION: TagType.STRING,
        HeaderTag.CHANGELOGTIME: TagType.INT32,
        HeaderTag.CHANGELOGNAME: TagType.STRING_ARRAY,
        HeaderTag.CHANGELOGTEXT: TagType.STRING_ARRAY,
        HeaderTag.PREINPROG: TagType.STRING_ARRAY,
        HeaderTag.POSTINPROG: TagType.STRING_ARRAY,
        HeaderTag.PREUNPROG: TagType.STRING_ARRAY,
        HeaderTag.POSTUNPROG: TagType.STRING_ARRAY,
        HeaderTag.OBSOLETENAME: TagType.STRING_ARRAY,
        HeaderTag.FILEDEVICES: TagType.INT32,
        HeaderTag.FILEINODES: TagType.INT32,
        HeaderTag.FILELANGS: TagType.STRING_ARRAY,
        HeaderTag.PREFIXES: TagType.STRING_ARRAY,
        HeaderTag.PROVIDEFLAGS: TagType.INT32,
        HeaderTag.PROVIDEVERSION: TagType.STRING_ARRAY,
        HeaderTag.OBSOLETEFLAGS: TagType.INT32,
        HeaderTag.OBSOLETEVERSION: TagType.STRING_ARRAY,
        HeaderTag.DIRINDEXES: TagType.INT32,
        HeaderTag.BASENAMES: TagType.STRING_ARRAY,
        HeaderTag.DIRNAMES: TagType.STRING_ARRAY,
        HeaderTag.OPTFLAGS: TagType.STRING,
        HeaderTag.DISTURL: TagType.STRING,
        HeaderTag.PAYLOADFORMAT: TagType.STRING,
        HeaderTag.PAYLOADCOMPRESSOR: TagType.STRING,
        HeaderTag.PAYLOADFLAGS: TagType.STRING,
        HeaderTag.PLATFORM: TagType.STRING,
        HeaderTag.FILECOLORS: TagType.INT32,
        HeaderTag.FILECLASS: TagType.INT32,
        HeaderTag.CLASSDICT: TagType.STRING_ARRAY,
        HeaderTag.FILEDEPENDSX: TagType.INT32,
        HeaderTag.FILEDEPENDSN: TagType.INT32,
        HeaderTag.DEPENDSDICT: TagType.INT32,
        HeaderTag.SOURCEPKGID: TagType.BIN,
        HeaderTag.PRETRANS: TagType.STRING,
        HeaderTag.POSTTRANS: TagType.STRING,
        HeaderTag.DISTTAG: TagType.STRING,
        HeaderTag.LONGFILESIZES: TagType.INT64,
        HeaderTag.LONGSIZE: TagType.INT64,
        HeaderTag.FILECAPS: TagType.STRING_ARRAY,
        HeaderTag.FILEDIGESTALGO: TagType.INT32,
        HeaderTag.BUGURL: TagType.STRING,
        HeaderTag.RECOMMENDNAME: TagType.STRING_ARRAY,
        HeaderTag.SUGGESTNAME: TagType.STRING_ARRAY,
        HeaderTag.SUPPLEMENTNAME: TagType.STRING_ARRAY,
        HeaderTag.ENHANCENAME: TagType.STRING_ARRAY,
        HeaderTag.ENCODING: TagType.STRING,
        HeaderTag.PAYLOADDIGEST: TagType.STRING_ARRAY,
        HeaderTag.PAYLOADDIGESTALGO: TagType.INT32,
        HeaderTag.MODULARITYLABEL: TagType.STRING,
        HeaderTag.PAYLOADDIGESTALT: TagType.STRING_ARRAY,
    },
)
