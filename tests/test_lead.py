from __future__ import annotations

from dataclasses import replace
from io import BytesIO

import pytest

from dissect.rpm.c_rpm import LEAD_SIZE
from dissect.rpm.exceptions import FormatError
from dissect.rpm.lead import Lead
from tests._utils import lead


def test_lead_parse() -> None:
    fh = BytesIO(lead() + b"trailing")
    parsed = Lead.parse(fh)

    assert parsed.major == 3
    assert parsed.minor == 0
    assert parsed.name == "fixture-1.0.0-1"
    assert parsed.archnum == 1
    assert parsed.osnum == 1
    assert parsed.signature_type == 5
    assert not parsed.is_source
    assert fh.tell() == LEAD_SIZE


def test_lead_roundtrip() -> None:
    data = lead()
    assert Lead.parse(BytesIO(data)).dumps() == data
    assert len(Lead.parse(BytesIO(data))) == 96


def test_lead_reserved_roundtrip() -> None:
    data = lead()
    # Name field with bytes after its terminator, followed by non-zero reserved bytes
    data = data[:10] + b"fixture\x00junk".ljust(66, b"\x00") + data[76:80] + bytes(range(16))
    parsed = Lead.parse(BytesIO(data))

    assert parsed.name == "fixture"
    assert parsed.reserved == bytes(range(16))
    assert parsed.dumps() == data

    renamed = replace(parsed, name="other")
    assert renamed.dumps()[10:76] == b"other".ljust(66, b"\x00")
    assert renamed.dumps()[80:] == bytes(range(16))


def test_lead_major_4() -> None:
    assert Lead.parse(BytesIO(lead(major=4))).major == 4


@pytest.mark.parametrize(
    ("data", "message"),
    [
        (b"\x00" * 96, "magic"),
        (lead(major=2), "version"),
        (lead(signature_type=1), "signature type"),
        (lead()[:50], "Truncated"),
    ],
)
def test_lead_invalid(data: bytes, message: str) -> None:
    with pytest.raises(FormatError, match=message):
        Lead.parse(BytesIO(data))


def test_lead_new() -> None:
    new = Lead.new("bash-5.2.26-3", "x86_64")
    data = new.dumps()

    assert len(data) == LEAD_SIZE
    assert data[:4] == b"\xed\xab\xee\xdb"
    assert Lead.parse(BytesIO(data)) == new


def test_lead_long_name_truncated() -> None:
    new = Lead.new("x" * 100)
    data = new.dumps()

    assert len(data) == LEAD_SIZE
    # The name field always keeps a terminating NUL
    assert Lead.parse(BytesIO(data)).name == "x" * 65
