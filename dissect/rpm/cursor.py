from __future__ import annotations

import io
from bisect import bisect_right
from itertools import accumulate

from dissect.util.stream import AlignedStream

SEGMENT_BUFFER_SIZE = 64 * 1024


class SequentialCursor(AlignedStream):
    """Present an ordered list of byte buffers as one contiguous read-only stream.

    The buffers are borrowed through :class:`memoryview` objects and are never concatenated, so a header and a
    payload of several hundreds of megabytes can be digested as ``header || payload`` without duplicating either.

    Seeking is limited to the logical length of the stream.
    """

    def __init__(self, segments: list[bytes | bytearray | memoryview], align: int = SEGMENT_BUFFER_SIZE):
        self.segments = [memoryview(segment).cast("B") for segment in segments]
        self.offsets = [0, *accumulate(len(segment) for segment in self.segments)]
        super().__init__(size=self.offsets[-1], align=align)

    def __len__(self) -> int:
        return self.size

    def seek(self, pos: int, whence: int = io.SEEK_SET) -> int:
        if whence == io.SEEK_SET:
            target = pos
        elif whence == io.SEEK_CUR:
            target = self.tell() + pos
        elif whence == io.SEEK_END:
            target = self.size + pos
        else:
            raise ValueError(f"Invalid whence value {whence}")

        if not 0 <= target <= self.size:
            raise ValueError(f"Seek to {target} outside of stream (size {self.size})")

        return super().seek(target, io.SEEK_SET)

    def _read(self, offset: int, length: int) -> bytes:
        result = []

        # Segment containing ``offset``, skipping over empty segments
        idx = bisect_right(self.offsets, offset) - 1
        length = min(length, self.size - offset)

        while length > 0 and idx < len(self.segments):
            segment = self.segments[idx]
            segment_offset = offset - self.offsets[idx]

            chunk = segment[segment_offset : segment_offset + length]
            result.append(chunk)

            offset += len(chunk)
            length -= len(chunk)
            idx += 1

        return b"".join(result)
