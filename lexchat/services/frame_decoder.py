"""
SSE frame decoder.

Turns raw body chunks of the streaming chat response into text frames:
one frame per non-blank line, with the "data:" prefix removed. Decoding is
incremental, so multi-byte characters and lines may be split anywhere
across chunks.
"""

import codecs
from typing import AsyncGenerator, AsyncIterator, Optional

END_MARKER = "[DONE]"
DATA_PREFIX = "data:"


def normalize_line(line: str) -> Optional[str]:
    """Strip whitespace and the data: prefix; None for blank lines."""
    frame = line.strip()
    if frame.startswith(DATA_PREFIX):
        frame = frame[len(DATA_PREFIX):].strip()
    return frame or None


class FrameDecoder:
    """
    Incremental line splitter for one stream.

    The undelimited tail of the buffer is kept until the next chunk (or
    flush). Once the end marker is seen the decoder is finished and
    everything after it is discarded.
    """

    def __init__(self) -> None:
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._buffer = ""
        self.finished = False

    def feed(self, chunk: bytes) -> list[str]:
        """Consume one chunk and return the frames it completed."""
        if self.finished:
            return []
        self._buffer += self._decoder.decode(chunk)
        *lines, self._buffer = self._buffer.split("\n")
        return self._emit(lines)

    def flush(self) -> list[str]:
        """Return the final undelimited line, if any, at end of stream."""
        if self.finished:
            return []
        self._buffer += self._decoder.decode(b"", final=True)
        remainder, self._buffer = self._buffer, ""
        return self._emit([remainder])

    def _emit(self, lines: list[str]) -> list[str]:
        frames: list[str] = []
        for line in lines:
            frame = normalize_line(line)
            if frame is None:
                continue
            if frame == END_MARKER:
                self.finished = True
                self._buffer = ""
                break
            frames.append(frame)
        return frames


async def iter_frames(chunks: AsyncIterator[bytes]) -> AsyncGenerator[str, None]:
    """
    Yield frames from an async iterator of body chunks.

    Stops at the end marker or when the chunks run out. Errors raised by
    the chunk source propagate unchanged.
    """
    decoder = FrameDecoder()
    async for chunk in chunks:
        for frame in decoder.feed(chunk):
            yield frame
        if decoder.finished:
            return
    for frame in decoder.flush():
        yield frame
