"""Incremental Server-Sent Events decoder.

The Cortex runner streams run progress as SSE. Network chunks arrive with
arbitrary boundaries (mid-line, mid-field, even mid-character), so the
decoder keeps undecoded bytes and partial lines between ``feed`` calls and
only returns frames once their terminating blank line has been seen.

Example:
    >>> decoder = SSEDecoder()
    >>> decoder.feed(b'data: {"type": "fi')
    []
    >>> decoder.feed(b'nal"}\\n\\n')
    [SSEFrame(event='message', data='{"type": "final"}', id='', retry=None)]
"""

import codecs
import re
from dataclasses import dataclass
from typing import Optional

_LINE_END = re.compile(r"\r\n|\r|\n")


@dataclass(frozen=True)
class SSEFrame:
    """One dispatched SSE event."""

    event: str = "message"
    data: str = ""
    id: str = ""
    retry: Optional[int] = None


class SSEDecoder:
    """Stateful SSE parser fed with raw byte chunks in arrival order."""

    def __init__(self):
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._buffer = ""
        self._started = False
        self._pending_cr = False

        self._event = ""
        self._data: list[str] = []
        self._last_id = ""
        self._retry: Optional[int] = None

    def feed(self, chunk: bytes) -> list[SSEFrame]:
        """Decode a chunk and return the frames it completed.

        Args:
            chunk: Next bytes received from the transport

        Returns:
            Frames completed by this chunk, possibly empty.
        """
        text = self._decoder.decode(chunk)
        if not self._started and text:
            self._started = True
            if text.startswith("\ufeff"):
                text = text[1:]
        buffer = self._buffer + text
        if not buffer:
            return []

        pos = 0
        # A CR ending the previous chunk may be the first half of CRLF
        if self._pending_cr:
            self._pending_cr = False
            if buffer.startswith("\n"):
                pos = 1

        frames = []
        for match in _LINE_END.finditer(buffer, pos):
            line = buffer[pos : match.start()]
            pos = match.end()
            frame = self._process_line(line)
            if frame is not None:
                frames.append(frame)

        self._pending_cr = 0 < pos == len(buffer) and buffer[pos - 1] == "\r"
        self._buffer = buffer[pos:]
        return frames

    def _process_line(self, line: str) -> Optional[SSEFrame]:
        if not line:
            return self._dispatch()
        if line.startswith(":"):
            return None

        name, sep, value = line.partition(":")
        if sep and value.startswith(" "):
            value = value[1:]

        if name == "event":
            self._event = value
        elif name == "data":
            self._data.append(value)
        elif name == "id":
            if "\0" not in value:
                self._last_id = value
        elif name == "retry":
            if value.isascii() and value.isdigit():
                self._retry = int(value)
        # Unknown fields are ignored
        return None

    def _dispatch(self) -> Optional[SSEFrame]:
        event, data = self._event, self._data
        self._event = ""
        self._data = []
        if not data:
            return None
        return SSEFrame(
            event=event or "message",
            data="\n".join(data),
            id=self._last_id,
            retry=self._retry,
        )
