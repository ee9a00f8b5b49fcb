"""Parsing of ssh client output from a sish relay.

The relay writes a banner of CRLF-terminated, ANSI-styled lines. Lines
starting with ``HTTP: `` or ``TCP: `` announce the public tunnel address;
everything else is free-form log output.
"""

import codecs
import re
from enum import Enum

from pydantic import BaseModel, ConfigDict

# CRLF from the relay banner, bare LF from forwarded request logs
LINE_TERMINATOR = re.compile(r"\r?\n")
# Unterminated text beyond this is emitted as a line of its own
MAX_PENDING_SIZE = 65536
HTTP_PREFIX = "HTTP: "
TCP_PREFIX = "TCP: "

# ESC or 8-bit CSI, optional parameters, final byte
ANSI_STYLE_PATTERN = re.compile(
    r"[\x1b\x9b][\[()#;?]*(?:[0-9]{1,4}(?:;[0-9]{0,4})*)?[0-9A-ORZcf-nqry=><]"
)


class LineKind(str, Enum):
    """Classification of a single output line."""

    HTTP_READY = "http_ready"
    TCP_READY = "tcp_ready"
    LOG = "log"


class OutputLine(BaseModel):
    """A cleaned and classified line of relay output."""

    model_config = ConfigDict(frozen=True)

    kind: LineKind
    text: str
    address: str | None = None

    @property
    def is_ready(self) -> bool:
        return self.kind != LineKind.LOG


def strip_ansi(text: str) -> str:
    """Remove terminal styling escape sequences from text."""
    return ANSI_STYLE_PATTERN.sub("", text)


def classify_line(text: str) -> OutputLine:
    """Classify a cleaned line by its prefix.

    HTTP addresses are rewritten to https since the relay terminates TLS.
    """
    if text.startswith(HTTP_PREFIX):
        address = text.replace(HTTP_PREFIX, "", 1).replace("http", "https", 1)
        return OutputLine(kind=LineKind.HTTP_READY, text=text, address=address)

    if text.startswith(TCP_PREFIX):
        address = text.replace(TCP_PREFIX, "", 1)
        return OutputLine(kind=LineKind.TCP_READY, text=text, address=address)

    return OutputLine(kind=LineKind.LOG, text=text)


class OutputParser:
    """Incremental parser turning stdout chunks into classified lines.

    A line whose terminator arrives in a later chunk is held back until the
    terminator (or :meth:`flush`) is seen, or until it grows past
    ``max_pending`` characters.
    """

    def __init__(self, encoding: str = "utf-8", max_pending: int = MAX_PENDING_SIZE):
        self._decoder = codecs.getincrementaldecoder(encoding)(errors="replace")
        self._pending = ""
        self._max_pending = max_pending

    @property
    def pending(self) -> str:
        """Text received after the last line terminator."""
        return self._pending

    def feed(self, chunk: bytes) -> list[OutputLine]:
        """Parse one stdout chunk.

        Args:
            chunk: Raw bytes as read from the process

        Returns:
            Lines completed by this chunk, in stream order
        """
        text = self._pending + self._decoder.decode(chunk)
        *segments, self._pending = LINE_TERMINATOR.split(text)
        if len(self._pending) > self._max_pending:
            segments.append(self._pending)
            self._pending = ""
        return self._parse_segments(segments)

    def flush(self) -> list[OutputLine]:
        """Parse whatever remains once the stream has ended."""
        text = self._pending + self._decoder.decode(b"", final=True)
        self._pending = ""
        return self._parse_segments([text])

    def _parse_segments(self, segments: list[str]) -> list[OutputLine]:
        lines = []
        for segment in segments:
            text = strip_ansi(segment)
            if not text:
                continue
            lines.append(classify_line(text))
        return lines
