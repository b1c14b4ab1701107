"""
=============================================================================
CONNECTION: BUFFERED NON-BLOCKING SOCKET
=============================================================================

A Connection wraps one accepted client socket. The socket is non-blocking:
every read or write happens only after the reactor says the socket is
ready, and a call that would block simply returns so the session can wait
for the next readiness event.

=============================================================================
TCP IS A BYTE STREAM
=============================================================================

recv() returns whatever has arrived, not whole requests:

    recv() → "GET /api/us"
    recv() → "ers HTTP/1.1\r\nHost: x\r\n\r\nGET /b HTTP/1.1\r\n\r\n"

So bytes are appended to a buffer, and extract_request() cuts one complete
request off the front whenever the buffer holds one:

    ┌──────────────────────────────── buffer ───────────────────────────────┐
    │ GET /api/users HTTP/1.1\r\n ... \r\n\r\n │ body │ GET /b HTTP/1.1 ... │
    └──────────────────────────────────────────┴──────┴─────────────────────┘
      head (ends at \r\n\r\n)                   Content-  next request stays
                                                Length    buffered (pipelining)

Framing rules:
    • head must end within max_header_size bytes
    • Content-Length, if present, must be a non-negative integer
    • Transfer-Encoding: chunked is not supported
    • head + body must fit in max_request_size
Any violation raises HTTPParseError; the session answers 400 and closes.

=============================================================================
WRITING
=============================================================================

queue() appends serialized response bytes to an outgoing buffer and
flush() sends as much as the kernel accepts. flush() returns True once the
buffer is empty; False means "wait for write readiness and call again".

=============================================================================
"""

import logging
import socket
import threading
import time
import uuid
from dataclasses import dataclass, field
from typing import Optional, Tuple

from ..http.request import HTTPParseError


logger = logging.getLogger(__name__)


HEADER_TERMINATOR = b"\r\n\r\n"


@dataclass
class Connection:
    """
    One client socket plus its read and write buffers.

    Attributes:
        socket: The accepted client socket (switched to non-blocking).
        address: Client's (ip, port) tuple.
        id: Short identifier for log lines.
        created_at: Accept time.
        requests_handled: Requests extracted so far.
        buffer_size: Bytes requested per recv().
        max_header_size: Largest accepted request head.
        max_request_size: Largest accepted head + body.
    """

    socket: socket.socket
    address: Tuple[str, int]

    id: str = field(default_factory=lambda: str(uuid.uuid4())[:8])
    created_at: float = field(default_factory=time.time)
    requests_handled: int = 0

    buffer_size: int = 8192
    max_header_size: int = 64 * 1024
    max_request_size: int = 10 * 1024 * 1024

    _buffer: bytearray = field(default_factory=bytearray, repr=False)
    _outgoing: bytearray = field(default_factory=bytearray, repr=False)
    _closed: bool = field(default=False, repr=False)
    _close_lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def __post_init__(self):
        self.socket.setblocking(False)

    @property
    def client_ip(self) -> str:
        return self.address[0] if self.address else ""

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def has_buffered_data(self) -> bool:
        return bool(self._buffer)

    def fileno(self) -> int:
        return self.socket.fileno()

    # =========================================================================
    # READING
    # =========================================================================

    def receive(self) -> Optional[bytes]:
        """
        Read whatever is available into the buffer.

        Returns:
            The bytes read; b"" on EOF or a transport error (the peer is
            gone); None if the socket has nothing to read right now.
        """
        try:
            data = self.socket.recv(self.buffer_size)
        except (BlockingIOError, InterruptedError):
            return None
        except OSError as e:
            logger.debug(f"[{self.id}] recv failed: {e}")
            return b""

        self._buffer += data
        return data

    def extract_request(self) -> Optional[bytes]:
        """
        Cut one complete request off the front of the buffer.

        Returns:
            The request bytes (head + body), or None if the buffer does not
            hold a complete request yet.

        Raises:
            HTTPParseError: If the buffered bytes can never form a valid
                            request.
        """
        header_end = self._buffer.find(HEADER_TERMINATOR)
        if header_end == -1:
            if len(self._buffer) > self.max_header_size:
                raise HTTPParseError(f"Request head exceeds {self.max_header_size} bytes")
            return None

        if header_end > self.max_header_size:
            raise HTTPParseError(f"Request head exceeds {self.max_header_size} bytes")

        head = bytes(self._buffer[:header_end])
        content_length = self._content_length(head)

        request_end = header_end + len(HEADER_TERMINATOR) + content_length
        if request_end > self.max_request_size:
            raise HTTPParseError(f"Request exceeds {self.max_request_size} bytes")

        if len(self._buffer) < request_end:
            return None

        request_data = bytes(self._buffer[:request_end])
        del self._buffer[:request_end]
        self.requests_handled += 1
        return request_data

    @staticmethod
    def _content_length(head: bytes) -> int:
        """
        Content-Length from a raw head, 0 if absent.

        This runs before the request is parsed, so it does its own simple
        scan of the header lines.
        """
        length: Optional[int] = None
        raw_length: Optional[str] = None
        for line in head.decode("iso-8859-1").split("\r\n")[1:]:
            name, sep, value = line.partition(":")
            if not sep:
                continue
            name = name.strip().lower()
            value = value.strip()

            if name == "transfer-encoding" and "chunked" in value.lower():
                raise HTTPParseError("Chunked request bodies are not supported")

            if name == "content-length":
                try:
                    parsed = int(value)
                except ValueError:
                    raise HTTPParseError(f"Invalid Content-Length: {value!r}")
                if parsed < 0:
                    raise HTTPParseError(f"Negative Content-Length: {value!r}")
                if raw_length is not None and value != raw_length:
                    raise HTTPParseError("Conflicting Content-Length headers")
                length = parsed
                raw_length = value

        return length or 0

    # =========================================================================
    # WRITING
    # =========================================================================

    def queue(self, data: bytes) -> None:
        self._outgoing += data

    def flush(self) -> bool:
        """
        Send as much queued data as the socket accepts.

        Returns:
            True when everything queued has been sent, False if the socket
            would block before that.

        Raises:
            OSError: If the peer is gone.
        """
        while self._outgoing:
            try:
                sent = self.socket.send(self._outgoing)
            except (BlockingIOError, InterruptedError):
                return False
            del self._outgoing[:sent]
        return True

    # =========================================================================
    # CLOSING
    # =========================================================================

    def close(self) -> bool:
        """
        Close the socket. Only the first call does anything.

        Returns:
            True if this call closed the socket.
        """
        with self._close_lock:
            if self._closed:
                return False
            self._closed = True

        try:
            # FIN first, so a response already queued is not cut off by RST
            self.socket.shutdown(socket.SHUT_WR)
        except OSError:
            pass

        try:
            while self.socket.recv(self.buffer_size):
                pass
        except OSError:
            pass

        try:
            self.socket.close()
        except OSError as e:
            logger.debug(f"[{self.id}] close failed: {e}")

        self._buffer = bytearray()
        self._outgoing = bytearray()
        logger.debug(f"[{self.id}] Connection closed after {self.requests_handled} request(s)")
        return True
