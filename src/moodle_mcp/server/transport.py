"""
STDIO Transport — newline-delimited JSON-RPC

Reads from stdin, writes to stdout.
NEVER pollutes stdout with logs.
"""

import sys
import json
import asyncio
from typing import Any, BinaryIO, Dict, Optional

from moodle_mcp.server.logger import get_logger
from moodle_mcp.server.protocol import ProtocolError, PARSE_ERROR

log = get_logger("transport")

# Large enough for any single request line a client sends
READ_LIMIT = 2**20


class StdioTransport:
    """Line-oriented JSON-RPC transport over stdin/stdout."""

    def __init__(self):
        self.running = False
        self._reader: Optional[asyncio.StreamReader] = None
        self._stdout: Optional[BinaryIO] = None

    async def start(self):
        """Initialize async stdin reader and direct stdout writer."""
        loop = asyncio.get_running_loop()

        self._reader = asyncio.StreamReader(limit=READ_LIMIT)
        protocol = asyncio.StreamReaderProtocol(self._reader)
        await loop.connect_read_pipe(lambda: protocol, sys.stdin.buffer)

        self.attach(self._reader, sys.stdout.buffer)
        log.info("Transport initialized")

    def attach(self, reader: asyncio.StreamReader, stdout: BinaryIO):
        """Bind to an existing reader/writer pair."""
        self._reader = reader
        self._stdout = stdout
        self.running = True

    async def read_message(self) -> Optional[Dict[str, Any]]:
        """
        Read one JSON-RPC message.
        Returns the parsed message, None on EOF; raises ProtocolError on bad JSON.
        """
        if not self._reader:
            raise RuntimeError("Transport not started")

        while True:
            raw_bytes = await self._reader.readline()
            if not raw_bytes:
                return None
            if raw_bytes.strip():
                break

        try:
            parsed = json.loads(raw_bytes)
        except json.JSONDecodeError as exc:
            log.error(f"JSON parse error: {exc}")
            raise ProtocolError(PARSE_ERROR, f"Parse error: {exc}")

        log.debug(f"<- {parsed.get('method', 'response') if isinstance(parsed, dict) else '?'}")
        return parsed

    async def write_message(self, message: Dict[str, Any]):
        """Write a JSON-RPC message to stdout."""
        if self._stdout is None:
            raise RuntimeError("Transport not started")

        raw_text = json.dumps(message, separators=(",", ":")) + "\n"
        self._stdout.write(raw_text.encode("utf-8"))
        self._stdout.flush()
        log.debug(f"-> id={message.get('id')} ({len(raw_text)} bytes)")

    async def close(self):
        self.running = False
        log.info("Transport closed")
