"""
MCP Server — Main Orchestrator

Ties together:
  Transport -> Protocol -> Router -> Tool modules

Flow:
  1. Transport reads one line from stdin
  2. Protocol validates JSON-RPC 2.0
  3. Router dispatches to the correct handler
  4. Transport writes the response to stdout

Messages are handled one at a time; tool calls never overlap.
"""

import asyncio
import signal
from typing import Awaitable, Callable, List, Optional

from moodle_mcp.config import Config
from moodle_mcp.server.logger import get_logger
from moodle_mcp.server.transport import StdioTransport
from moodle_mcp.server.protocol import (
    validate_message,
    make_response,
    make_error,
    ProtocolError,
    INTERNAL_ERROR,
)
from moodle_mcp.server.router import Router

log = get_logger("server")


class MCPServer:
    """
    Main server orchestrator.

    Usage:
        server = MCPServer()
        server.register_tools(TOOLS, handle_tool)
        server.register_resources(list_resources, read_resource)
        server.on_shutdown(client.aclose)
        await server.run()
    """

    def __init__(self, transport: Optional[StdioTransport] = None):
        Config.ensure_dirs()

        self._transport = transport or StdioTransport()
        self._router = Router()
        self._shutdown_hooks: List[Callable[[], Awaitable[None]]] = []
        self._running = False

    # -- tool/resource registration (call before run) --

    def register_tools(self, tools_list, handler):
        """Register a tools module with the router."""
        self._router.register_tools_module(tools_list, handler)

    def register_resources(self, lister, reader):
        """Register a resources provider with the router."""
        self._router.register_resources(lister, reader)

    def on_shutdown(self, hook: Callable[[], Awaitable[None]]):
        """Run hook (async, no args) during shutdown."""
        self._shutdown_hooks.append(hook)

    @property
    def router(self) -> Router:
        return self._router

    # -- main loop --

    async def run(self, start_transport: bool = True):
        """Start the server and process messages until EOF or signal."""
        log.info(f"Starting {Config.SERVER_NAME} v{Config.SERVER_VERSION}")

        if start_transport:
            await self._transport.start()

        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, lambda: asyncio.create_task(self.shutdown()))
            except (NotImplementedError, RuntimeError):
                pass

        self._running = True
        log.info(
            f"Server ready — tools={self._router.tool_count} "
            f"resource providers={self._router.resource_provider_count}"
        )

        try:
            while self._running:
                try:
                    msg = await self._transport.read_message()
                except ProtocolError as exc:
                    await self._transport.write_message(make_error(None, exc.code, exc.message))
                    continue

                if msg is None:
                    log.info("EOF on stdin — shutting down")
                    break

                await self.handle_message(msg)

        except asyncio.CancelledError:
            log.info("Server cancelled")
        except Exception as exc:
            log.error(f"Server error: {exc}", exc_info=True)
        finally:
            await self.shutdown()

    async def handle_message(self, msg):
        """Process a single JSON-RPC message through the full pipeline."""
        request_id = msg.get("id") if isinstance(msg, dict) else None

        try:
            msg_type = validate_message(msg)
            result = await self._router.route(msg_type, msg)

            if result is None or msg_type != "request":
                return

            await self._transport.write_message(make_response(request_id, result))

        except ProtocolError as exc:
            log.warning(f"Protocol error: {exc.message} (code={exc.code})")
            if request_id is not None:
                await self._transport.write_message(
                    make_error(request_id, exc.code, exc.message, exc.data)
                )

        except Exception as exc:
            log.error(f"Unhandled error: {exc}", exc_info=True)
            if request_id is not None:
                await self._transport.write_message(make_error(request_id, INTERNAL_ERROR, str(exc)))

    async def shutdown(self):
        """Graceful shutdown — run hooks, close transport."""
        if not self._running:
            return
        self._running = False

        for hook in self._shutdown_hooks:
            try:
                await hook()
            except Exception as exc:
                log.error(f"Shutdown hook failed: {exc}", exc_info=True)

        await self._transport.close()
        log.info("Server stopped")
