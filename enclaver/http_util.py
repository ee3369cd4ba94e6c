"""A small HTTP server on localhost and response helpers."""

from __future__ import annotations

import abc
import asyncio
import logging
import socket
from dataclasses import dataclass, field
from http import HTTPStatus

from aiohttp import web

_log = logging.getLogger(__name__)


@dataclass
class Request:
    method: str
    path: str
    body: bytes = b""
    headers: dict[str, str] = field(default_factory=dict)


@dataclass
class Response:
    status: int
    body: bytes = b""
    headers: dict[str, str] = field(default_factory=dict)


class HttpHandler(abc.ABC):
    """Turns a request into a response."""

    @abc.abstractmethod
    async def handle(self, req: Request) -> Response:
        """Handle one request; exceptions become 500 responses."""


class HttpServer:
    """An HTTP server listening on 127.0.0.1."""

    def __init__(self, sock: socket.socket) -> None:
        self._sock = sock

    @classmethod
    def bind(cls, listen_port: int) -> HttpServer:
        return cls(socket.create_server(("127.0.0.1", listen_port)))

    @property
    def port(self) -> int:
        return self._sock.getsockname()[1]

    async def serve(self, handler: HttpHandler) -> None:
        """Serve requests until cancelled."""

        async def dispatch(raw: web.BaseRequest) -> web.Response:
            req = Request(
                method=raw.method,
                path=raw.path,
                body=await raw.read(),
                headers=dict(raw.headers),
            )
            try:
                resp = await handler.handle(req)
            except Exception as err:  # noqa: BLE001 - every failure becomes a 500
                _log.debug("handler failed: %s", err)
                resp = internal_srv_err(str(err))
            return web.Response(status=int(resp.status), body=resp.body, headers=resp.headers)

        low_level = web.Server(dispatch)
        loop = asyncio.get_running_loop()
        server = await loop.create_server(low_level, sock=self._sock)
        try:
            async with server:
                await server.serve_forever()
        finally:
            await low_level.shutdown()


def internal_srv_err(msg: str) -> Response:
    return Response(HTTPStatus.INTERNAL_SERVER_ERROR, msg.encode())


def bad_request(msg: str) -> Response:
    return Response(HTTPStatus.BAD_REQUEST, msg.encode())


def method_not_allowed() -> Response:
    return Response(HTTPStatus.METHOD_NOT_ALLOWED)


def not_found() -> Response:
    return Response(HTTPStatus.NOT_FOUND)