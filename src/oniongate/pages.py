"""
Route tables for the two endpoints.

Both pages show the onion address once discovery has published it.
"""

import html
from typing import List, Optional

from aiohttp import web

from oniongate.address import SharedAddressCell
from oniongate.supervisor import ProcessSupervisor

ONION_GREETING = "<p>You are connected via the Tor network (onion service).</p>"
PUBLIC_GREETING = (
    "<p>You are connected via the public endpoint. If you reached this through the Tor "
    "network, your connection is indirect; otherwise, you're connected directly.</p>"
)


def _address_paragraph(address: Optional[str]) -> str:
    if address is None:
        return "<p>The onion address is not yet known.</p>"
    return f"<p>Onion address: <code>{html.escape(address)}</code></p>"


def render_page(greeting: str, address: Optional[str]) -> str:
    return f"<h1>Hello!</h1>{greeting}{_address_paragraph(address)}"


def onion_routes(cell: SharedAddressCell) -> List[web.RouteDef]:
    """Routes served on the loopback listener the onion service forwards to."""
    async def index(request: web.Request) -> web.Response:
        return web.Response(text=render_page(ONION_GREETING, cell.get()), content_type="text/html")

    return [web.get("/", index)]


def public_routes(cell: SharedAddressCell, supervisor: Optional[ProcessSupervisor] = None) -> List[web.RouteDef]:
    """Routes served on the public listener."""
    async def index(request: web.Request) -> web.Response:
        return web.Response(text=render_page(PUBLIC_GREETING, cell.get()), content_type="text/html")

    async def healthz(request: web.Request) -> web.Response:
        body = {"onion_address": cell.get()}
        if supervisor is not None:
            body["helper"] = {
                "state": supervisor.state.value,
                "supervised": not supervisor.finished,
                "attempts": supervisor.attempts,
                "max_attempts": supervisor.max_attempts,
            }
        return web.json_response(body)

    return [web.get("/", index), web.get("/healthz", healthz)]
