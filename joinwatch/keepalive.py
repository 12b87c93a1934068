"""Minimal HTTP liveness endpoint for hosts that expect a web service."""

import logging

from aiohttp import web

log = logging.getLogger(__name__)

BODY = "Join watch polling service running"


async def handle_root(request):
    return web.Response(text=BODY)


def create_app():
    app = web.Application()
    app.router.add_get("/", handle_root)
    return app


async def start_keep_alive(port, host="0.0.0.0"):
    """Serve the liveness app; returns the runner so the caller can clean it up"""
    runner = web.AppRunner(create_app())
    await runner.setup()
    site = web.TCPSite(runner, host, port)
    await site.start()
    log.info("HTTP server listening on %s", port)
    return runner
