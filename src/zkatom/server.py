"""
HTTP surface untuk satu atom.
Menyediakan read, reset, assoc, status, metrics dan health check.
"""

import asyncio
import logging
from typing import Any, Optional
from aiohttp import web

from .atom import Atom
from .errors import CoordinationError, EncodingError, RetryLimitExceeded
from .utils.metrics import metrics

logger = logging.getLogger(__name__)


def assoc(value: Any, key: str, item: Any) -> dict:
    """Return dict baru dengan key -> item; None diperlakukan sebagai {}"""
    if value is None:
        value = {}
    if not isinstance(value, dict):
        raise TypeError(f"Can't assoc into {type(value).__name__}")
    return {**value, key: item}


class AtomServer:
    """
    aiohttp server untuk satu atom.

    Routes:
    - GET  /api/atom          value dan version
    - POST /api/atom/reset    {"value": ...}
    - POST /api/atom/assoc    {"key": ..., "value": ...}
    - GET  /api/status
    - GET  /api/metrics       Prometheus exposition
    - GET  /health
    """

    def __init__(self, atom: Atom, host: str, port: int):
        """
        Args:
            atom: Atom yang sudah di-start
            host: Host address
            port: Port number
        """
        self.atom = atom
        self.host = host
        self.port = port

        # HTTP server
        self.app = web.Application()
        self.runner: Optional[web.AppRunner] = None
        self.site: Optional[web.TCPSite] = None

        self._setup_routes()
        self._running = False

    def _setup_routes(self):
        """Setup HTTP API routes"""
        self.app.router.add_get('/api/atom', self.handle_deref)
        self.app.router.add_post('/api/atom/reset', self.handle_reset)
        self.app.router.add_post('/api/atom/assoc', self.handle_assoc)
        self.app.router.add_get('/api/status', self.handle_status)
        self.app.router.add_get('/api/metrics', self.handle_metrics)
        self.app.router.add_get('/health', self.handle_health)

    async def start(self):
        """Start HTTP server"""
        self.runner = web.AppRunner(self.app)
        await self.runner.setup()
        self.site = web.TCPSite(self.runner, self.host, self.port)
        await self.site.start()

        self._running = True
        logger.info(f"Atom server for {self.atom.path} started at http://{self.host}:{self.port}")

    async def stop(self):
        """Stop HTTP server"""
        self._running = False

        if self.site:
            await self.site.stop()
        if self.runner:
            await self.runner.cleanup()

        logger.info(f"Atom server for {self.atom.path} stopped")

    async def handle_deref(self, request: web.Request) -> web.Response:
        """Current value dari local cache"""
        snapshot = self.atom.snapshot()
        return self._json({'path': self.atom.path, 'value': snapshot.value, 'version': snapshot.version})

    async def handle_reset(self, request: web.Request) -> web.Response:
        """HTTP endpoint untuk reset"""
        try:
            data = await request.json()
            value = data['value']
        except (ValueError, KeyError, TypeError):
            return web.json_response({'error': 'JSON body with "value" required'}, status=400)

        return await self._write(self.atom.reset(value))

    async def handle_assoc(self, request: web.Request) -> web.Response:
        """HTTP endpoint untuk swap dengan assoc(key, value)"""
        try:
            data = await request.json()
            key = data['key']
            item = data['value']
        except (ValueError, KeyError, TypeError):
            return web.json_response({'error': 'JSON body with "key" and "value" required'}, status=400)

        if not isinstance(self.atom.deref(), (dict, type(None))):
            return web.json_response({'error': 'atom value is not a map'}, status=409)

        return await self._write(self.atom.swap(assoc, str(key), item))

    async def _write(self, operation) -> web.Response:
        try:
            value = await operation
        except (EncodingError, TypeError) as e:
            return web.json_response({'error': str(e)}, status=400)
        except (CoordinationError, RetryLimitExceeded) as e:
            logger.error(f"Write to {self.atom.path} failed: {e}")
            return web.json_response({'error': str(e)}, status=503)

        return self._json({'path': self.atom.path, 'value': value})

    async def handle_status(self, request: web.Request) -> web.Response:
        """Get atom status"""
        status = {
            'path': self.atom.path,
            'address': f"{self.host}:{self.port}",
            'running': self._running,
            'version': self.atom.data_version(),
            'deleted': self.atom.deleted,
            'closed': self.atom.closed
        }
        return web.json_response(status)

    async def handle_metrics(self, request: web.Request) -> web.Response:
        """Export Prometheus metrics"""
        metrics_data = metrics.get_metrics()
        return web.Response(body=metrics_data, content_type='text/plain')

    async def handle_health(self, request: web.Request) -> web.Response:
        """Health check endpoint"""
        if self._running and not self.atom.closed and not self.atom.deleted:
            return web.json_response({'status': 'healthy'})
        else:
            return web.json_response({'status': 'unhealthy'}, status=503)

    @staticmethod
    def _json(body: dict) -> web.Response:
        # Value bisa berisi types yang tidak ada di JSON (set, bytes, complex)
        try:
            return web.json_response(body)
        except TypeError:
            body = {**body, 'value': repr(body['value'])}
            return web.json_response(body)


async def serve_forever(server: AtomServer):
    """Run server sampai di-cancel"""
    await server.start()
    try:
        while True:
            await asyncio.sleep(1)
    finally:
        await server.stop()
