"""
Read-only HTTP view of a running node: status, finger table and keys.
"""

import asyncio
import logging
import threading
from concurrent.futures import TimeoutError as SnapshotTimeout
from typing import Any, Dict, Optional

from flask import Flask, jsonify
from werkzeug.serving import make_server

from chord.node import ChordNode

SNAPSHOT_TIMEOUT = 2.0  # seconds


def node_snapshot(node: ChordNode) -> Dict[str, Any]:
    """Everything the dashboard shows, taken in one go."""
    status = node.get_status()
    status['fingers'] = node.finger_table.to_list()
    status['keys'] = node.get_keys()
    return status


def create_app(node: ChordNode, loop: Optional[asyncio.AbstractEventLoop] = None) -> Flask:
    """
    Build the dashboard app for node.

    When loop is given, snapshots are taken on that event loop so the
    request thread never touches ring state while the loop mutates it.
    """
    app = Flask(__name__)

    def snapshot() -> Dict[str, Any]:
        if loop is None:
            return node_snapshot(node)

        async def take():
            return node_snapshot(node)

        return asyncio.run_coroutine_threadsafe(take(), loop).result(SNAPSHOT_TIMEOUT)

    @app.route('/api/node', methods=['GET'])
    def get_node():
        """Node identity, successor and predecessor."""
        data = snapshot()
        data.pop('fingers')
        data.pop('keys')
        return jsonify({'status': 'success', 'node': data})

    @app.route('/api/fingers', methods=['GET'])
    def get_fingers():
        """The finger table."""
        data = snapshot()
        return jsonify({'status': 'success', 'node_id': data['node_id'],
                        'fingers': data['fingers']})

    @app.route('/api/keys', methods=['GET'])
    def get_keys():
        """Keys owned by this node."""
        data = snapshot()
        return jsonify({'status': 'success', 'node_id': data['node_id'], 'keys': data['keys']})

    @app.errorhandler(SnapshotTimeout)
    def snapshot_timeout(error):
        return jsonify({'status': 'error', 'message': 'node did not answer in time'}), 503

    return app


class DashboardServer:
    """Serves a dashboard app from a background thread."""

    def __init__(self, app: Flask, host: str, port: int):
        self.app = app
        self.host = host
        self.port = port
        self._server = None
        self._thread: Optional[threading.Thread] = None
        self.logger = logging.getLogger("Dashboard")

    def start(self):
        self._server = make_server(self.host, self.port, self.app, threaded=True)
        self.port = self._server.server_port
        self._thread = threading.Thread(target=self._server.serve_forever,
                                        name="dashboard", daemon=True)
        self._thread.start()
        self.logger.info(f"Dashboard at http://{self.host}:{self.port}/api/node")

    def stop(self):
        if self._server is not None:
            self._server.shutdown()
            self._thread.join(timeout=5.0)
            self._server = None
            self.logger.info("Dashboard stopped")


def serve_dashboard(node: ChordNode, host: str, port: int,
                    loop: Optional[asyncio.AbstractEventLoop] = None) -> DashboardServer:
    """Create and start a dashboard for node."""
    server = DashboardServer(create_app(node, loop), host, port)
    server.start()
    return server
