"""
Run the pairlink matching and signaling server.

Usage:
    python -m pairlink --port 3000
    python -m pairlink --initiator-rule hashed --client-origin https://example.org
"""

from __future__ import annotations

import eventlet

eventlet.monkey_patch()

from pairlink import cli
from pairlink.server import app

if __name__ == "__main__":
    app.run(cli.build_config())
