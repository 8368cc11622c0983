from __future__ import annotations

# Socket.IO session id assigned by the transport on connect.
ConnectionID = str

# Monotonic session counter handed out by the SessionTable.
Generation = int
