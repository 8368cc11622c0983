from __future__ import annotations

import logging
import os
import socket

import flask
import flask_socketio

from pairlink.configurations import server_config
from pairlink.configurations.configuration_constants import (InboundEvents,
                                                             OutboundEvents,
                                                             TransportDefaults)
from pairlink.server.matching_service import MatchingService
from pairlink.server.notifier import SocketIONotifier


def setup_logger(name, log_file, level=logging.INFO):
    formatter = logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )
    handler = logging.FileHandler(log_file)
    handler.setFormatter(formatter)

    # Create console handler with a higher log level
    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)

    logger = logging.getLogger(name)
    logger.setLevel(level)
    logger.handlers.clear()
    logger.addHandler(handler)
    logger.addHandler(console_handler)
    logger.propagate = False

    return logger


CONFIG = server_config.ServerConfig()

# Everything under the "pairlink" logger shares the host process handlers.
logger = setup_logger("pairlink", CONFIG.log_file, level=CONFIG.log_level)


#######################
# Flask Configuration #
#######################

app = flask.Flask(__name__)
app.config["SECRET_KEY"] = os.environ.get("SECRET_KEY", "secret!")

app.config["DEBUG"] = CONFIG.debug

socketio = flask_socketio.SocketIO(
    app,
    cors_allowed_origins=CONFIG.client_origin,
    cors_credentials=CONFIG.cors_credentials,
    logger=app.config["DEBUG"],
    ping_interval=TransportDefaults.PingInterval,
    ping_timeout=TransportDefaults.PingTimeout,
)

# Single owner of queues, sessions and the connection registry.
# Replaced in run() once the configured matchmaker is known.
SERVICE: MatchingService = MatchingService(notifier=SocketIONotifier(socketio))


#######################
# Health and Debug    #
#######################


@app.route("/")
def index():
    return "OK"


@app.route("/health")
def health():
    return flask.jsonify({"status": "ok"}), 200


@app.route("/debug/queues")
def debug_queues():
    """Read-only snapshot of queue sizes and active pairings."""
    return flask.jsonify(SERVICE.snapshot()), 200


###########################
# Socket.IO Event Handlers #
###########################


@socketio.on("connect")
def on_connect(auth=None):
    logger.info(f"Socket connected: {flask.request.sid}")
    SERVICE.connect(flask.request.sid)


@socketio.on(InboundEvents.Join)
def on_join(data=None):
    """Enter the learner or teacher queue.

    Accepts the bare role string or {"role": <role>}.
    """
    role = data.get("role") if isinstance(data, dict) else data
    if not role:
        logger.warning(f"Join from {flask.request.sid} without a role, ignoring")
        return

    logger.info(f"Join event: socket {flask.request.sid} joined as {role!r}")
    SERVICE.join(flask.request.sid, role)


@socketio.on(InboundEvents.Signal)
def on_signal(data=None):
    """
    Relay handshake messages between partners.

    Routes SDP offers/answers and ICE candidates through the server since the
    peers cannot reach each other until the direct connection is up. The
    "signal" value is forwarded untouched.
    """
    if not isinstance(data, dict) or not data.get("to"):
        logger.warning(f"Malformed signal from {flask.request.sid}: {type(data).__name__}")
        return

    SERVICE.relay(
        from_id=flask.request.sid,
        to_id=data["to"],
        payload=data.get("signal"),
        generation=data.get("generation"),
    )


@socketio.on(InboundEvents.Next)
def on_next(data=None):
    generation = data.get("generation") if isinstance(data, dict) else None
    SERVICE.skip(flask.request.sid, generation=generation)


@socketio.on(InboundEvents.GetOnlineCount)
def on_get_online_count(data=None):
    count = SERVICE.online_count()
    flask_socketio.emit(OutboundEvents.OnlineCount, count)
    logger.debug(f"Sent online count {count} to {flask.request.sid}")
    return count


@socketio.on("disconnect")
def on_disconnect(reason=None):
    logger.info(f"Disconnect event received for socket {flask.request.sid} (reason: {reason})")
    SERVICE.disconnect(flask.request.sid)


def _local_ip() -> str:
    try:
        s = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        s.connect(("8.8.8.8", 80))
        local_ip = s.getsockname()[0]
        s.close()
    except OSError:
        local_ip = "unavailable"
    return local_ip


def run(config: server_config.ServerConfig):
    global CONFIG, SERVICE, logger
    CONFIG = config

    app.config["DEBUG"] = config.debug
    logger = setup_logger(
        "pairlink",
        config.log_file,
        level=logging.DEBUG if config.debug else config.log_level,
    )

    # Rebuild the Socket.IO server with the configured CORS and ping settings.
    # Handlers registered above are re-attached by init_app().
    socketio.init_app(
        app,
        cors_allowed_origins=config.client_origin,
        cors_credentials=config.cors_credentials,
        logger=config.debug,
        ping_interval=config.ping_interval,
        ping_timeout=config.ping_timeout,
        transports=config.transports,
    )

    SERVICE = MatchingService(
        notifier=SocketIONotifier(socketio),
        matchmaker=config.matchmaker,
    )

    logger.info(f"Server configuration: {config.to_dict()}")

    print("\n" + "=" * 70)
    print("pairlink signaling server")
    print("=" * 70)
    print("\nServer starting on:")
    print(f"  Local:   http://localhost:{config.port}")
    print(f"  Network: http://{_local_ip()}:{config.port}")
    print(f"  CLIENT_ORIGIN={config.client_origin}")
    print("=" * 70 + "\n")

    socketio.run(
        app,
        log_output=config.debug,
        port=config.port,
        host=config.host,
    )
