from __future__ import annotations

import logging
import os

from pairlink.configurations.configuration_constants import TransportDefaults
from pairlink.server.matchmaker import Matchmaker
from pairlink.utils.sentinels import NotProvided

logger = logging.getLogger(__name__)


class ServerConfig:
    def __init__(self):

        # Hosting
        self.host = os.environ.get("HOST", "0.0.0.0")
        self.port = int(os.environ.get("PORT", 3000))

        # CORS. "*" cannot be combined with credentials, so credentials are
        # only enabled for an explicit origin.
        self.client_origin: str = os.environ.get("CLIENT_ORIGIN", "*")

        # Socket.IO transport
        self.ping_interval: int = TransportDefaults.PingInterval
        self.ping_timeout: int = TransportDefaults.PingTimeout
        self.transports: list[str] = list(TransportDefaults.Transports)

        # Matching
        self.matchmaker: Matchmaker | None = None

        # Logging
        self.log_file: str = os.environ.get("PAIRLINK_LOG_FILE", "./pairlink.log")
        self.log_level: int = logging.INFO
        self.debug: bool = os.getenv("FLASK_ENV", "production") == "development"

    @property
    def cors_credentials(self) -> bool:
        return self.client_origin != "*"

    def hosting(
        self,
        host: str | None = NotProvided,
        port: int | None = NotProvided,
    ) -> ServerConfig:
        if host is not NotProvided:
            self.host = host

        if port is not NotProvided:
            self.port = port

        return self

    def cors(self, client_origin: str = NotProvided) -> ServerConfig:
        """
        Restrict which browser origin may open Socket.IO connections.

        Falls back to the CLIENT_ORIGIN environment variable, then to "*".

        Args:
            client_origin: Frontend origin, e.g. "https://example.netlify.app"
        """
        if client_origin is not NotProvided:
            self.client_origin = client_origin

        if self.cors_credentials:
            logger.info(f"CORS restricted to {self.client_origin} (credentials allowed)")
        else:
            logger.info("CORS open to all origins (credentials disabled)")

        return self

    def transport(
        self,
        ping_interval: int = NotProvided,
        ping_timeout: int = NotProvided,
        transports: list[str] = NotProvided,
    ) -> ServerConfig:
        """
        Configure Socket.IO liveness detection.

        A connection is reported as disconnected once it misses a pong for
        ping_interval + ping_timeout seconds. The matching core has no
        heartbeat of its own and relies on this.
        """
        if ping_interval is not NotProvided:
            self.ping_interval = ping_interval

        if ping_timeout is not NotProvided:
            self.ping_timeout = ping_timeout

        if transports is not NotProvided:
            unknown = set(transports) - set(TransportDefaults.Transports)
            if unknown:
                raise ValueError(f"Unknown Socket.IO transports: {sorted(unknown)}")
            self.transports = list(transports)

        return self

    def matching(self, matchmaker: Matchmaker = NotProvided) -> ServerConfig:
        if matchmaker is not NotProvided:
            if matchmaker is not None and not isinstance(matchmaker, Matchmaker):
                raise TypeError(
                    f"matchmaker must be a Matchmaker instance, got {type(matchmaker).__name__}"
                )
            self.matchmaker = matchmaker

        return self

    def logging(
        self,
        log_file: str = NotProvided,
        level: int = NotProvided,
        debug: bool = NotProvided,
    ) -> ServerConfig:
        if log_file is not NotProvided:
            self.log_file = log_file

        if level is not NotProvided:
            self.log_level = level

        if debug is not NotProvided:
            self.debug = debug

        return self

    def to_dict(self) -> dict:
        return {
            "host": self.host,
            "port": self.port,
            "client_origin": self.client_origin,
            "cors_credentials": self.cors_credentials,
            "ping_interval": self.ping_interval,
            "ping_timeout": self.ping_timeout,
            "transports": self.transports,
            "matchmaker": type(self.matchmaker).__name__ if self.matchmaker else None,
            "log_file": self.log_file,
            "debug": self.debug,
        }
