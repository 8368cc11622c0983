"""Command-line options for the pairlink server."""

from __future__ import annotations

import argparse

from pairlink.configurations import server_config
from pairlink.server.matchmaker import HashedMatchmaker, LexicographicMatchmaker

INITIATOR_RULES = {
    "lexicographic": LexicographicMatchmaker,
    "hashed": HashedMatchmaker,
}


def build_config(argv=None) -> server_config.ServerConfig:
    parser = argparse.ArgumentParser(
        description="Pair learners with teachers and relay WebRTC signaling"
    )
    defaults = server_config.ServerConfig()
    parser.add_argument(
        "--host", type=str, default=defaults.host, help="Interface to bind to"
    )
    parser.add_argument(
        "--port", type=int, default=defaults.port, help="Port number to listen on"
    )
    parser.add_argument(
        "--client-origin",
        type=str,
        default=defaults.client_origin,
        help='Allowed browser origin for Socket.IO ("*" for any)',
    )
    parser.add_argument(
        "--initiator-rule",
        choices=sorted(INITIATOR_RULES),
        default="lexicographic",
        help="How the handshake initiator is chosen for each pair",
    )
    parser.add_argument(
        "--log-file", type=str, default=defaults.log_file, help="Log file path"
    )
    parser.add_argument("--debug", action="store_true", help="Verbose logging")
    args = parser.parse_args(argv)

    config = (
        server_config.ServerConfig()
        .hosting(host=args.host, port=args.port)
        .cors(client_origin=args.client_origin)
        .matching(matchmaker=INITIATOR_RULES[args.initiator_rule]())
        .logging(log_file=args.log_file, debug=args.debug or defaults.debug)
    )
    return config
