from __future__ import annotations

import dataclasses


@dataclasses.dataclass(frozen=True)
class InboundEvents:
    Join = "join"
    Signal = "signal"
    Next = "next"
    GetOnlineCount = "getOnlineCount"


@dataclasses.dataclass(frozen=True)
class OutboundEvents:
    Matched = "matched"
    Signal = "signal"
    PartnerLeft = "partner-left"
    OnlineCount = "onlineCount"


@dataclasses.dataclass(frozen=True)
class TransportDefaults:
    # Long ping timeout to ride out reverse proxies that buffer polling requests.
    PingInterval = 25
    PingTimeout = 60
    Transports = ("polling", "websocket")
