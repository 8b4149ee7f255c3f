from __future__ import annotations

from enum import Enum


class NodeStatus(Enum):
    LOADED = "loaded"
    ERROR = "error"
    MAX_DEPTH = "max-depth"
    LOOP_DETECTED = "loop-detected"


class TraversalDirection(Enum):
    FORWARD = "forward"      # follow spent outputs to the spending tx
    BACKWARD = "backward"    # follow inputs to the originating tx


class TouchDirection(Enum):
    RECEIVED = "received"
    SENT = "sent"


class PatternType(Enum):
    LOOP = "loop"
    MIXER = "mixer"
    PEELING_CHAIN = "peeling_chain"
    FAST_SUCCESSION = "fast_succession"
    TIME_ANOMALY = "time_anomaly"
    LAYERING = "layering"


class Severity(Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class RiskLevel(Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class Priority(Enum):
    STANDARD = "standard"
    HIGH = "high"
    CRITICAL = "critical"


class Urgency(Enum):
    STANDARD = "standard"
    IMMEDIATE = "immediate"


class ActionType(Enum):
    MIXER_INVESTIGATION = "mixer_investigation"
    LAYERING_INVESTIGATION = "layering_investigation"
    FREEZE_ASSETS = "freeze_assets"
    SUBPOENA_EXCHANGE = "subpoena_exchange"
    DARKNET_INVESTIGATION = "darknet_investigation"


class AddressCategory(Enum):
    EXCHANGE = "exchange"
    MIXER = "mixer"
    DARKNET = "darknet"
    GAMBLING = "gambling"
