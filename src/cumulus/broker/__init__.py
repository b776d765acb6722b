"""Application lifecycle broker."""

from cumulus.broker.broker import (
    NAME_PATTERN,
    ApplicationInfo,
    Broker,
    User,
    UserBroker,
    parse_scale,
    validate_name,
)
from cumulus.broker.factory import create_broker
from cumulus.broker.locks import KeyedLock

__all__ = [
    "NAME_PATTERN",
    "ApplicationInfo",
    "Broker",
    "KeyedLock",
    "User",
    "UserBroker",
    "create_broker",
    "parse_scale",
    "validate_name",
]
