"""Request interception, classification and caching strategies."""

from offline_gateway.routing.classifier import Classification, RequestClassifier
from offline_gateway.routing.strategies import NetworkUnavailableError, StrategyEngine

__all__ = [
    "Classification",
    "NetworkUnavailableError",
    "RequestClassifier",
    "StrategyEngine",
]
