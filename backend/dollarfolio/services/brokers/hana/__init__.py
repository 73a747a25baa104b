"""Hana Securities integration through the local PC bridge."""

from .client import BridgeStatus, HanaBridgeClient, OperationResult

__all__ = ["BridgeStatus", "HanaBridgeClient", "OperationResult"]
