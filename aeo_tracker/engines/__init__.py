"""
Engine clients package.

Exports the EngineClient protocol and the simulated implementation used until
real engine integrations are plugged in.
"""

from aeo_tracker.engines.abstract import AbstractEngineClient, EngineClient
from aeo_tracker.engines.simulated import SimulatedEngineClient, simulated_clients

__all__ = [
    "AbstractEngineClient",
    "EngineClient",
    "SimulatedEngineClient",
    "simulated_clients",
]
