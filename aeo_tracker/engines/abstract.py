"""
Engine client interfaces for the AEO Tracker.

An engine client answers one question: when `keyword` is asked of an AI
engine, does `brand` (or its `domain`) show up in the answer, and where?
Concrete clients (the simulated client shipped here, real API integrations
later) implement the EngineClient protocol and return an EngineResponse.

Clients signal retryable failures by raising EngineQueryError; any other
exception is treated as final by the check orchestrator.
"""

from __future__ import annotations

import abc
from typing import Protocol, runtime_checkable

from aeo_tracker.domain.models import EngineResponse


@runtime_checkable
class EngineClient(Protocol):
    """
    Common interface all engine clients must implement.

    Attributes
    ----------
    engine : str
        The engine this client queries (one of the Engine values).
    """

    engine: str

    async def query(self, brand: str, domain: str, keyword: str) -> EngineResponse:
        """
        Ask the engine about `keyword` and report how `brand` appears in the answer.

        Parameters
        ----------
        brand : str
            Brand name to look for in the answer.
        domain : str
            Brand domain; cited URLs on this host count towards the brand.
        keyword : str
            Normalized search phrase.

        Returns
        -------
        EngineResponse
            Presence, rank, citations and the observed URLs.
        """
        ...


class AbstractEngineClient(abc.ABC):
    """
    Optional ABC helper for class-based clients.

    Subclasses set `engine` and implement `query`.
    """

    engine: str

    @abc.abstractmethod
    async def query(
        self, brand: str, domain: str, keyword: str
    ) -> EngineResponse:  # pragma: no cover - interface only
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"{type(self).__name__}(engine={self.engine!r})"


__all__ = ["EngineClient", "AbstractEngineClient"]
