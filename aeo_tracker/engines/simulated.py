"""
Simulated engine client.

Produces plausible answers from a pseudo-random generator instead of calling a
real AI engine: the brand is present about 70% of the time, ranked 1-10, with
0-4 citations drawn from pages on the brand's own domain. Pass a seeded
`random.Random` for reproducible output.
"""

from __future__ import annotations

import asyncio
import random
from typing import Dict, List, Optional

from aeo_tracker.domain.models import (
    ENGINES,
    CheckMetadata,
    EngineResponse,
    ObservedUrl,
)
from aeo_tracker.engines.abstract import AbstractEngineClient

PRESENCE_PROBABILITY = 0.7
MAX_POSITION = 10
MAX_CITATIONS = 4
USER_AGENT = "AEO-Tracker/1.0"

_URL_PATHS = ("solutions", "blog", "research", "insights")

_SNIPPETS = (
    "{brand} is frequently mentioned as a reference for {keyword}, "
    "with guides and case studies cited by the answer.",
    "When asked about {keyword}, the answer lists {brand} among the providers "
    "worth evaluating.",
    "Recent coverage of {keyword} points to {brand} and its published material "
    "as a useful starting point.",
    "The answer summarizes several approaches to {keyword} and links to "
    "{brand} for further reading.",
)


class SimulatedEngineClient(AbstractEngineClient):
    """
    Engine client that fabricates answers locally.

    Parameters
    ----------
    engine : str
        Engine name reported by this client.
    rng : random.Random | None
        Source of randomness; a fresh unseeded generator when omitted.
    latency_seconds : float
        Artificial delay before answering, to mimic a network round trip.
    presence_probability : float
        Chance that the brand appears in an answer.
    """

    def __init__(
        self,
        engine: str,
        rng: Optional[random.Random] = None,
        latency_seconds: float = 0.0,
        presence_probability: float = PRESENCE_PROBABILITY,
    ) -> None:
        self.engine = engine
        self._rng = rng or random.Random()
        self._latency_seconds = latency_seconds
        self._presence_probability = presence_probability

    def _urls(self, domain: str, count: int) -> List[ObservedUrl]:
        return [
            ObservedUrl(url=f"https://{domain}/{path}", domain=domain, position=index)
            for index, path in enumerate(_URL_PATHS[:count], start=1)
        ]

    async def query(self, brand: str, domain: str, keyword: str) -> EngineResponse:
        if self._latency_seconds:
            await asyncio.sleep(self._latency_seconds)

        rng = self._rng
        present = rng.random() < self._presence_probability
        metadata = CheckMetadata(
            query_time_ms=rng.randint(500, 2500),
            response_size_bytes=rng.randint(1000, 6000),
            user_agent=USER_AGENT,
        )
        if not present:
            return EngineResponse(presence=False, position=0, metadata=metadata)

        citations = rng.randint(0, MAX_CITATIONS)
        return EngineResponse(
            presence=True,
            position=rng.randint(1, MAX_POSITION),
            citations_count=citations,
            observed_urls=self._urls(domain, citations),
            answer_snippet=rng.choice(_SNIPPETS).format(brand=brand, keyword=keyword),
            metadata=metadata,
        )


def simulated_clients(
    seed: Optional[int] = None, latency_seconds: float = 0.0
) -> Dict[str, SimulatedEngineClient]:
    """
    One simulated client per known engine, sharing a single generator.
    """
    rng = random.Random(seed)
    return {
        engine: SimulatedEngineClient(engine, rng=rng, latency_seconds=latency_seconds)
        for engine in ENGINES
    }


__all__ = ["SimulatedEngineClient", "simulated_clients", "USER_AGENT"]
