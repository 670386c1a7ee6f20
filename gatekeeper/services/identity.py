from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Iterable, Mapping

from loguru import logger


@dataclass(frozen=True)
class SimpleIdentity:
    """Minimal identity: anything with an ``id`` attribute will do."""

    id: str


class IdentityResolver(ABC):
    """
    Maps a validated ``sub`` claim to an application identity.

    Supplied by the host application, typically backed by its user repository.
    """

    @abstractmethod
    async def resolve(self, subject: str) -> Any | None:
        """
        Args:
            subject: The token's ``sub`` claim

        Returns:
            The identity, or None if the subject is unknown
        """


class StaticIdentityResolver(IdentityResolver):
    """
    In-memory resolver for tests and local development.

    Example:
        ```python
        resolver = StaticIdentityResolver.from_ids(["u1", "u2"])
        ```
    """

    def __init__(self, identities: Mapping[str, Any] | None = None):
        self._identities = dict(identities or {})

    @classmethod
    def from_ids(cls, ids: Iterable[str]) -> "StaticIdentityResolver":
        return cls({str(i): SimpleIdentity(id=str(i)) for i in ids})

    def add(self, identity: Any) -> None:
        self._identities[str(identity.id)] = identity

    async def resolve(self, subject: str) -> Any | None:
        identity = self._identities.get(str(subject))
        if identity is None:
            logger.debug(f"No identity registered for subject {subject}")

        return identity
