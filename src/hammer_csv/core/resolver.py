"""Name <-> identifier resolver cache, one instance per entity kind.

Design Decisions:
- Forward (name -> id) and reverse (id -> name) maps are kept together and
  only touched under the instance lock, so reverse lookups never scan values.
- The whole check -> remote call -> store sequence is one critical section
  per entity kind. Two workers missing on the same name produce one remote
  call; workers resolving different kinds never wait on each other.
- Entries live for one command invocation. Nothing is invalidated or
  persisted: a run works against a single consistent snapshot.
- A miss that stays a miss is fatal to the caller. The cache never retries
  and never fabricates an identifier.
"""

import asyncio
from dataclasses import dataclass
from typing import Any, cast

import structlog
from pydantic import ValidationError

from ..constants import ENTITY_COLLECTIONS
from ..foreman.client import DirectoryClient, build_search
from ..foreman.response_models import EntityRecord, OperatingSystemRecord, unwrap_record
from ..observability.metrics import get_global_collector
from ..utils.exceptions import ForemanAPIError, ResourceNotFoundError
from .naming import compose, decompose

logger = structlog.get_logger(__name__)


@dataclass
class CacheStats:
    """Statistics for resolver cache performance."""

    cache_hits: int = 0
    cache_misses: int = 0
    remote_calls: int = 0
    total_queries: int = 0

    def cache_hit(self) -> None:
        self.cache_hits += 1
        self.total_queries += 1

    def cache_miss(self) -> None:
        self.cache_misses += 1
        self.total_queries += 1

    def hit_rate(self) -> float:
        """
        Calculate cache hit rate.

        Returns:
            float: Hit rate as a decimal (0.0 to 1.0).
        """
        if self.total_queries == 0:
            return 0.0
        return self.cache_hits / self.total_queries


class EntityResolver:
    """
    Resolve display names to remote identifiers and back for one entity kind.

    Usage:
        organizations = EntityResolver(client, "organization")
        org_id = await organizations.resolve_id("Library")
        name = await organizations.resolve_name(org_id)  # no remote call
    """

    record_model: type[EntityRecord] = EntityRecord

    def __init__(self, client: DirectoryClient, kind: str) -> None:
        """
        Initialize an empty cache for one entity kind.

        Args:
            client: Remote directory used on cache misses
            kind: Entity kind (e.g., "organization")
        """
        self.client = client
        self.kind = kind
        self._forward: dict[str, Any] = {}
        self._reverse: dict[Any, str] = {}
        self._lock = asyncio.Lock()
        self.stats = CacheStats()
        self.collector = get_global_collector()

    def __len__(self) -> int:
        return len(self._forward)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(kind={self.kind!r}, entries={len(self._forward)})"

    def snapshot(self) -> dict[str, Any]:
        """Return a copy of the name -> identifier entries cached so far."""
        return dict(self._forward)

    async def resolve(self, name: str | None = None, id: Any = None) -> Any:
        """
        Resolve whichever side is given: a name yields an id, an id yields a name.

        Args:
            name: Display name to resolve to an identifier
            id: Identifier to resolve to a display name

        Returns:
            The identifier when name is given, otherwise the display name

        Raises:
            ValueError: If neither name nor id is given
        """
        if name:
            return await self.resolve_id(name)
        if id is not None and id != "":
            return await self.resolve_name(id)
        raise ValueError(f"{self.kind}: either name or id is required")

    async def resolve_id(self, name: str) -> Any:
        """
        Resolve a display name to its remote identifier.

        Args:
            name: Display name as it appears in CSV

        Returns:
            Remote identifier

        Raises:
            ResourceNotFoundError: If no remote entity has this name
            ForemanAPIError: If the remote call fails
        """
        async with self._lock:
            if name in self._forward:
                return self._hit(name=name, value=self._forward[name])

            self._miss(name=name)
            predicate = self.search_predicate(name)
            self.stats.remote_calls += 1
            records = await self.client.search(self.kind, predicate)
            if not records:
                self.collector.count_lookup(self.kind, "not_found")
                logger.error("Entity not found", kind=self.kind, search=predicate)
                raise ResourceNotFoundError(self.kind, name)

            record = self._validate(records[0])
            self._store(name, record.id)
            return record.id

    async def resolve_name(self, entity_id: Any) -> str:
        """
        Resolve a remote identifier to its display name.

        Args:
            entity_id: Remote identifier

        Returns:
            Display name (composite for compound kinds)

        Raises:
            ResourceNotFoundError: If the identifier does not exist remotely
            ForemanAPIError: If the remote call fails
        """
        async with self._lock:
            if entity_id in self._reverse:
                return self._hit(id=entity_id, value=self._reverse[entity_id])

            self._miss(id=entity_id)
            self.stats.remote_calls += 1
            try:
                raw = await self.client.fetch_by_id(self.kind, entity_id)
            except ResourceNotFoundError:
                self.collector.count_lookup(self.kind, "not_found")
                raise

            record = self._validate(raw)
            name = self.display_name(record)
            self._store(name, entity_id)
            return name

    async def seed(self, raw: dict[str, Any]) -> str:
        """
        Cache a record fetched elsewhere, e.g. by a list-all search.

        Args:
            raw: Bare or wrapped record

        Returns:
            The record's display name

        Raises:
            ForemanAPIError: If the record has no usable id or name
        """
        record = self._validate(raw)
        name = self.display_name(record)
        async with self._lock:
            self._store(name, record.id)
        return name

    def search_predicate(self, name: str) -> str:
        """Exact-match search for a display name."""
        return build_search(name=name)

    def display_name(self, record: EntityRecord) -> str:
        """Display name for a validated record."""
        return record.name

    def _validate(self, raw: dict[str, Any]) -> EntityRecord:
        try:
            return self.record_model.model_validate(unwrap_record(self.kind, raw))
        except ValidationError as e:
            raise ForemanAPIError(f"Malformed {self.kind} record: {e}") from e

    def _store(self, name: str, entity_id: Any) -> None:
        """Record a mapping in both directions; caller holds the lock."""
        cached_id = self._forward.get(name, entity_id)
        if cached_id != entity_id:
            # A cached name keeps its identifier for the rest of the run
            logger.warning(
                "Name already cached under another identifier",
                kind=self.kind,
                name=name,
                cached_id=cached_id,
                id=entity_id,
            )
        else:
            self._forward[name] = entity_id

        known = self._reverse.get(entity_id)
        if known is None:
            self._reverse[entity_id] = name
        elif known != name:
            # The first name seen for an id stays its display name
            logger.warning(
                "Identifier already cached under another name",
                kind=self.kind,
                id=entity_id,
                cached_name=known,
                alias=name,
            )
        logger.debug("Cached entity", kind=self.kind, name=name, id=entity_id)

    def _hit(self, value: Any, **key: Any) -> Any:
        self.stats.cache_hit()
        self.collector.count_lookup(self.kind, "hit")
        logger.debug("Cache hit", kind=self.kind, **key)
        return value

    def _miss(self, **key: Any) -> None:
        self.stats.cache_miss()
        self.collector.count_lookup(self.kind, "miss")
        logger.debug("Cache miss", kind=self.kind, **key)


class OperatingSystemResolver(EntityResolver):
    """
    Resolver for operating systems, whose display name is "name major.minor".

    Searches on the decomposed fields and composes the display name from the
    record's name, major and minor.
    """

    record_model = OperatingSystemRecord

    def search_predicate(self, name: str) -> str:
        base, major, minor = decompose(name)
        return build_search(name=base, major=major, minor=minor)

    def display_name(self, record: EntityRecord) -> str:
        os_record = cast(OperatingSystemRecord, record)
        return compose(os_record.name, os_record.major, os_record.minor)


class PartitionTableResolver(EntityResolver):
    """Partition tables are optional on rows: no name and no id resolves to ""."""

    async def resolve(self, name: str | None = None, id: Any = None) -> Any:
        if not name and (id is None or id == ""):
            return ""
        return await super().resolve(name=name, id=id)


_RESOLVER_CLASSES: dict[str, type[EntityResolver]] = {
    "operatingsystem": OperatingSystemResolver,
    "ptable": PartitionTableResolver,
}


class ResolverRegistry:
    """
    The resolver caches for one command invocation, one per entity kind.

    Usage:
        registry = ResolverRegistry(client)
        org_id = await registry.organization.resolve_id("Library")
        os_name = await registry.get("operatingsystem").resolve_name(4)
    """

    def __init__(self, client: DirectoryClient, kinds: list[str] | None = None) -> None:
        """
        Create empty resolvers.

        Args:
            client: Remote directory shared by all resolvers
            kinds: Entity kinds to create (default: every known kind)
        """
        self.client = client
        self._resolvers: dict[str, EntityResolver] = {}
        for kind in kinds or list(ENTITY_COLLECTIONS):
            if kind not in ENTITY_COLLECTIONS:
                raise ValueError(f"Unknown entity kind: {kind}")
            resolver_cls = _RESOLVER_CLASSES.get(kind, EntityResolver)
            self._resolvers[kind] = resolver_cls(client, kind)

    def get(self, kind: str) -> EntityResolver:
        """
        Return the resolver for an entity kind.

        Raises:
            KeyError: If the kind is unknown or was not created
        """
        try:
            return self._resolvers[kind]
        except KeyError:
            raise KeyError(f"No resolver for entity kind: {kind}") from None

    def __getattr__(self, kind: str) -> EntityResolver:
        resolvers = self.__dict__.get("_resolvers", {})
        if kind in resolvers:
            return resolvers[kind]
        raise AttributeError(kind)

    def __contains__(self, kind: str) -> bool:
        return kind in self._resolvers

    def __iter__(self):
        return iter(self._resolvers.values())

    def stats(self) -> dict[str, CacheStats]:
        """Cache statistics by entity kind."""
        return {kind: resolver.stats for kind, resolver in self._resolvers.items()}
