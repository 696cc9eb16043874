"""Centralized API endpoint configuration for the Foreman v2 REST API.

Usage:
    from hammer_csv.foreman.endpoints import ForemanEndpoints

    endpoint = ForemanEndpoints.ENTITY_BY_ID.format(collection="domains", entity_id=3)
    # Returns: "domains/3"
"""

from dataclasses import dataclass

from ..constants import ENTITY_COLLECTIONS


@dataclass(frozen=True)
class ForemanEndpoints:
    """
    Foreman REST API endpoint templates.

    All endpoints are relative to the API root (e.g., https://foreman/api/).
    """

    COLLECTION: str = "{collection}"
    ENTITY_BY_ID: str = "{collection}/{entity_id}"

    @staticmethod
    def collection_for(kind: str) -> str:
        """
        Map an entity kind to its REST collection.

        Args:
            kind: Entity kind (e.g., "operatingsystem")

        Returns:
            Collection path segment (e.g., "operatingsystems")

        Raises:
            ValueError: If the kind is not known
        """
        try:
            return ENTITY_COLLECTIONS[kind]
        except KeyError:
            raise ValueError(f"Unknown entity kind: {kind}") from None
