from cardbinder.services.collection_merge import MergeResult, merge_cards
from cardbinder.services.collection_service import CollectionService

__all__ = ["CollectionService", "MergeResult", "merge_cards"]
