"""Translate reconciliation actions into store operations."""

from logging import getLogger

from ghmirror.conf.sync import CollectionKind

from .reconciler import Action, Create, Skip, Update
from .records import Record
from .store import RecordStore

logger = getLogger(__name__)

CREATED = "created"
UPDATED = "updated"
SKIPPED = "skipped"


class PersistenceGateway:
    """Applies Create/Update/Skip decisions to a RecordStore."""

    def __init__(self, store: RecordStore) -> None:
        self.store = store

    async def find(self, kind: CollectionKind, repo: str, number: int) -> Record | None:
        return await self.store.find_by_key(kind, repo, number)

    async def apply(self, kind: CollectionKind, repo: str, number: int, action: Action) -> str:
        """Apply an action for one item and return its outcome name."""
        if isinstance(action, Create):
            if await self.store.insert(kind, repo, action.record):
                logger.info(f"{repo} {kind.value} #{number} saved")
                return CREATED
            # Single writer, so this only happens if the key appeared since lookup
            logger.warning(f"{repo} {kind.value} #{number} already stored, create ignored")
            return SKIPPED

        if isinstance(action, Update):
            await self.store.update_fields(kind, repo, number, action.fields)
            logger.info(f"{repo} {kind.value} #{number} updated")
            return UPDATED

        if isinstance(action, Skip):
            logger.info(f"Skipping {repo} {kind.value} #{number}: {action.reason}")
            return SKIPPED

        raise TypeError(f"Unknown action: {action!r}")
