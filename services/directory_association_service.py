"""
Directory association store.

Remembers the local storage path each account used last. The account uuid
passed in must come from a verified session token; ownership checks happen
in the gateway, not here.
"""

from datetime import datetime
from typing import Callable

from db.kv_store import KeyValueStore
from models.directory_association import DirectoryAssociation
from models.timestamps import utcnow
from utils.error_handling import ResourceNotFoundError


class DirectoryAssociationStore:
    """One directory association per account, overwritten on every save."""

    def __init__(self, store: KeyValueStore, clock: Callable[[], datetime] = utcnow):
        self.store = store
        self._clock = clock

    def associate(self, account_uuid: str, directory_path: str) -> DirectoryAssociation:
        association = DirectoryAssociation(
            account_uuid=account_uuid,
            directory_path=directory_path,
            last_access_time=self._clock(),
        )
        self.store.put(account_uuid, association.to_json())
        return association

    def get(self, account_uuid: str) -> DirectoryAssociation:
        raw = self.store.get(account_uuid)
        if raw is None:
            raise ResourceNotFoundError('No directory mapping found')
        return DirectoryAssociation.from_json(raw)

    def remove(self, account_uuid: str) -> None:
        self.store.delete(account_uuid)
