"""
Directory association model.

Maps an account to the local storage path it used last, so a returning
session can restore it. One association per account; each save overwrites it.
"""

import json
from datetime import datetime
from typing import Dict, NamedTuple

from models.timestamps import parse_iso, to_iso


class DirectoryAssociation(NamedTuple):
    """The last-used directory for one account."""
    account_uuid: str
    directory_path: str
    last_access_time: datetime

    def to_json(self) -> str:
        return json.dumps({
            'accountUuid': self.account_uuid,
            'directoryPath': self.directory_path,
            'lastAccessTime': to_iso(self.last_access_time),
        })

    @classmethod
    def from_json(cls, raw: str) -> 'DirectoryAssociation':
        data = json.loads(raw)
        return cls(
            account_uuid=data['accountUuid'],
            directory_path=data['directoryPath'],
            last_access_time=parse_iso(data['lastAccessTime']),
        )

    def to_response(self) -> Dict[str, str]:
        """Public representation returned by the directory endpoints."""
        return {
            'directoryPath': self.directory_path,
            'lastAccessTime': to_iso(self.last_access_time),
        }
