from .kv_entry import KvEntry
from .user_record import UserRecord
from .reset_token import ResetToken
from .directory_association import DirectoryAssociation
from .timestamps import utcnow

__all__ = ['KvEntry', 'UserRecord', 'ResetToken', 'DirectoryAssociation', 'utcnow']
