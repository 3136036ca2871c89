"""Storage backends — local key-value snapshots and the remote contents API."""

from remindly.storage.local import LocalRecordStore
from remindly.storage.remote import RemoteFile, RemoteFileStore

__all__ = ["LocalRecordStore", "RemoteFile", "RemoteFileStore"]
