from .store import KVStore

__all__ = ["KVStore"]
