"""
Registry Module

Keeps a tag↔digest index of the tracked release stream.

Architecture:
- TokenManager: bearer token acquisition and refresh
- RegistryClient: tag list and manifest digest requests
- TagSyncEngine: periodic, batched index rebuild and alias lookup
"""

from registry.types import Token, TagIndex
from registry.token_manager import TokenManager, TokenError
from registry.registry_client import RegistryClient, RegistryError
from registry.tag_sync import TagSyncEngine, TagIndexStore

__all__ = [
    'Token',
    'TagIndex',
    'TokenManager',
    'TokenError',
    'RegistryClient',
    'RegistryError',
    'TagSyncEngine',
    'TagIndexStore',
]
