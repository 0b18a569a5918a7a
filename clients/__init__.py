# Infrastructure clients
from clients.valkey_client import ValkeyClient
from clients.memory_store import MemoryStore
from clients.user_center_client import (
    UserCenterClient,
    UserCenterError,
    UserCenterTimeoutError,
    UserCenterConnectionError,
    MalformedResponseError,
)
