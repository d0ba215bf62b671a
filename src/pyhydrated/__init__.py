"""pyhydrated - automatic, crash-safe persistence for reactive store state."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("pyhydrated")
except PackageNotFoundError:
    __version__ = "0+local"
from pyhydrated._crypto import HydratedAesCipher, generate_key
from pyhydrated.codec import SupportsToJson, decode, encode
from pyhydrated.config import HydratedConfig, build_storage
from pyhydrated.exceptions import (
    CyclicValueError,
    HydratedConfigError,
    HydratedCryptoError,
    HydratedError,
    HydrationError,
    StorageError,
    StorageNotConfiguredError,
    UnsupportedValueError,
)
from pyhydrated.reactive import ReactiveStore, action, observable
from pyhydrated.storage import (
    FileStorage,
    MemoryStorage,
    Storage,
    get_default_storage,
    reset_default_storage,
    set_default_storage,
)
from pyhydrated.store import HydratedReactiveStore, HydratedStore, HydrationState

__all__ = [
    "__version__",
    "CyclicValueError",
    "FileStorage",
    "HydratedAesCipher",
    "HydratedConfig",
    "HydratedConfigError",
    "HydratedCryptoError",
    "HydratedError",
    "HydratedReactiveStore",
    "HydratedStore",
    "HydrationError",
    "HydrationState",
    "MemoryStorage",
    "ReactiveStore",
    "Storage",
    "StorageError",
    "StorageNotConfiguredError",
    "SupportsToJson",
    "UnsupportedValueError",
    "action",
    "build_storage",
    "decode",
    "encode",
    "generate_key",
    "get_default_storage",
    "observable",
    "reset_default_storage",
    "set_default_storage",
]
