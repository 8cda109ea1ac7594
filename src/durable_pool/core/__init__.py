"""Pool items, codecs, configuration and the backend registry."""

from durable_pool.core.codec import (
    DEFAULT_CODEC,
    TAGGED_CODEC,
    TEXT_CODEC,
    ItemCodec,
    get_codec,
    list_codecs,
)
from durable_pool.core.config import (
    ConnectionConfig,
    GeneralSettings,
    PoolSettings,
    Settings,
    TracingSettings,
    clear_settings_cache,
    get_settings,
)
from durable_pool.core.errors import (
    CodecError,
    ConfigurationError,
    ItemTypeError,
    PoolClosedError,
    PoolError,
    StoreError,
)
from durable_pool.core.items import (
    BytesItem,
    IntItem,
    ItemKind,
    PoolItem,
    TextItem,
    item_from_dict,
    item_to_dict,
    to_item,
)
from durable_pool.core.keys import format_key, parse_key
from durable_pool.core.registry import (
    InvalidConstructorError,
    PoolConstructor,
    PoolRegistry,
    RegistryError,
    SchemeAlreadyRegisteredError,
    SchemeNotFoundError,
    get_global_registry,
    new_pool,
    register_default_backends,
    reset_global_registry,
)

__all__ = [
    "DEFAULT_CODEC",
    "TAGGED_CODEC",
    "TEXT_CODEC",
    "BytesItem",
    "CodecError",
    "ConfigurationError",
    "ConnectionConfig",
    "GeneralSettings",
    "IntItem",
    "InvalidConstructorError",
    "ItemCodec",
    "ItemKind",
    "ItemTypeError",
    "PoolClosedError",
    "PoolConstructor",
    "PoolError",
    "PoolItem",
    "PoolRegistry",
    "PoolSettings",
    "RegistryError",
    "SchemeAlreadyRegisteredError",
    "SchemeNotFoundError",
    "Settings",
    "StoreError",
    "TextItem",
    "TracingSettings",
    "clear_settings_cache",
    "format_key",
    "get_codec",
    "get_global_registry",
    "get_settings",
    "item_from_dict",
    "item_to_dict",
    "list_codecs",
    "new_pool",
    "parse_key",
    "register_default_backends",
    "reset_global_registry",
    "to_item",
]
