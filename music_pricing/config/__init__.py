from .settings import Settings, load_settings
from .storefront import AMAZON_MUSIC, StorefrontConfig, load_storefront

__all__ = [
    "AMAZON_MUSIC",
    "Settings",
    "StorefrontConfig",
    "load_settings",
    "load_storefront",
]
