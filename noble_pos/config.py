# ==============================================================================
# CONFIGURATION - Environment driven settings
# ==============================================================================
# Every setting can be overridden through an environment variable:
#
#   export NOBLE_POS_SECRET_KEY="a_long_random_value"
#   export NOBLE_POS_DATA_DIR="/var/lib/noble_pos"
#   export NOBLE_POS_PRODUCTION=1
#
# Tests build a Config directly (or pass overrides to create_app).
# ==============================================================================

import os
from dataclasses import dataclass, field, replace
from typing import Any, Dict


_DEFAULT_SECRET = "noble_pos_dev_secret_key_change_in_production"

BASE_DIR = os.path.dirname(os.path.abspath(__file__))


def _env_flag(name: str, default: bool = False) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class ShopDetails:
    """Details printed on invoices and invoice messages."""
    name: str = "NOBLE FOOTWEAR"
    display_name: str = "Noble Footwear"
    gstin: str = "-"
    address: str = "123, Business Street, City, State - 000000"
    phone: str = "+91-XXXXXXXXXX"
    email: str = "contact@noblefootwear.com"


@dataclass(frozen=True)
class Config:
    """
    Application settings.

    Attributes:
        secret_key: Flask session signing key
        secret_key_set: False when the development default is in use
        production: Production mode (warns about missing secret, less logging)
        data_dir: Directory holding the document store file
        log_dir: Directory for rotating log files
        profiling: Enables route and function timing
        shop: Invoice header details
    """
    secret_key: str = _DEFAULT_SECRET
    secret_key_set: bool = False
    production: bool = False
    data_dir: str = os.path.join(BASE_DIR, "data")
    log_dir: str = os.path.join(BASE_DIR, "logs")
    profiling: bool = True
    session_lifetime: int = 86400  # 24 hours
    shop: ShopDetails = field(default_factory=ShopDetails)

    @property
    def store_path(self) -> str:
        return os.path.join(self.data_dir, "noble_pos.json")

    @classmethod
    def from_env(cls) -> "Config":
        """Builds the configuration from NOBLE_POS_* environment variables."""
        secret = os.environ.get("NOBLE_POS_SECRET_KEY")
        shop = ShopDetails(
            name=os.environ.get("NOBLE_POS_SHOP_NAME", ShopDetails.name),
            display_name=os.environ.get("NOBLE_POS_SHOP_DISPLAY_NAME", ShopDetails.display_name),
            gstin=os.environ.get("NOBLE_POS_SHOP_GSTIN", ShopDetails.gstin),
            address=os.environ.get("NOBLE_POS_SHOP_ADDRESS", ShopDetails.address),
            phone=os.environ.get("NOBLE_POS_SHOP_PHONE", ShopDetails.phone),
            email=os.environ.get("NOBLE_POS_SHOP_EMAIL", ShopDetails.email),
        )
        return cls(
            secret_key=secret or _DEFAULT_SECRET,
            secret_key_set=bool(secret),
            production=_env_flag("NOBLE_POS_PRODUCTION"),
            data_dir=os.environ.get("NOBLE_POS_DATA_DIR", os.path.join(BASE_DIR, "data")),
            log_dir=os.environ.get("NOBLE_POS_LOG_DIR", os.path.join(BASE_DIR, "logs")),
            profiling=_env_flag("NOBLE_POS_PROFILING", True),
            shop=shop,
        )

    def with_overrides(self, overrides: Dict[str, Any]) -> "Config":
        """Returns a copy with the given fields replaced."""
        return replace(self, **overrides)

    def flask_settings(self) -> Dict[str, Any]:
        """Session cookie settings, compatible with access over a local IP."""
        return {
            "SECRET_KEY": self.secret_key,
            "SESSION_COOKIE_HTTPONLY": True,
            "SESSION_COOKIE_SECURE": False,
            "SESSION_COOKIE_SAMESITE": "Lax",
            "PERMANENT_SESSION_LIFETIME": self.session_lifetime,
        }
