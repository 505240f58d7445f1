"""Message lookup for installment detail descriptions.

Locale files live in installment_reprocessor/locales/<locale>.yaml as nested
mappings; keys are dotted paths such as "installment_details.success".
"""

import threading
from pathlib import Path
from typing import Optional

import yaml

from installment_reprocessor.logging_config import get_logger

logger = get_logger(__name__)

LOCALES_DIR = Path(__file__).parent / "locales"
DEFAULT_LOCALE = "en"

# Message keys, one per installment outcome
SUCCESS = "installment_details.success"
FAILED = "installment_details.failed"
PAYMENT_FAILED = "installment_details.payment_failed"
OUT_OF_STOCK = "installment_details.out_of_stock"


class LocaleNotFoundError(Exception):
    """Raised when no locale file exists for the requested locale."""

    pass


class MessageCatalog:
    """Resolves message keys to display strings for one locale.

    Missing keys fall back to the default locale, then to a
    "translation missing" marker, mirroring how the text is rendered in
    audit trails rather than failing the transition that needs it.
    """

    def __init__(self, locale: str = DEFAULT_LOCALE, locales_dir: Optional[Path] = None):
        self.locale = locale
        self._locales_dir = Path(locales_dir) if locales_dir else LOCALES_DIR
        self._lock = threading.Lock()
        self._catalogs: dict[str, dict] = {}

        # Fail fast on an unknown locale
        self._catalog_for(locale)

    def _catalog_for(self, locale: str) -> dict:
        with self._lock:
            if locale not in self._catalogs:
                path = self._locales_dir / f"{locale}.yaml"
                if not path.exists():
                    raise LocaleNotFoundError(f"No messages for locale '{locale}' in {self._locales_dir}")
                with open(path, encoding="utf-8") as f:
                    self._catalogs[locale] = yaml.safe_load(f) or {}
                logger.debug("locale_loaded", locale=locale, path=str(path))
            return self._catalogs[locale]

    @staticmethod
    def _lookup(catalog: dict, key: str) -> Optional[str]:
        node = catalog
        for part in key.split("."):
            if not isinstance(node, dict) or part not in node:
                return None
            node = node[part]
        return node if isinstance(node, str) else None

    def translate(self, key: str) -> str:
        """Resolve a message key.

        Args:
            key: Dotted message key (e.g., "installment_details.out_of_stock")

        Returns:
            Display string for the key
        """
        message = self._lookup(self._catalog_for(self.locale), key)
        if message is not None:
            return message

        if self.locale != DEFAULT_LOCALE:
            message = self._lookup(self._catalog_for(DEFAULT_LOCALE), key)
            if message is not None:
                logger.warning("translation_fallback", locale=self.locale, key=key)
                return message

        logger.warning("translation_missing", locale=self.locale, key=key)
        return f"translation missing: {self.locale}.{key}"


# Global catalog instance
_catalog_instance: Optional[MessageCatalog] = None
_catalog_lock = threading.Lock()


def get_message_catalog() -> MessageCatalog:
    """Get global message catalog for the configured locale (singleton)."""
    global _catalog_instance
    if _catalog_instance is None:
        with _catalog_lock:
            if _catalog_instance is None:
                from installment_reprocessor.config import get_config

                _catalog_instance = MessageCatalog(locale=get_config().locale)
    return _catalog_instance


def reset_message_catalog() -> None:
    """Drop the global message catalog (for testing)."""
    global _catalog_instance
    with _catalog_lock:
        _catalog_instance = None
