"""Shop tax settings provider: load-or-create and persisted partial updates."""

from __future__ import annotations

import threading
from dataclasses import replace
from typing import Any, Dict, Mapping, Optional

from ..notifications import NotificationCenter
from ..utils.logging import get_logger
from .models import (
    CALCULATION_METHODS,
    DISPLAY_METHODS,
    UPDATABLE_FIELDS,
    TaxSettings,
    coerce_amount,
    coerce_bool,
)
from .repository import SettingsStoreError, TaxSettingsRepository

logger = get_logger(__name__)

RATE_FIELDS = ("labor_tax_rate", "parts_tax_rate", "combined_tax_rate")
FLAG_FIELDS = ("apply_tax_to_labor", "apply_tax_to_parts")


def validate_changes(changes: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Normalize a partial settings update.

    Raises:
        ValueError: unknown field, or a method outside the allowed values
    """
    allowed = set(UPDATABLE_FIELDS)
    unknown = sorted(set(changes) - allowed)
    if unknown:
        raise ValueError(f"Unknown tax settings field(s): {', '.join(unknown)}")

    cleaned: Dict[str, Any] = {}
    for key, value in changes.items():
        if key in RATE_FIELDS:
            cleaned[key] = coerce_amount(value)
        elif key in FLAG_FIELDS:
            cleaned[key] = coerce_bool(value, True)
        elif key == "tax_calculation_method":
            if value not in CALCULATION_METHODS:
                raise ValueError(f"Invalid tax calculation method: {value!r}")
            cleaned[key] = value
        elif key == "tax_display_method":
            if value not in DISPLAY_METHODS:
                raise ValueError(f"Invalid tax display method: {value!r}")
            cleaned[key] = value
        elif key == "tax_exempt_customer_ids":
            cleaned[key] = [str(cid) for cid in (value or [])]
        else:
            cleaned[key] = str(value) if value is not None else ""
    return cleaned


class TaxSettingsProvider:
    """
    Holds the current shop's tax settings.

    Settings only change after the store confirms a write. Store failures are
    reported through the notification center and leave the current settings
    untouched. When fetches overlap, the one started last wins.
    """

    def __init__(
        self,
        repository: TaxSettingsRepository,
        notifications: Optional[NotificationCenter] = None,
    ) -> None:
        self.repository = repository
        self.notifications = notifications if notifications is not None else NotificationCenter()
        self._lock = threading.Lock()
        self._fetch_seq = 0
        self._pending = 0
        self._shop_id: Optional[str] = None
        self._settings: Optional[TaxSettings] = None
        self._error: Optional[str] = None

    @property
    def shop_id(self) -> Optional[str]:
        return self._shop_id

    @property
    def settings(self) -> Optional[TaxSettings]:
        return self._settings

    @property
    def is_loading(self) -> bool:
        return self._settings is None and (self._pending > 0 or self._error is None)

    @property
    def error(self) -> Optional[str]:
        return self._error

    def load(self, shop_id: str) -> Optional[TaxSettings]:
        """
        Fetch the shop's settings, creating and storing defaults if none exist.

        Returns the settings now in effect, or None when the store failed.
        """
        with self._lock:
            self._fetch_seq += 1
            token = self._fetch_seq
            self._pending += 1
            if shop_id != self._shop_id:
                self._shop_id = shop_id
                self._settings = None
                self._error = None

        try:
            doc = self.repository.find_by_shop_id(shop_id)
            if doc is None:
                doc = self.repository.insert(TaxSettings.default(shop_id).to_document())
            fetched = TaxSettings.from_document(doc)
            failure = None
        except SettingsStoreError as e:
            fetched = None
            failure = str(e)

        with self._lock:
            self._pending -= 1
            if token != self._fetch_seq:
                logger.debug(f"Discarding stale tax settings fetch #{token} for shop {shop_id}")
                return self._settings
            if failure is not None:
                self._error = failure
            else:
                self._settings = fetched
                self._error = None

        if failure is not None:
            self.notifications.error("Could not load tax settings", failure)
            return None
        logger.info(f"Loaded tax settings for shop {shop_id}")
        return fetched

    def update(self, changes: Mapping[str, Any]) -> Optional[TaxSettings]:
        """
        Persist a partial change and return the merged settings.

        Returns None (and keeps the previous settings) when the store failed.

        Raises:
            RuntimeError: no shop loaded yet
            ValueError: invalid change
        """
        if self._shop_id is None:
            raise RuntimeError("Load a shop's tax settings before updating them")
        cleaned = validate_changes(changes)
        shop_id = self._shop_id
        try:
            doc = self.repository.update_fields(shop_id, cleaned)
        except SettingsStoreError as e:
            self.notifications.error("Could not save tax settings", str(e))
            return None

        merged = TaxSettings.from_document(doc)
        if not merged.shop_id:
            merged = replace(merged, shop_id=shop_id)
        with self._lock:
            # A shop switch during the write must not receive this shop's settings.
            if self._shop_id == shop_id:
                self._settings = merged
                self._error = None
        logger.info(f"Updated tax settings for shop {shop_id}: {', '.join(sorted(cleaned))}")
        return merged
