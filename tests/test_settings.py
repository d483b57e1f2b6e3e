"""Tests for the tax settings provider."""

from unittest.mock import MagicMock

import pytest

from shop_tax.notifications import NotificationCenter
from shop_tax.tax_calculation.models import TaxSettings
from shop_tax.tax_calculation.repository import SettingsStoreError
from shop_tax.tax_calculation.settings import TaxSettingsProvider, validate_changes


@pytest.fixture
def repo():
    return MagicMock()


@pytest.fixture
def notifications():
    return NotificationCenter()


@pytest.fixture
def provider(repo, notifications):
    return TaxSettingsProvider(repo, notifications)


class TestLoad:
    """Load-or-create behaviour."""

    def test_loads_existing(self, provider, repo):
        repo.find_by_shop_id.return_value = {"shop_id": "shop-42", "labor_tax_rate": 7.5}
        settings = provider.load("shop-42")
        assert settings.labor_tax_rate == 7.5
        assert provider.settings == settings
        assert provider.is_loading is False
        repo.insert.assert_not_called()

    def test_creates_defaults_when_missing(self, provider, repo):
        repo.find_by_shop_id.return_value = None
        repo.insert.side_effect = lambda doc: doc
        settings = provider.load("shop-new")
        assert settings == TaxSettings.default("shop-new")
        inserted = repo.insert.call_args[0][0]
        assert inserted["shop_id"] == "shop-new"
        assert inserted["labor_tax_rate"] == 0.0
        assert inserted["tax_calculation_method"] == "separate"
        assert inserted["apply_tax_to_labor"] is True
        assert inserted["apply_tax_to_parts"] is True

    def test_is_loading_before_first_load(self, provider):
        assert provider.is_loading is True
        assert provider.settings is None

    def test_keeps_callers_notification_center(self, provider, notifications):
        assert len(notifications) == 0
        assert provider.notifications is notifications

    def test_creates_notification_center_when_none_given(self, repo):
        assert isinstance(TaxSettingsProvider(repo).notifications, NotificationCenter)

    def test_store_failure_notifies(self, provider, repo, notifications):
        repo.find_by_shop_id.side_effect = SettingsStoreError("connection refused")
        assert provider.load("shop-42") is None
        assert provider.settings is None
        assert provider.error == "connection refused"
        assert provider.is_loading is False
        active = notifications.active()
        assert len(active) == 1
        assert active[0].level == "error"
        assert "connection refused" in active[0].message

    def test_failed_reload_keeps_previous_settings(self, provider, repo):
        repo.find_by_shop_id.return_value = {"shop_id": "shop-42", "parts_tax_rate": 6}
        loaded = provider.load("shop-42")
        repo.find_by_shop_id.side_effect = SettingsStoreError("timeout")
        assert provider.load("shop-42") is None
        assert provider.settings == loaded

    def test_latest_fetch_wins(self, provider, repo):
        """An older response arriving after a newer fetch started is discarded."""
        responses = iter([
            {"shop_id": "shop-42", "labor_tax_rate": 9.0},
        ])

        def find(shop_id):
            if find.calls == 0:
                find.calls += 1
                # A newer fetch starts and completes while this one is in flight.
                provider.load(shop_id)
                return {"shop_id": shop_id, "labor_tax_rate": 1.0}
            return next(responses)

        find.calls = 0
        repo.find_by_shop_id.side_effect = find

        result = provider.load("shop-42")
        assert provider.settings.labor_tax_rate == 9.0
        assert result.labor_tax_rate == 9.0

    def test_switching_shop_clears_settings(self, provider, repo):
        repo.find_by_shop_id.return_value = {"shop_id": "a", "labor_tax_rate": 5}
        provider.load("a")
        repo.find_by_shop_id.side_effect = SettingsStoreError("down")
        provider.load("b")
        assert provider.shop_id == "b"
        assert provider.settings is None


class TestUpdate:
    """Persisted partial updates, never optimistic."""

    def _loaded(self, provider, repo):
        repo.find_by_shop_id.return_value = {"shop_id": "shop-42", "labor_tax_rate": 5.0}
        return provider.load("shop-42")

    def test_update_returns_merged_record(self, provider, repo):
        self._loaded(provider, repo)
        repo.update_fields.return_value = {
            "shop_id": "shop-42", "labor_tax_rate": 5.0, "parts_tax_rate": 7.0,
        }
        merged = provider.update({"parts_tax_rate": "7"})
        repo.update_fields.assert_called_once_with("shop-42", {"parts_tax_rate": 7.0})
        assert merged.labor_tax_rate == 5.0
        assert merged.parts_tax_rate == 7.0
        assert provider.settings == merged

    def test_failed_update_keeps_previous(self, provider, repo, notifications):
        before = self._loaded(provider, repo)
        repo.update_fields.side_effect = SettingsStoreError("write failed")
        assert provider.update({"labor_tax_rate": 9}) is None
        assert provider.settings == before
        assert notifications.active()[0].title == "Could not save tax settings"

    def test_update_requires_loaded_shop(self, provider):
        with pytest.raises(RuntimeError):
            provider.update({"labor_tax_rate": 1})

    def test_invalid_change_raises(self, provider, repo):
        self._loaded(provider, repo)
        with pytest.raises(ValueError):
            provider.update({"tax_calculation_method": "compound"})
        repo.update_fields.assert_not_called()


class TestValidateChanges:
    """Normalization of update payloads."""

    def test_unknown_field(self):
        with pytest.raises(ValueError, match="shop_id"):
            validate_changes({"shop_id": "other"})

    def test_normalizes_values(self):
        cleaned = validate_changes({
            "labor_tax_rate": "-3",
            "apply_tax_to_parts": 0,
            "tax_exempt_customer_ids": [1, "c-2"],
            "tax_display_method": "inclusive",
        })
        assert cleaned == {
            "labor_tax_rate": 0.0,
            "apply_tax_to_parts": False,
            "tax_exempt_customer_ids": ["1", "c-2"],
            "tax_display_method": "inclusive",
        }


    def test_flag_strings_are_parsed(self):
        cleaned = validate_changes({"apply_tax_to_labor": "false", "apply_tax_to_parts": "yes"})
        assert cleaned == {"apply_tax_to_labor": False, "apply_tax_to_parts": True}
        assert validate_changes({"apply_tax_to_labor": "0"}) == {"apply_tax_to_labor": False}


class TestTaxSettingsDocument:
    """Conversion to and from stored records."""

    def test_from_document_tolerates_bad_fields(self):
        settings = TaxSettings.from_document({
            "shop_id": "s",
            "labor_tax_rate": "abc",
            "tax_calculation_method": "weird",
            "apply_tax_to_labor": "false",
            "tax_exempt_customer_ids": "c-1",
        })
        assert settings.labor_tax_rate == 0.0
        assert settings.tax_calculation_method == "separate"
        assert settings.apply_tax_to_labor is False
        assert settings.tax_exempt_customer_ids == ("c-1",)

    def test_document_round_trip(self):
        settings = TaxSettings(shop_id="s", labor_tax_rate=8.25, tax_exempt_customer_ids=("a", "b"))
        assert TaxSettings.from_document(settings.to_document()) == settings
