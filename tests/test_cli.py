"""Tests for CLI functionality."""

import json
from unittest.mock import MagicMock, patch

import pytest

from shop_tax import __version__
from shop_tax.cli import main
from shop_tax.tax_calculation.repository import SettingsStoreError


@pytest.fixture
def work_order_file(tmp_path, sample_work_order):
    path = tmp_path / "wo.json"
    path.write_text(json.dumps(sample_work_order))
    return str(path)


@pytest.fixture
def settings_file(tmp_path):
    path = tmp_path / "tax.json"
    path.write_text(json.dumps({"shop_id": "shop-42", "labor_tax_rate": 8.25, "parts_tax_rate": 6}))
    return str(path)


@pytest.fixture
def mock_repo():
    """Patch the repository class used by the CLI and return the entered instance."""
    with patch("shop_tax.cli.TaxSettingsRepository") as repo_cls:
        repo = MagicMock()
        repo_cls.return_value.__enter__.return_value = repo
        yield repo


class TestCLI:
    """Test cases for the CLI main function."""

    def test_cli_help(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            main(["--help"])
        assert exc_info.value.code == 0
        assert "Shop Tax - work order tax and totals" in capsys.readouterr().out

    def test_cli_version(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            main(["--version"])
        assert exc_info.value.code == 0
        assert f"Shop Tax {__version__}" in capsys.readouterr().out

    def test_cli_no_command(self, capsys):
        assert main([]) == 1
        assert "Available commands" in capsys.readouterr().out

    def test_totals_from_settings_file(self, capsys, work_order_file, settings_file):
        result = main(["work-order-totals", "--work-order", work_order_file,
                       "--settings-file", settings_file])
        assert result == 0
        out = capsys.readouterr().out
        assert "WO-1001" in out
        assert "494.29" in out
        assert "Sales Tax (Labor 8.25%, Parts 6%)" in out

    def test_totals_json_with_fees(self, capsys, work_order_file, settings_file):
        result = main(["work-order-totals", "--work-order", work_order_file,
                       "--settings-file", settings_file, "--json",
                       "--shop-supplies", "5", "--parts-discount", "1"])
        assert result == 0
        out = capsys.readouterr().out
        data = json.loads(out[out.index("{"):])
        assert data["totals"]["grand_total"] == 494.29
        assert data["invoice"]["total_amount"] == 498.29

    def test_totals_from_store(self, capsys, mock_repo, work_order_file):
        mock_repo.find_by_shop_id.return_value = {"shop_id": "shop-42", "labor_tax_rate": 10}
        assert main(["work-order-totals", "--work-order", work_order_file, "--shop-id", "shop-42"]) == 0
        mock_repo.find_by_shop_id.assert_called_once_with("shop-42")
        assert "25.00" in capsys.readouterr().out

    def test_totals_without_settings_applies_no_tax(self, capsys, mock_repo, work_order_file):
        mock_repo.find_by_shop_id.side_effect = SettingsStoreError("store offline")
        assert main(["work-order-totals", "--work-order", work_order_file, "--shop-id", "shop-42"]) == 0
        out = capsys.readouterr().out
        assert "[ERROR] Could not load tax settings: store offline" in out
        assert "461.00" in out
        assert "no tax applied" in out

    def test_show_settings(self, capsys, mock_repo):
        mock_repo.find_by_shop_id.return_value = None
        mock_repo.insert.side_effect = lambda doc: doc
        assert main(["show-settings", "--shop-id", "shop-new"]) == 0
        out = capsys.readouterr().out
        assert "shop-new" in out
        assert "separate" in out

    def test_show_settings_store_failure(self, capsys, mock_repo):
        mock_repo.find_by_shop_id.side_effect = SettingsStoreError("store offline")
        assert main(["show-settings", "--shop-id", "shop-42"]) == 1
        assert "store offline" in capsys.readouterr().out

    def test_update_settings(self, capsys, mock_repo):
        mock_repo.find_by_shop_id.return_value = {"shop_id": "shop-42"}
        mock_repo.update_fields.return_value = {
            "shop_id": "shop-42", "labor_tax_rate": 8.25,
            "tax_calculation_method": "combined", "apply_tax_to_parts": False,
        }
        result = main(["update-settings", "--shop-id", "shop-42", "--labor-rate", "8.25",
                       "--method", "combined", "--no-parts-tax"])
        assert result == 0
        mock_repo.update_fields.assert_called_once_with("shop-42", {
            "labor_tax_rate": 8.25,
            "tax_calculation_method": "combined",
            "apply_tax_to_parts": False,
        })
        assert "combined" in capsys.readouterr().out

    def test_update_settings_nothing_to_do(self, capsys, mock_repo):
        assert main(["update-settings", "--shop-id", "shop-42"]) == 1
        assert "Nothing to update." in capsys.readouterr().out
        mock_repo.update_fields.assert_not_called()

    def test_missing_work_order_file(self, tmp_path, settings_file):
        missing = str(tmp_path / "nope.json")
        assert main(["work-order-totals", "--work-order", missing, "--settings-file", settings_file]) == 1
