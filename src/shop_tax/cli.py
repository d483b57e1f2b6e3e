"""
Command-line interface for Shop Tax.
"""

import argparse
import json
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from . import __version__
from .notifications import NotificationCenter
from .tax_calculation.models import (
    CALCULATION_METHODS,
    DISPLAY_METHODS,
    TaxSettings,
)
from .tax_calculation.repository import TaxSettingsRepository
from .tax_calculation.settings import TaxSettingsProvider
from .tax_calculation.totals import build_invoice_summary, derive_work_order_totals
from .utils.config import Config
from .utils.logging import setup_logging


def create_parser() -> argparse.ArgumentParser:
    """Create and configure the argument parser."""
    parser = argparse.ArgumentParser(
        description="Shop Tax - work order tax and totals",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  shop-tax show-settings --shop-id shop-42
  shop-tax update-settings --shop-id shop-42 --labor-rate 8.25 --parts-rate 6
  shop-tax work-order-totals --work-order wo-1001.json --shop-id shop-42
  shop-tax work-order-totals --work-order wo-1001.json --settings-file tax.json --json
        """,
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"Shop Tax {__version__}",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose logging",
    )
    parser.add_argument(
        "--log-file",
        help="Log file path",
    )
    parser.add_argument(
        "--env-file",
        default=".env",
        help="Environment file with DB_CONNECTION_URL and friends (default: .env)",
    )

    subparsers = parser.add_subparsers(
        dest="command",
        help="Available commands",
    )

    show_parser = subparsers.add_parser(
        "show-settings",
        help="Show a shop's tax settings (creating defaults if missing)",
    )
    show_parser.add_argument("--shop-id", required=True, help="Shop identifier")

    update_parser = subparsers.add_parser(
        "update-settings",
        help="Change a shop's tax settings",
    )
    update_parser.add_argument("--shop-id", required=True, help="Shop identifier")
    update_parser.add_argument("--labor-rate", type=float, help="Labor tax rate in percent")
    update_parser.add_argument("--parts-rate", type=float, help="Parts tax rate in percent")
    update_parser.add_argument(
        "--combined-rate", type=float, help="Single rate used by the combined method"
    )
    update_parser.add_argument("--method", choices=CALCULATION_METHODS, help="Calculation method")
    update_parser.add_argument("--display", choices=DISPLAY_METHODS, help="Display method")
    update_parser.add_argument(
        "--labor-tax", dest="apply_labor", action="store_true", default=None,
        help="Apply tax to labor",
    )
    update_parser.add_argument(
        "--no-labor-tax", dest="apply_labor", action="store_false", default=None,
        help="Do not tax labor",
    )
    update_parser.add_argument(
        "--parts-tax", dest="apply_parts", action="store_true", default=None,
        help="Apply tax to parts",
    )
    update_parser.add_argument(
        "--no-parts-tax", dest="apply_parts", action="store_false", default=None,
        help="Do not tax parts",
    )
    update_parser.add_argument("--label", help="Tax label shown on invoices")
    update_parser.add_argument(
        "--exempt-customer",
        action="append",
        metavar="CUSTOMER_ID",
        help="Tax-exempt customer id (repeatable; replaces the current list)",
    )

    totals_parser = subparsers.add_parser(
        "work-order-totals",
        help="Compute tax and totals for a work order JSON file",
    )
    totals_parser.add_argument(
        "--work-order",
        required=True,
        help="JSON file with job_lines, parts and an optional customer",
    )
    source = totals_parser.add_mutually_exclusive_group(required=True)
    source.add_argument("--shop-id", help="Load tax settings for this shop from the store")
    source.add_argument("--settings-file", help="Read tax settings from a JSON file instead")
    totals_parser.add_argument("--json", action="store_true", help="Print JSON instead of a table")
    totals_parser.add_argument("--shop-supplies", type=float, help="Shop supplies fee")
    totals_parser.add_argument("--hazardous-materials", type=float, help="Hazardous materials fee")
    totals_parser.add_argument("--labor-discount", type=float, default=0.0, help="Labor discount")
    totals_parser.add_argument("--parts-discount", type=float, default=0.0, help="Parts discount")

    return parser


def _print_box(lines: List[Tuple[str, Any]]) -> None:
    label_width = max(len(lbl) for lbl, _ in lines)
    inner_width = max(len(f" {lbl.ljust(label_width)} : {val}") for lbl, val in lines) + 1
    print("┌" + "─" * inner_width + "┐")
    for lbl, val in lines:
        line = f" {lbl.ljust(label_width)} : {val}"
        print(f"│{line.ljust(inner_width)}│")
    print("└" + "─" * inner_width + "┘")


def _settings_lines(settings: TaxSettings) -> List[Tuple[str, Any]]:
    exempt = ", ".join(settings.tax_exempt_customer_ids) or "-"
    return [
        ("Shop", settings.shop_id),
        ("Tax label", settings.tax_description),
        ("Method", settings.tax_calculation_method),
        ("Display", settings.tax_display_method),
        ("Labor rate", f"{settings.labor_tax_rate:g}%"),
        ("Parts rate", f"{settings.parts_tax_rate:g}%"),
        ("Combined rate", f"{settings.combined_tax_rate:g}%"),
        ("Tax labor", "yes" if settings.apply_tax_to_labor else "no"),
        ("Tax parts", "yes" if settings.apply_tax_to_parts else "no"),
        ("Exempt customers", exempt),
    ]


def _report_notifications(notifications: NotificationCenter) -> None:
    for notification in notifications.active():
        print(f"[{notification.level.upper()}] {notification.title}: {notification.message}")
        notifications.dismiss(notification.id)


def _load_json(path: str) -> Dict[str, Any]:
    with Path(path).open(encoding="utf-8") as fh:
        data = json.load(fh)
    if not isinstance(data, dict):
        raise ValueError(f"{path} must contain a JSON object")
    return data


def show_settings(shop_id: str, config: Config) -> int:
    """Print a shop's tax settings."""
    notifications = NotificationCenter()
    with TaxSettingsRepository(config=config) as repo:
        provider = TaxSettingsProvider(repo, notifications)
        settings = provider.load(shop_id)
    if settings is None:
        _report_notifications(notifications)
        return 1
    _print_box(_settings_lines(settings))
    return 0


def update_settings(shop_id: str, changes: Dict[str, Any], config: Config) -> int:
    """Persist changes to a shop's tax settings and print the result."""
    if not changes:
        print("Nothing to update.")
        return 1
    notifications = NotificationCenter()
    with TaxSettingsRepository(config=config) as repo:
        provider = TaxSettingsProvider(repo, notifications)
        settings = None
        if provider.load(shop_id) is not None:
            settings = provider.update(changes)
    if settings is None:
        _report_notifications(notifications)
        return 1
    _print_box(_settings_lines(settings))
    return 0


def work_order_totals(
    work_order_path: str,
    config: Config,
    shop_id: Optional[str] = None,
    settings_path: Optional[str] = None,
    as_json: bool = False,
    shop_supplies: Optional[float] = None,
    hazardous_materials: Optional[float] = None,
    labor_discount: float = 0.0,
    parts_discount: float = 0.0,
) -> int:
    """Compute and print totals for a work order file."""
    work_order = _load_json(work_order_path)
    notifications = NotificationCenter()

    if settings_path:
        settings = TaxSettings.from_document(_load_json(settings_path))
    else:
        with TaxSettingsRepository(config=config) as repo:
            settings = TaxSettingsProvider(repo, notifications).load(shop_id)
        if settings is None:
            # Fall back to no tax rather than guessing a rate.
            _report_notifications(notifications)

    totals = derive_work_order_totals(
        work_order.get("job_lines") or [],
        work_order.get("parts") or [],
        work_order.get("customer"),
        settings,
    )
    summary = build_invoice_summary(
        totals,
        shop_supplies=config["shop_supplies_fee"] if shop_supplies is None else shop_supplies,
        hazardous_materials=(
            config["hazardous_materials_fee"] if hazardous_materials is None
            else hazardous_materials
        ),
        labor_discount=labor_discount,
        parts_discount=parts_discount,
    )

    if as_json:
        print(json.dumps({"totals": totals.to_dict(), "invoice": summary.to_dict()}, indent=2))
        return 0

    lines = [
        ("Work order", work_order.get("work_order_number") or work_order.get("id") or "-"),
        ("Labor", f"{totals.labor_amount:.2f}"),
        ("Parts", f"{totals.parts_amount:.2f}"),
        ("Labor tax", f"{totals.labor_tax:.2f}"),
        ("Parts tax", f"{totals.parts_tax:.2f}"),
        ("Total tax", f"{totals.total_tax:.2f}"),
        ("Grand total", f"{totals.grand_total:.2f}"),
    ]
    if summary.shop_supplies or summary.hazardous_materials:
        lines.append(("Shop supplies", f"{summary.shop_supplies:.2f}"))
        lines.append(("Hazardous materials", f"{summary.hazardous_materials:.2f}"))
    if summary.labor_discount or summary.parts_discount:
        lines.append(("Discounts", f"-{summary.labor_discount + summary.parts_discount:.2f}"))
    lines.append(("Invoice total", f"{summary.total_amount:.2f}"))
    lines.append(("Tax", totals.breakdown.tax_description))
    if totals.is_loading:
        lines.append(("Status", "tax settings unavailable, no tax applied"))
    _print_box(lines)
    return 0


def _changes_from_args(parsed_args: argparse.Namespace) -> Dict[str, Any]:
    mapping = {
        "labor_tax_rate": parsed_args.labor_rate,
        "parts_tax_rate": parsed_args.parts_rate,
        "combined_tax_rate": parsed_args.combined_rate,
        "tax_calculation_method": parsed_args.method,
        "tax_display_method": parsed_args.display,
        "apply_tax_to_labor": parsed_args.apply_labor,
        "apply_tax_to_parts": parsed_args.apply_parts,
        "tax_description": parsed_args.label,
        "tax_exempt_customer_ids": parsed_args.exempt_customer,
    }
    return {key: value for key, value in mapping.items() if value is not None}


def main(args: Optional[list] = None) -> int:
    """
    Main entry point for the CLI.

    Args:
        args: Command line arguments (defaults to sys.argv[1:])

    Returns:
        Exit code
    """
    parser = create_parser()
    parsed_args = parser.parse_args(args)

    config = Config(parsed_args.env_file)
    log_level = "DEBUG" if parsed_args.verbose else config.get("log_level", "INFO")
    logger = setup_logging(level=log_level, log_file=parsed_args.log_file)

    try:
        if parsed_args.command == "show-settings":
            return show_settings(parsed_args.shop_id, config)

        elif parsed_args.command == "update-settings":
            return update_settings(parsed_args.shop_id, _changes_from_args(parsed_args), config)

        elif parsed_args.command == "work-order-totals":
            return work_order_totals(
                parsed_args.work_order,
                config,
                shop_id=parsed_args.shop_id,
                settings_path=parsed_args.settings_file,
                as_json=parsed_args.json,
                shop_supplies=parsed_args.shop_supplies,
                hazardous_materials=parsed_args.hazardous_materials,
                labor_discount=parsed_args.labor_discount,
                parts_discount=parsed_args.parts_discount,
            )

        elif not parsed_args.command:
            parser.print_help()
            return 1

    except Exception as e:
        logger.error(f"Error: {e}")
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
