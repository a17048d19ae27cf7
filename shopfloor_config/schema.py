"""
Purchasing settings schema.

Defines the structure and defaults for the procurement core's tunables.
Values are loaded from ``settings.yaml`` (or the file named by
``SHOPFLOOR_SETTINGS``) at runtime; every field has a sensible default.
"""

from dataclasses import dataclass, field, fields
from typing import Self

from shopfloor_kernel.logging_config import get_logger

logger = get_logger("config.schema")


@dataclass(frozen=True)
class PurchasingSettings:
    """
    Settings for requisitions, orders, receipts and costing.

        settings = PurchasingSettings(default_currency="USD", cost_window=5)
    """

    # Currency
    default_currency: str = "PEN"
    active_currencies: tuple[str, ...] = field(
        default_factory=lambda: ("PEN", "USD", "EUR")
    )

    # Requisition codes: <prefix>-<year>-<seq>
    requisition_code_prefix: str = "SC"
    requisition_sequence_width: int = 4
    max_code_attempts: int = 5

    # Requisition notes
    max_note_length: int = 500

    # Orders
    min_order_code_length: int = 3

    # Moving-average cost
    cost_window: int = 10
    cost_decimal_places: int = 2

    # Outbox
    outbox_max_attempts: int = 5

    def __post_init__(self):
        if self.max_code_attempts < 1:
            raise ValueError("max_code_attempts must be >= 1")
        if self.cost_window < 1:
            raise ValueError("cost_window must be >= 1")
        if self.requisition_sequence_width < 1:
            raise ValueError("requisition_sequence_width must be >= 1")
        if self.cost_decimal_places < 0:
            raise ValueError("cost_decimal_places must be >= 0")
        if self.default_currency not in self.active_currencies:
            raise ValueError(
                f"default_currency {self.default_currency!r} is not in active_currencies"
            )
        logger.info(
            "purchasing_settings_initialized",
            extra={
                "default_currency": self.default_currency,
                "active_currencies": list(self.active_currencies),
                "requisition_code_prefix": self.requisition_code_prefix,
                "max_code_attempts": self.max_code_attempts,
                "cost_window": self.cost_window,
            },
        )

    @classmethod
    def with_defaults(cls) -> Self:
        """Create settings with the shipped defaults."""
        logger.info("purchasing_settings_created_with_defaults")
        return cls()

    @classmethod
    def from_dict(cls, data: dict) -> Self:
        """Create settings from a dictionary (e.g., parsed YAML)."""
        logger.info(
            "purchasing_settings_loading_from_dict",
            extra={"keys": sorted(data.keys())},
        )
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ValueError(f"Unknown purchasing settings: {', '.join(unknown)}")
        values = dict(data)
        if "default_currency" in values:
            values["default_currency"] = str(values["default_currency"]).strip().upper()
        if "active_currencies" in values:
            values["active_currencies"] = tuple(
                str(code).strip().upper() for code in values["active_currencies"]
            )
        return cls(**values)

    def requisition_code(self, year: int, sequence: int) -> str:
        """Format e.g. ``SC-2025-0007``."""
        return (
            f"{self.requisition_code_prefix}-{year}-"
            f"{sequence:0{self.requisition_sequence_width}d}"
        )

    def requisition_code_prefix_for(self, year: int) -> str:
        return f"{self.requisition_code_prefix}-{year}-"
