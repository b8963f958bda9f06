"""Display currencies for project quotes; amounts are stored in the base currency."""
from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Iterator, Optional

BASE_CURRENCY = "NZD"


@dataclass
class Currency:
    """One display currency and its conversion rate from the base currency."""

    code: str
    symbol: str
    name: str
    rate: float
    enabled: bool = False

    def to_dict(self) -> dict[str, object]:
        """Return the currency as a JSON-ready mapping."""

        return asdict(self)


def default_currencies() -> list[Currency]:
    """Return a fresh copy of the built-in currency table in display order."""

    return [
        Currency("NZD", "$", "New Zealand Dollar", 1.0, enabled=True),
        Currency("USD", "$", "US Dollar", 0.62),
        Currency("AUD", "$", "Australian Dollar", 0.94),
        Currency("GBP", "£", "British Pound", 0.48),
        Currency("EUR", "€", "Euro", 0.56),
    ]


class CurrencyTable:
    """Ordered currency table keyed by code.

    Unknown codes are never an error: setters ignore them and conversion
    returns the amount unchanged.
    """

    def __init__(self, currencies: Optional[list[Currency]] = None, base_code: str = BASE_CURRENCY) -> None:
        self._currencies: dict[str, Currency] = {
            currency.code: currency for currency in (currencies or default_currencies())
        }
        self.base_code = base_code

    def __iter__(self) -> Iterator[Currency]:
        """Iterate currencies in display order."""

        return iter(self._currencies.values())

    def __contains__(self, code: object) -> bool:
        """Return True if ``code`` is in the table."""

        return code in self._currencies

    def get(self, code: str) -> Optional[Currency]:
        """Return the currency for ``code``, or ``None``."""

        return self._currencies.get(code)

    @property
    def base(self) -> Currency:
        """Return the base currency."""

        return self._currencies[self.base_code]

    def set_rate(self, code: str, rate: float) -> None:
        """Set the rate for ``code``; unknown codes are ignored."""

        currency = self._currencies.get(code)
        if currency is not None:
            currency.rate = rate

    def toggle(self, code: str, enabled: bool) -> None:
        """Enable or disable ``code``; unknown codes are ignored."""

        currency = self._currencies.get(code)
        if currency is not None:
            currency.enabled = enabled

    def convert(self, amount: float, code: str) -> float:
        """Convert an amount from the base currency into ``code``."""

        currency = self._currencies.get(code)
        if currency is None:
            return amount
        return amount * currency.rate

    def enabled(self) -> list[Currency]:
        """Return enabled currencies in display order."""

        return [currency for currency in self._currencies.values() if currency.enabled]

    def enabled_foreign(self) -> list[Currency]:
        """Return enabled currencies other than the base currency."""

        return [currency for currency in self.enabled() if currency.code != self.base_code]
