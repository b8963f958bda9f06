"""Project pricing engine: task costs, uplift and discount factors, client quotes."""
from __future__ import annotations

import json
import math
import logging
import secrets
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Literal, Mapping, Optional, Union

from currencies import Currency, CurrencyTable
from rate_model import HOURS_PER_DAY, ROUNDING_NONE, RateModel, RoundingMode, normalise_rounding

logger = logging.getLogger(__name__)

EXPORT_VERSION = "1.3"
DEFAULT_MAX_UPLIFT = 20
DEFAULT_MAX_DISCOUNT = 10
ALLOCATION_TARGET = 100
ALLOCATION_TOLERANCE = 0.01

FactorCategory = Literal["uplift", "discount"]
FACTOR_CATEGORIES: tuple[FactorCategory, ...] = ("uplift", "discount")

_BUSINESS_MODEL_FIELDS = {
    "salaryBudget": "salary_budget",
    "growthBudget": "growth_budget",
    "workingWeeks": "working_weeks",
    "teamMembers": "team_members",
    "hoursPerWeek": "hours_per_week",
}


class ProjectImportError(ValueError):
    """Raised when an exported project payload cannot be applied."""


def _quantise(value: Decimal) -> Decimal:
    """Return the value rounded to two decimal places using half-up rounding."""

    return value.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def format_currency(value: Decimal | float | int | str, symbol: str = "$") -> str:
    """Return a currency-formatted string for the supplied value."""

    decimal_value = Decimal(str(value))
    return f"{symbol}{_quantise(decimal_value):,.2f}"


def format_days(value: float | int) -> str:
    """Return a day count with thousands separators and at most two decimals."""

    return f"{value:,.2f}".rstrip("0").rstrip(".")


def generate_id() -> str:
    """Return a random identifier for a task or factor."""

    return secrets.token_hex(8)


def _clamp_percent(value: float) -> float:
    """Clamp a percentage to the 0-100 range."""

    return max(0, min(100, value))


@dataclass
class Task:
    """A unit of project work; ``cost`` is cached at the last recompute."""

    id: str
    name: str
    days: float
    cost: float = 0.0


@dataclass
class AllocationFactor:
    """A weighted, toggleable contributor to the uplift or discount total."""

    id: str
    name: str
    allocation: float
    selected: bool = True
    category: FactorCategory = "uplift"

    def to_dict(self) -> dict[str, Any]:
        """Return the factor as export-ready JSON."""

        return {
            "id": self.id,
            "name": self.name,
            "allocation": self.allocation,
            "selected": self.selected,
        }


@dataclass(frozen=True)
class AllocationCheck:
    """Whether a factor group's allocations add up to 100%."""

    valid: bool
    total: float
    remaining: float

    def to_dict(self) -> dict[str, Any]:
        """Return the check as a JSON-ready mapping."""

        return {"valid": self.valid, "total": self.total, "remaining": self.remaining}


@dataclass(frozen=True)
class RateComparison:
    """Required day rate against the day rate the project actually achieves."""

    required_day_rate: float
    actual_day_rate: float
    diff_percent: float
    is_sufficient: bool

    def to_dict(self) -> dict[str, Any]:
        """Return the comparison as a JSON-ready mapping."""

        return {
            "required_day_rate": self.required_day_rate,
            "actual_day_rate": self.actual_day_rate,
            "diff_percent": self.diff_percent,
            "is_sufficient": self.is_sufficient,
        }


class FactorGroup:
    """Ordered factors of one category and the cap they share.

    Each selected factor contributes ``allocation / 100 * max_percent``.
    Allocations need not total 100; ``validate`` reports how far off they are.
    """

    def __init__(self, category: FactorCategory, max_percent: float) -> None:
        self.category = category
        self.max_percent = _clamp_percent(max_percent)
        self.factors: list[AllocationFactor] = []

    def find(self, factor_id: str) -> Optional[AllocationFactor]:
        """Return the factor with ``factor_id``, or ``None``."""

        return next((factor for factor in self.factors if factor.id == factor_id), None)

    def add(
        self,
        name: str,
        allocation: float,
        *,
        selected: Optional[bool] = None,
        factor_id: Optional[str] = None,
    ) -> AllocationFactor:
        """Append a new factor; ``selected`` defaults to True."""

        factor = AllocationFactor(
            id=factor_id or generate_id(),
            name=name,
            allocation=allocation,
            selected=True if selected is None else selected,
            category=self.category,
        )
        self.factors.append(factor)
        return factor

    def remove(self, factor_id: str) -> None:
        """Drop the factor with ``factor_id``; unknown ids are ignored."""

        self.factors = [factor for factor in self.factors if factor.id != factor_id]

    def update_allocation(self, factor_id: str, allocation: float) -> bool:
        """Set a factor's allocation and report whether it exists."""

        factor = self.find(factor_id)
        if factor is None:
            return False
        factor.allocation = allocation
        return True

    def toggle(self, factor_id: str, selected: bool) -> bool:
        """Select or deselect a factor and report whether it exists."""

        factor = self.find(factor_id)
        if factor is None:
            return False
        factor.selected = selected
        return True

    def set_max(self, percent: float) -> None:
        """Set the group cap, clamped to 0-100."""

        self.max_percent = _clamp_percent(percent)

    def applied_percent(self) -> float:
        """Return the percentage contributed by the selected factors."""

        return sum(
            factor.allocation / 100 * self.max_percent for factor in self.factors if factor.selected
        )

    def validate(self) -> AllocationCheck:
        """Report whether all allocations total 100 within tolerance."""

        # Every factor counts, selected or not: this checks the configuration.
        total = sum(factor.allocation for factor in self.factors)
        return AllocationCheck(
            valid=abs(total - ALLOCATION_TARGET) < ALLOCATION_TOLERANCE,
            total=total,
            remaining=ALLOCATION_TARGET - total,
        )


@dataclass
class _StagedImport:
    business: Optional[dict[str, float]] = None
    rounding: Any = None
    has_rounding: bool = False
    has_project: bool = False
    client_name: str = ""
    preparer_name: str = ""
    tasks: list[Task] = field(default_factory=list)
    max_uplift: float = DEFAULT_MAX_UPLIFT
    max_discount: float = DEFAULT_MAX_DISCOUNT
    uplift_factors: list[AllocationFactor] = field(default_factory=list)
    discount_factors: list[AllocationFactor] = field(default_factory=list)
    currency_updates: list[tuple[str, Optional[float], Optional[bool]]] = field(default_factory=list)


class PricingEngine:
    """Prices a project's tasks against a :class:`RateModel`.

    Every mutator finishes with :meth:`recompute`, so derived fields are
    always consistent between calls. Unknown task, factor and currency
    identifiers are silently ignored.
    """

    def __init__(self, rate_model: RateModel, *, currencies: Optional[CurrencyTable] = None) -> None:
        self.rate_model = rate_model
        self.client_name = ""
        self.preparer_name = ""
        self.tasks: list[Task] = []
        self.uplift = FactorGroup("uplift", DEFAULT_MAX_UPLIFT)
        self.discount = FactorGroup("discount", DEFAULT_MAX_DISCOUNT)
        self.currencies = currencies if currencies is not None else CurrencyTable()

        self.applied_uplift_percent: float = 0
        self.applied_discount_percent: float = 0
        self.base_project_cost: float = 0
        self.final_project_cost: float = 0
        self.actual_day_rate: float = 0
        self.actual_hourly_rate: float = 0

        self.recompute()

    # ------------------------------------------------------------------
    # Read-only projections
    # ------------------------------------------------------------------

    @property
    def max_uplift(self) -> float:
        """Return the uplift cap in percent."""

        return self.uplift.max_percent

    @property
    def max_discount(self) -> float:
        """Return the discount cap in percent."""

        return self.discount.max_percent

    @property
    def uplift_factors(self) -> list[AllocationFactor]:
        """Return the uplift factors in insertion order."""

        return self.uplift.factors

    @property
    def discount_factors(self) -> list[AllocationFactor]:
        """Return the discount factors in insertion order."""

        return self.discount.factors

    @property
    def base_currency(self) -> str:
        """Return the code of the base currency."""

        return self.currencies.base_code

    @property
    def total_days(self) -> float:
        """Return the sum of task days."""

        return sum(task.days for task in self.tasks)

    @property
    def uplift_amount(self) -> float:
        """Return the extra cost the uplift adds across all tasks."""

        return self.total_days * (self.rate_model.uplifted_day_rate - self.rate_model.required_day_rate)

    @property
    def discount_amount(self) -> float:
        """Return the discount taken off the base project cost."""

        return self.base_project_cost * (self.applied_discount_percent / 100)

    def factor_group(self, category: str) -> Optional[FactorGroup]:
        """Return the uplift or discount group for ``category``."""

        if category == "uplift":
            return self.uplift
        if category == "discount":
            return self.discount
        return None

    # ------------------------------------------------------------------
    # Business model and project details
    # ------------------------------------------------------------------

    def update_business_model(self, **fields: Optional[float]) -> None:
        """Update rate model inputs and recompute."""

        self.rate_model.update(**fields)
        self.recompute()

    def set_rounding(self, mode: Any) -> None:
        """Change the rounding increment and recompute."""

        self.rate_model.set_rounding(mode)
        self.recompute()

    def set_client_name(self, name: str) -> None:
        """Set the client name shown on quotes."""

        self.client_name = name

    def set_preparer_name(self, name: str) -> None:
        """Set the name of the person preparing the quote."""

        self.preparer_name = name

    # ------------------------------------------------------------------
    # Tasks
    # ------------------------------------------------------------------

    def add_task(self, name: str, days: float, *, task_id: Optional[str] = None) -> Task:
        """Append a task priced at the current uplifted day rate.

        Days are not validated here; callers reject non-positive values.
        """

        task = Task(
            id=task_id or generate_id(),
            name=name,
            days=days,
            cost=days * self.rate_model.uplifted_day_rate,
        )
        self.tasks.append(task)
        self.recompute()
        return task

    def remove_task(self, task_id: str) -> None:
        """Remove a task by id and recompute; unknown ids are ignored."""

        self.tasks = [task for task in self.tasks if task.id != task_id]
        self.recompute()

    # ------------------------------------------------------------------
    # Uplift and discount factors
    # ------------------------------------------------------------------

    def add_uplift_factor(
        self,
        name: str,
        allocation: float,
        *,
        selected: Optional[bool] = None,
        factor_id: Optional[str] = None,
    ) -> AllocationFactor:
        """Add an uplift factor and recompute."""

        factor = self.uplift.add(name, allocation, selected=selected, factor_id=factor_id)
        self.recompute()
        return factor

    def remove_uplift_factor(self, factor_id: str) -> None:
        """Remove an uplift factor and recompute."""

        self.uplift.remove(factor_id)
        self.recompute()

    def update_uplift_factor_allocation(self, factor_id: str, allocation: float) -> None:
        """Change an uplift factor's allocation and recompute."""

        if self.uplift.update_allocation(factor_id, allocation):
            self.recompute()

    def toggle_uplift_factor(self, factor_id: str, selected: bool) -> None:
        """Select or deselect an uplift factor and recompute."""

        if self.uplift.toggle(factor_id, selected):
            self.recompute()

    def set_max_uplift(self, percent: float) -> None:
        """Set the maximum uplift percentage and recompute."""

        self.uplift.set_max(percent)
        self.recompute()

    def add_discount_factor(
        self,
        name: str,
        allocation: float,
        *,
        selected: Optional[bool] = None,
        factor_id: Optional[str] = None,
    ) -> AllocationFactor:
        """Add a discount factor and recompute."""

        factor = self.discount.add(name, allocation, selected=selected, factor_id=factor_id)
        self.recompute()
        return factor

    def remove_discount_factor(self, factor_id: str) -> None:
        """Remove a discount factor and recompute."""

        self.discount.remove(factor_id)
        self.recompute()

    def update_discount_factor_allocation(self, factor_id: str, allocation: float) -> None:
        """Change a discount factor's allocation and recompute."""

        if self.discount.update_allocation(factor_id, allocation):
            self.recompute()

    def toggle_discount_factor(self, factor_id: str, selected: bool) -> None:
        """Select or deselect a discount factor and recompute."""

        if self.discount.toggle(factor_id, selected):
            self.recompute()

    def set_max_discount(self, percent: float) -> None:
        """Set the maximum discount percentage and recompute."""

        self.discount.set_max(percent)
        self.recompute()

    def validate_uplift_allocations(self) -> AllocationCheck:
        """Check the uplift allocations against 100%."""

        return self.uplift.validate()

    def validate_discount_allocations(self) -> AllocationCheck:
        """Check the discount allocations against 100%."""

        return self.discount.validate()

    # ------------------------------------------------------------------
    # Calculation
    # ------------------------------------------------------------------

    def recompute(self) -> None:
        """Recalculate every derived figure.

        The order matters: task costs must pick up the current uplift before
        they are summed, and the discount applies to the uplift-inclusive sum.
        """

        self.applied_uplift_percent = self.uplift.applied_percent()
        self.rate_model.apply_uplift(self.applied_uplift_percent)

        day_rate = self.rate_model.uplifted_day_rate
        for task in self.tasks:
            task.cost = task.days * day_rate

        self.base_project_cost = sum(task.cost for task in self.tasks)

        self.applied_discount_percent = self.discount.applied_percent()
        self.final_project_cost = self.base_project_cost * (1 - self.applied_discount_percent / 100)

        total_days = self.total_days
        if total_days == 0:
            self.actual_day_rate = 0
            self.actual_hourly_rate = 0
        else:
            self.actual_day_rate = self.final_project_cost / total_days
            self.actual_hourly_rate = self.actual_day_rate / HOURS_PER_DAY

    def get_rate_comparison(self) -> RateComparison:
        """Compare the required day rate with the achieved one."""

        required = self.rate_model.required_day_rate
        actual = self.actual_day_rate
        diff_percent = (actual - required) / required * 100 if required else 0
        return RateComparison(
            required_day_rate=required,
            actual_day_rate=actual,
            diff_percent=diff_percent,
            is_sufficient=actual >= required,
        )

    # ------------------------------------------------------------------
    # Currencies
    # ------------------------------------------------------------------

    def set_currency_rate(self, code: str, rate: float) -> None:
        """Set the conversion rate for ``code``."""

        self.currencies.set_rate(code, rate)

    def toggle_currency(self, code: str, enabled: bool) -> None:
        """Enable or disable a currency."""

        self.currencies.toggle(code, enabled)

    def convert_currency(self, amount: float, code: str) -> float:
        """Convert a base-currency amount into ``code``."""

        return self.currencies.convert(amount, code)

    def get_enabled_currencies(self) -> list[Currency]:
        """Return the enabled currencies, base included."""

        return self.currencies.enabled()

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    def get_summary(self) -> dict[str, Any]:
        """Return the internal view of the project, uplift detail included."""

        return {
            "client_name": self.client_name,
            "preparer_name": self.preparer_name,
            "business_model": self.rate_model.get_summary(),
            "tasks": [
                {"id": task.id, "name": task.name, "days": task.days, "cost": task.cost}
                for task in self.tasks
            ],
            "total_days": self.total_days,
            "max_uplift": self.max_uplift,
            "uplift_factors": [factor.to_dict() for factor in self.uplift_factors],
            "uplift_validation": self.validate_uplift_allocations().to_dict(),
            "max_discount": self.max_discount,
            "discount_factors": [factor.to_dict() for factor in self.discount_factors],
            "discount_validation": self.validate_discount_allocations().to_dict(),
            "base_project_cost": self.base_project_cost,
            "applied_uplift_percent": self.applied_uplift_percent,
            "uplift_amount": self.uplift_amount,
            "applied_discount_percent": self.applied_discount_percent,
            "discount_amount": self.discount_amount,
            "final_project_cost": self.final_project_cost,
            "actual_day_rate": self.actual_day_rate,
            "actual_hourly_rate": self.actual_hourly_rate,
            "rate_comparison": self.get_rate_comparison().to_dict(),
            "base_currency": self.base_currency,
            "currencies": [currency.to_dict() for currency in self.currencies],
        }

    def prepare_client_quote(self, *, issued_on: Optional[date] = None) -> dict[str, Any]:
        """Return the client-facing quote.

        The uplifted day rate is presented as the plain day rate; the uplift
        percentage and its factors never appear. The discount is disclosed.
        """

        base = self.currencies.base
        discount_amount = self.discount_amount
        return {
            "client_name": self.client_name,
            "preparer_name": self.preparer_name,
            "issued_on": (issued_on or date.today()).isoformat(),
            "currency": {"code": base.code, "symbol": base.symbol, "name": base.name},
            "day_rate": self.rate_model.uplifted_day_rate,
            "tasks": [{"name": task.name, "days": task.days, "cost": task.cost} for task in self.tasks],
            "total_days": self.total_days,
            "subtotal": self.base_project_cost,
            "discount_percent": self.applied_discount_percent,
            "discount_amount": discount_amount,
            "total": self.final_project_cost,
            "conversions": [
                {
                    "code": currency.code,
                    "symbol": currency.symbol,
                    "name": currency.name,
                    "rate": currency.rate,
                    "day_rate": self.convert_currency(self.rate_model.uplifted_day_rate, currency.code),
                    "subtotal": self.convert_currency(self.base_project_cost, currency.code),
                    "discount_amount": self.convert_currency(discount_amount, currency.code),
                    "total": self.convert_currency(self.final_project_cost, currency.code),
                }
                for currency in self.currencies.enabled_foreign()
            ],
        }

    # ------------------------------------------------------------------
    # Export / import
    # ------------------------------------------------------------------

    def build_export_payload(self) -> dict[str, Any]:
        """Return the version-tagged state tree with freshly derived figures."""

        self.recompute()
        model = self.rate_model
        return {
            "version": EXPORT_VERSION,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "businessModel": {
                "salaryBudget": model.salary_budget,
                "growthBudget": model.growth_budget,
                "workingWeeks": model.working_weeks,
                "teamMembers": model.team_members,
                "hoursPerWeek": model.hours_per_week,
                "rounding": model.rounding,
                "upliftedDayRate": model.uplifted_day_rate,
            },
            "project": {
                "clientName": self.client_name,
                "preparerName": self.preparer_name,
                "tasks": [
                    {"id": task.id, "name": task.name, "days": task.days, "cost": task.cost}
                    for task in self.tasks
                ],
                "maxUplift": self.max_uplift,
                "upliftFactors": [factor.to_dict() for factor in self.uplift_factors],
                "maxDiscount": self.max_discount,
                "discountFactors": [factor.to_dict() for factor in self.discount_factors],
            },
            "currencies": {
                "baseCurrency": self.base_currency,
                "rates": {
                    currency.code: {"rate": currency.rate, "enabled": currency.enabled}
                    for currency in self.currencies
                },
            },
        }

    def export_project_data(self) -> str:
        """Return the export payload as indented JSON text."""

        return json.dumps(self.build_export_payload(), indent=2, ensure_ascii=False)

    def import_project_data(self, data: Union[str, bytes, Mapping[str, Any]]) -> bool:
        """Replace the engine state with an exported payload.

        Returns ``False`` and leaves the current state untouched when the
        payload cannot be parsed, lacks a version tag or holds malformed
        tasks or factors.
        """

        try:
            payload = _load_payload(data)
            staged = self._stage_import(payload)
        except ProjectImportError as exc:
            logger.error("Project import rejected: %s", exc)
            return False

        self._apply_import(staged)
        self.recompute()
        logger.info(
            "Imported project for %r with %d task(s)", self.client_name or "unnamed client", len(self.tasks)
        )
        return True

    def _stage_import(self, payload: Mapping[str, Any]) -> _StagedImport:
        """Validate ``payload`` into a staged import without touching state."""

        staged = _StagedImport()

        business = payload.get("businessModel")
        if business is not None:
            business = _require_mapping(business, "businessModel")
            staged.business = {
                attribute: _optional_number(business.get(key), f"businessModel.{key}")
                for key, attribute in _BUSINESS_MODEL_FIELDS.items()
            }
            if "rounding" in business:
                staged.has_rounding = True
                staged.rounding = _parse_rounding(business["rounding"])

        project = payload.get("project")
        if project is not None:
            project = _require_mapping(project, "project")
            staged.has_project = True
            staged.client_name = str(project.get("clientName") or "")
            staged.preparer_name = str(project.get("preparerName") or "")
            staged.tasks = [
                _parse_task(entry, index) for index, entry in enumerate(_optional_list(project, "tasks"))
            ]
            max_uplift = _optional_number(project.get("maxUplift"), "project.maxUplift")
            max_discount = _optional_number(project.get("maxDiscount"), "project.maxDiscount")
            staged.max_uplift = DEFAULT_MAX_UPLIFT if max_uplift is None else max_uplift
            staged.max_discount = DEFAULT_MAX_DISCOUNT if max_discount is None else max_discount
            for category in FACTOR_CATEGORIES:
                key = f"{category}Factors"
                factors = [
                    _parse_factor(entry, category, f"project.{key}[{index}]")
                    for index, entry in enumerate(_optional_list(project, key))
                ]
                setattr(staged, f"{category}_factors", factors)

        currencies = payload.get("currencies")
        if isinstance(currencies, Mapping):
            base_code = currencies.get("baseCurrency")
            if base_code and base_code != self.base_currency:
                logger.warning(
                    "Ignoring imported base currency %s; amounts stay in %s", base_code, self.base_currency
                )
            rates = currencies.get("rates")
            if isinstance(rates, Mapping):
                for code, entry in rates.items():
                    if code not in self.currencies or not isinstance(entry, Mapping):
                        continue
                    rate = entry.get("rate")
                    enabled = entry.get("enabled")
                    staged.currency_updates.append(
                        (
                            code,
                            rate if _is_number(rate) and rate > 0 else None,
                            enabled if isinstance(enabled, bool) else None,
                        )
                    )

        return staged

    def _apply_import(self, staged: _StagedImport) -> None:
        """Apply a fully validated import."""

        if staged.business is not None:
            self.rate_model.update(**staged.business)
        if staged.has_rounding:
            self.rate_model.set_rounding(staged.rounding)

        if staged.has_project:
            self.client_name = staged.client_name
            self.preparer_name = staged.preparer_name
            self.tasks = staged.tasks
            self.uplift.set_max(staged.max_uplift)
            self.discount.set_max(staged.max_discount)
            self.uplift.factors = staged.uplift_factors
            self.discount.factors = staged.discount_factors

        for code, rate, enabled in staged.currency_updates:
            if rate is not None:
                self.currencies.set_rate(code, rate)
            if enabled is not None:
                self.currencies.toggle(code, enabled)


def _load_payload(data: Union[str, bytes, Mapping[str, Any]]) -> Mapping[str, Any]:
    """Decode and version-check an import payload."""

    if isinstance(data, (str, bytes, bytearray)):
        try:
            data = json.loads(data)
        except ValueError as exc:
            raise ProjectImportError(f"payload is not valid JSON: {exc}") from exc

    if not isinstance(data, Mapping):
        raise ProjectImportError("payload must be a JSON object")

    if not data.get("version"):
        raise ProjectImportError("payload has no version tag")

    return data


def _is_number(value: Any) -> bool:
    """Return True for finite, non-boolean numbers."""

    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


def _optional_number(value: Any, label: str) -> Optional[float]:
    """Return ``value`` if it is a number, ``None`` if absent."""

    if value is None:
        return None
    if not _is_number(value):
        raise ProjectImportError(f"{label} must be a number")
    return value


def _parse_rounding(value: Any) -> RoundingMode:
    """Return a valid rounding mode or reject the import."""

    rounding = normalise_rounding(value)
    if rounding == ROUNDING_NONE and value not in (None, ROUNDING_NONE):
        raise ProjectImportError("businessModel.rounding must be \"none\" or a positive whole number")
    return rounding


def _require_mapping(value: Any, label: str) -> Mapping[str, Any]:
    """Return ``value`` if it is a JSON object."""

    if not isinstance(value, Mapping):
        raise ProjectImportError(f"{label} must be an object")
    return value


def _optional_list(section: Mapping[str, Any], key: str) -> list[Any]:
    """Return the list under ``key``, or an empty list if absent."""

    value = section.get(key)
    if value is None:
        return []
    if not isinstance(value, list):
        raise ProjectImportError(f"project.{key} must be a list")
    return value


def _parse_task(entry: Any, index: int) -> Task:
    """Build a task from an imported entry."""

    label = f"project.tasks[{index}]"
    entry = _require_mapping(entry, label)
    days = _optional_number(entry.get("days"), f"{label}.days")
    if days is None:
        raise ProjectImportError(f"{label}.days is required")
    # Cost is re-derived on recompute, never read from the payload.
    return Task(id=str(entry.get("id") or generate_id()), name=str(entry.get("name") or ""), days=days)


def _parse_factor(entry: Any, category: FactorCategory, label: str) -> AllocationFactor:
    """Build a factor from an imported entry."""

    entry = _require_mapping(entry, label)
    allocation = _optional_number(entry.get("allocation"), f"{label}.allocation")
    if allocation is None:
        raise ProjectImportError(f"{label}.allocation is required")
    selected = entry.get("selected")
    return AllocationFactor(
        id=str(entry.get("id") or generate_id()),
        name=str(entry.get("name") or ""),
        allocation=allocation,
        selected=selected if isinstance(selected, bool) else True,
        category=category,
    )


__all__ = [
    "ALLOCATION_TOLERANCE",
    "DEFAULT_MAX_DISCOUNT",
    "DEFAULT_MAX_UPLIFT",
    "EXPORT_VERSION",
    "FACTOR_CATEGORIES",
    "AllocationCheck",
    "AllocationFactor",
    "FactorGroup",
    "PricingEngine",
    "ProjectImportError",
    "RateComparison",
    "Task",
    "format_currency",
    "format_days",
    "generate_id",
]
