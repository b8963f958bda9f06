import json

import pytest

from pricing import EXPORT_VERSION, PricingEngine
from rate_model import RateModel


def _fresh_engine():
    return PricingEngine(RateModel())


def _snapshot(engine):
    """Fields that an export/import cycle must preserve."""
    model = engine.rate_model
    return {
        "model": (
            model.salary_budget,
            model.growth_budget,
            model.working_weeks,
            model.team_members,
            model.hours_per_week,
            model.rounding,
        ),
        "names": (engine.client_name, engine.preparer_name),
        "tasks": [(task.id, task.name, task.days, round(task.cost, 6)) for task in engine.tasks],
        "uplift": (engine.max_uplift, [factor.to_dict() for factor in engine.uplift_factors]),
        "discount": (engine.max_discount, [factor.to_dict() for factor in engine.discount_factors]),
        "currencies": [(currency.code, currency.rate, currency.enabled) for currency in engine.currencies],
        "final": round(engine.final_project_cost, 6),
    }


class TestExport:
    def test_payload_shape(self, priced_engine):
        priced_engine.set_rounding(25)
        payload = json.loads(priced_engine.export_project_data())

        assert payload["version"] == EXPORT_VERSION
        assert set(payload) >= {"version", "businessModel", "project", "currencies"}
        assert payload["businessModel"]["rounding"] == 25
        assert payload["businessModel"]["upliftedDayRate"] == pytest.approx(600.0)
        assert payload["project"]["clientName"] == "Harbour Logistics"
        assert payload["project"]["preparerName"] == "Sam Carter"
        assert [task["days"] for task in payload["project"]["tasks"]] == [10, 10]
        assert payload["project"]["upliftFactors"][0] == {
            "id": priced_engine.uplift_factors[0].id,
            "name": "Tight deadline",
            "allocation": 100,
            "selected": True,
        }
        assert payload["currencies"]["baseCurrency"] == "NZD"
        assert payload["currencies"]["rates"]["USD"] == {"rate": 0.62, "enabled": False}

    def test_export_rederives_costs(self, priced_engine):
        priced_engine.tasks[0].cost = 1.0

        payload = priced_engine.build_export_payload()
        assert payload["project"]["tasks"][0]["cost"] == pytest.approx(6000.0)


class TestRoundTrip:
    def test_export_then_import_reproduces_state(self, priced_engine):
        priced_engine.set_rounding(10)
        priced_engine.add_uplift_factor("Travel", 25, selected=False)
        priced_engine.set_max_discount(15)
        priced_engine.set_currency_rate("GBP", 0.51)
        priced_engine.toggle_currency("GBP", True)

        target = _fresh_engine()
        assert target.import_project_data(priced_engine.export_project_data()) is True

        assert _snapshot(target) == _snapshot(priced_engine)

    def test_zero_maximums_survive(self, priced_engine):
        priced_engine.set_max_uplift(0)
        priced_engine.set_max_discount(0)

        target = _fresh_engine()
        target.import_project_data(priced_engine.export_project_data())
        assert (target.max_uplift, target.max_discount) == (0, 0)


class TestImport:
    def test_missing_version_is_rejected_atomically(self, priced_engine):
        before = _snapshot(priced_engine)
        payload = priced_engine.build_export_payload()
        del payload["version"]
        payload["project"]["tasks"] = []
        payload["businessModel"]["salaryBudget"] = 1

        assert priced_engine.import_project_data(json.dumps(payload)) is False
        assert _snapshot(priced_engine) == before
        assert priced_engine.rate_model.required_day_rate == pytest.approx(500.0)

    @pytest.mark.parametrize("data", ["not json", "[1, 2, 3]", "", b"\xff\xfe"])
    def test_unparseable_payloads_are_rejected(self, priced_engine, data):
        before = _snapshot(priced_engine)
        assert priced_engine.import_project_data(data) is False
        assert _snapshot(priced_engine) == before

    def test_malformed_task_fails_without_partial_apply(self, priced_engine):
        before = _snapshot(priced_engine)
        payload = {
            "version": "1.3",
            "businessModel": {"salaryBudget": 250000},
            "project": {"clientName": "Other", "tasks": [{"name": "Build", "days": "ten"}]},
        }

        assert priced_engine.import_project_data(payload) is False
        assert _snapshot(priced_engine) == before

    def test_task_costs_are_recomputed(self):
        engine = PricingEngine(RateModel(salary_budget=120000))
        payload = {
            "version": "1.1",
            "project": {"tasks": [{"id": "t1", "name": "Build", "days": 4, "cost": 99999}]},
        }

        assert engine.import_project_data(payload) is True
        assert engine.tasks[0].cost == pytest.approx(4 * 500.0)

    def test_project_defaults(self, priced_engine):
        assert priced_engine.import_project_data({"version": "1.0", "project": {}}) is True

        assert priced_engine.client_name == ""
        assert priced_engine.preparer_name == ""
        assert priced_engine.tasks == []
        assert priced_engine.max_uplift == 20
        assert priced_engine.max_discount == 10
        assert priced_engine.uplift_factors == []

    def test_missing_sections_keep_current_state(self, priced_engine):
        before = _snapshot(priced_engine)
        assert priced_engine.import_project_data('{"version": "1.3"}') is True
        assert _snapshot(priced_engine) == before

    def test_partial_business_model(self, priced_engine):
        payload = {"version": "1.3", "businessModel": {"growthBudget": 44000}}

        assert priced_engine.import_project_data(payload) is True
        assert priced_engine.rate_model.salary_budget == 100000
        assert priced_engine.rate_model.required_day_rate == pytest.approx(600.0)
        assert priced_engine.tasks[0].cost == pytest.approx(7200.0)

    def test_missing_ids_and_selection_get_defaults(self, engine):
        payload = {
            "version": "1.3",
            "project": {
                "tasks": [{"name": "Build", "days": 2}],
                "upliftFactors": [{"name": "Risk", "allocation": 100}],
            },
        }

        assert engine.import_project_data(payload) is True
        assert engine.tasks[0].id
        assert engine.uplift_factors[0].id
        assert engine.uplift_factors[0].selected is True
        assert engine.uplift_factors[0].category == "uplift"
        assert engine.applied_uplift_percent == pytest.approx(20.0)

    def test_currency_entries(self, engine):
        payload = {
            "version": "1.3",
            "currencies": {
                "baseCurrency": "USD",
                "rates": {
                    "USD": {"rate": 0.6, "enabled": True},
                    "EUR": {"rate": "0.5", "enabled": "yes"},
                    "GBP": {"rate": -1, "enabled": True},
                    "JPY": {"rate": 90, "enabled": True},
                },
            },
        }

        assert engine.import_project_data(payload) is True
        assert engine.base_currency == "NZD"
        assert engine.currencies.get("USD").rate == 0.6
        assert engine.currencies.get("EUR").rate == 0.56
        assert engine.currencies.get("EUR").enabled is False
        assert engine.currencies.get("GBP").rate == 0.48
        assert engine.currencies.get("GBP").enabled is True
        assert "JPY" not in engine.currencies

    def test_rounding_is_imported(self, engine):
        assert engine.import_project_data({"version": "1.3", "businessModel": {"rounding": 50}}) is True
        assert engine.rate_model.rounding == 50

    @pytest.mark.parametrize(
        "payload",
        [
            '{"version": "1.3", "businessModel": {"rounding": 1e999}}',
            '{"version": "1.3", "businessModel": {"rounding": 10.5}}',
            '{"version": "1.3", "businessModel": {"rounding": "ten"}}',
        ],
    )
    def test_invalid_rounding_rejects_import(self, priced_engine, payload):
        priced_engine.set_rounding(25)
        before = _snapshot(priced_engine)

        assert priced_engine.import_project_data(payload) is False
        assert _snapshot(priced_engine) == before
        assert priced_engine.rate_model.rounding == 25

    def test_infinite_task_days_reject_import(self, priced_engine):
        before = _snapshot(priced_engine)
        payload = '{"version": "1.3", "project": {"tasks": [{"name": "Build", "days": 1e999}]}}'

        assert priced_engine.import_project_data(payload) is False
        assert _snapshot(priced_engine) == before
