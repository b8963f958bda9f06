import pytest

from rate_model import ROUNDING_NONE, RateModel, normalise_rounding, round_up_to_increment


class TestCapacityTotals:
    def test_reference_scenario(self, rate_model):
        assert rate_model.total_hours == 1680
        assert rate_model.total_workdays == 240
        assert rate_model.raw_hourly_rate == pytest.approx(71.43, abs=0.005)
        assert rate_model.raw_day_rate == pytest.approx(500.0)
        assert rate_model.required_hourly_rate == rate_model.raw_hourly_rate
        assert rate_model.required_day_rate == rate_model.raw_day_rate

    @pytest.mark.parametrize(
        "team_members, hours_per_week, working_weeks",
        [(1, 35, 48), (3, 40, 46), (2, 37.5, 44)],
    )
    def test_totals_follow_capacity(self, team_members, hours_per_week, working_weeks):
        model = RateModel(
            salary_budget=90000,
            team_members=team_members,
            hours_per_week=hours_per_week,
            working_weeks=working_weeks,
        )
        assert model.total_hours == team_members * hours_per_week * working_weeks
        assert model.total_workdays == 5 * working_weeks * team_members

    def test_day_rate_is_not_hourly_times_eight(self, rate_model):
        assert rate_model.required_day_rate != pytest.approx(rate_model.required_hourly_rate * 8)

    def test_day_rate_recovers_annual_target(self):
        model = RateModel(salary_budget=123456, growth_budget=7890, working_weeks=45, team_members=2)
        assert model.required_day_rate * model.total_workdays == pytest.approx(123456 + 7890)

    def test_defaults(self):
        model = RateModel()
        assert (model.working_weeks, model.team_members, model.hours_per_week) == (48, 1, 35)
        assert model.rounding == ROUNDING_NONE
        assert model.required_day_rate == 0


class TestUpdate:
    def test_partial_update_keeps_other_fields(self, rate_model):
        rate_model.update(growth_budget=40000)

        assert rate_model.salary_budget == 100000
        assert rate_model.growth_budget == 40000
        assert rate_model.required_day_rate == pytest.approx(140000 / 240)

    def test_none_values_are_ignored(self, rate_model):
        rate_model.update(salary_budget=None, working_weeks=None)
        assert rate_model.salary_budget == 100000
        assert rate_model.working_weeks == 48

    def test_zero_capacity_yields_zero_rates(self, rate_model):
        rate_model.update(working_weeks=0)

        assert rate_model.total_hours == 0
        assert rate_model.total_workdays == 0
        assert rate_model.required_hourly_rate == 0
        assert rate_model.required_day_rate == 0

    def test_zero_hours_only_zeroes_hourly_rate(self, rate_model):
        rate_model.update(hours_per_week=0)

        assert rate_model.required_hourly_rate == 0
        assert rate_model.required_day_rate == pytest.approx(500.0)

    def test_negative_inputs_flow_through(self, rate_model):
        rate_model.update(salary_budget=-20000, growth_budget=0)
        assert rate_model.required_day_rate == pytest.approx(-20000 / 240)


class TestRounding:
    @pytest.mark.parametrize(
        "raw, increment, expected",
        [(500.0, 50, 500), (500.01, 50, 550), (71.43, 5, 75), (71.43, 1, 72), (0, 10, 0)],
    )
    def test_rounds_up_to_increment(self, raw, increment, expected):
        assert round_up_to_increment(raw, increment) == expected

    def test_none_leaves_value_unchanged(self):
        assert round_up_to_increment(71.4285, ROUNDING_NONE) == 71.4285

    @pytest.mark.parametrize("increment", [1, 5, 10, 25, 50, 100])
    def test_idempotent_and_never_below_raw(self, increment):
        for raw in (0.5, 71.428571, 499.99, 500, 1234.5):
            rounded = round_up_to_increment(raw, increment)
            assert rounded >= raw
            assert round_up_to_increment(rounded, increment) == rounded

    def test_set_rounding_rerounds_cached_rates(self, rate_model):
        rate_model.set_rounding(50)

        assert rate_model.required_hourly_rate == 100
        assert rate_model.required_day_rate == 500
        assert rate_model.raw_hourly_rate == pytest.approx(71.43, abs=0.005)

        rate_model.set_rounding(7)
        assert rate_model.required_day_rate == 504

        rate_model.set_rounding("none")
        assert rate_model.required_day_rate == pytest.approx(500.0)

    def test_rounding_survives_update(self, rate_model):
        rate_model.set_rounding(10)
        rate_model.update(growth_budget=21000)
        assert rate_model.required_day_rate == 510

    @pytest.mark.parametrize(
        "mode, expected",
        [
            ("none", "none"),
            (None, "none"),
            (25, 25),
            ("50", 50),
            (50.0, 50),
            (0, "none"),
            (-5, "none"),
            ("abc", "none"),
            (True, "none"),
            (10.5, "none"),
            (float("inf"), "none"),
        ],
    )
    def test_normalise_rounding(self, mode, expected):
        assert normalise_rounding(mode) == expected


class TestUplift:
    def test_apply_uplift(self, rate_model):
        rate_model.apply_uplift(20)
        assert rate_model.uplifted_day_rate == pytest.approx(600.0)

    def test_uplift_uses_rounded_day_rate(self, rate_model):
        rate_model.set_rounding(7)
        rate_model.apply_uplift(10)
        assert rate_model.uplifted_day_rate == pytest.approx(504 * 1.1)

    def test_update_does_not_refresh_uplifted_rate(self, rate_model):
        rate_model.apply_uplift(0)
        rate_model.update(salary_budget=220000)
        assert rate_model.uplifted_day_rate == pytest.approx(500.0)
