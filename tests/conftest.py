import pytest

from pricing import PricingEngine
from rate_model import RateModel


@pytest.fixture
def rate_model():
    """Sole trader targeting 100k salary plus 20k growth over 48 weeks of 35 hours."""
    return RateModel(
        salary_budget=100000,
        growth_budget=20000,
        working_weeks=48,
        team_members=1,
        hours_per_week=35,
    )


@pytest.fixture
def engine(rate_model):
    return PricingEngine(rate_model)


@pytest.fixture
def priced_engine(engine):
    """Two ten-day tasks with a full 20% uplift and a 5% discount applied."""
    engine.set_client_name("Harbour Logistics")
    engine.set_preparer_name("Sam Carter")
    engine.add_uplift_factor("Tight deadline", 100)
    engine.add_task("Discovery", 10)
    engine.add_task("Build", 10)
    engine.add_discount_factor("Repeat client", 50)
    return engine


@pytest.fixture
def web_app(monkeypatch):
    import app as app_module

    app_module.app.config.update(TESTING=True)
    monkeypatch.setattr(app_module, "mailer", None)
    return app_module


@pytest.fixture
def client(web_app):
    return web_app.app.test_client()
