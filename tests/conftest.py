"""
Test configuration: an app over a temporary SQLite file, a controllable clock
and a few seed helpers shared by the service and API tests.
"""

import copy
from datetime import datetime
from zoneinfo import ZoneInfo

import pytest

from kpi_server.factory import create_app

TZ = ZoneInfo("Asia/Kolkata")


class FakeClock:
    """Callable clock whose current time the test can move."""

    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now

    def set(self, year, month, day=15, hour=10):
        self.now = datetime(year, month, day, hour, 0, tzinfo=TZ)


PATWARI_TEMPLATE = {
    "name": "Patwari Monthly Review",
    "description": "Monthly field work of halka patwaris",
    "departmentSlug": "revenue",
    "role": "patwari",
    "frequency": "monthly",
    "template": [
        {
            "name": "Mutations disposed",
            "maxMarks": 10,
            "kpiType": "percentage",
            "scoringRules": [
                {"value": 90, "score": 10},
                {"value": 75, "score": 7},
                {"value": 50, "score": 4},
            ],
        },
        {
            "name": "Field visits",
            "maxMarks": 5,
            "kpiType": "quantitative",
            "scoringRules": [
                {"min": 0, "max": 4, "score": 1},
                {"min": 5, "max": 100, "score": 5},
            ],
        },
        {
            "name": "Register updated",
            "maxMarks": 2,
            "kpiType": "binary",
            "scoringRules": [
                {"value": True, "score": 2},
                {"value": False, "score": 0},
            ],
        },
        {
            "name": "Special drive",
            "maxMarks": 3,
            "kpiType": "score",
            "isDynamic": True,
        },
    ],
}


def full_values(percentage=80, visits=6, register=True):
    """A complete submission for PATWARI_TEMPLATE (dynamic item omitted)."""
    return [
        {"name": "Mutations disposed", "value": percentage},
        {"name": "Field visits", "value": visits},
        {"name": "Register updated", "value": register},
    ]


@pytest.fixture
def clock():
    return FakeClock(datetime(2025, 6, 15, 10, 0, tzinfo=TZ))


@pytest.fixture
def app(tmp_path, clock):
    app = create_app({
        "TESTING": True,
        "SECRET_KEY": "test-secret",
        "DATABASE_URI": f"sqlite:///{tmp_path / 'kpi.db'}",
        "CACHE_TYPE": "NullCache",
        "LOG_DIR": str(tmp_path / "logs"),
        "KPI_CLOCK": clock,
    })
    yield app
    app.db_manager.dispose()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def members(app):
    return app.member_service


@pytest.fixture
def templates(app):
    return app.kpi_template_service


@pytest.fixture
def entries(app):
    return app.kpi_entry_service


@pytest.fixture
def batch(app):
    return app.batch_service


@pytest.fixture
def stats(app):
    return app.statistics_service


@pytest.fixture
def template(templates):
    return templates.create_template(copy.deepcopy(PATWARI_TEMPLATE), actor="admin-1")


@pytest.fixture
def org(members):
    """
    A small district:

    * admin-1   collector-office (admin)
    * nodal-1   nodalOfficer-patwari (supervises patwari)
    * nodal-2   nodalOfficer-ri (supervises ri)
    * pat-1     patwari with two halkas
    * pat-2     patwari without halkas
    """
    return {
        "admin": members.create_member("admin-1", "collector-office", "collector", name="Collector"),
        "nodal": members.create_member("nodal-1", "revenue", "nodalOfficer-patwari", name="Nodal Patwari"),
        "nodal_ri": members.create_member("nodal-2", "revenue", "nodalOfficer-ri", name="Nodal RI"),
        "pat1": members.create_member(
            "pat-1", "revenue", "patwari",
            metadata={"halka": ["H1", "H2"], "tehsil": "T1"},
            name="Asha", email="asha@example.org",
        ),
        "pat2": members.create_member("pat-2", "revenue", "patwari", name="Bhanu"),
    }


def login(client, user_code):
    with client.session_transaction() as sess:
        sess["user_code"] = user_code
