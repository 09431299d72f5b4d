from dataclasses import replace

import pytest

from visitor_stats.config import Settings
from visitor_stats.storage import Database


@pytest.fixture
def settings(tmp_path):
    return replace(
        Settings.from_env(),
        app_base_path="",
        database_url=f"sqlite:///{tmp_path / 'visitor.db'}",
        fail_open_on_error=True,
    )


@pytest.fixture
def database(settings):
    db = Database(settings.database_url)
    db.init_schema()
    yield db
    db.close()
