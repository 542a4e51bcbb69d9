from __future__ import annotations

from collections.abc import Callable, Iterator

import pytest
from fastapi.testclient import TestClient

from adstudio.api.main import create_app
from adstudio.config.settings import Settings
from adstudio.studio import Studio
from tests.doubles import FakeSpecificationClient


@pytest.fixture
def fast_settings() -> Settings:
    return Settings(
        spec_mode="template",
        start_delay_max_s=0.0,
        tick_interval_s=0.0,
        export_delay_s=0.0,
    )


@pytest.fixture
def spec_client() -> FakeSpecificationClient:
    return FakeSpecificationClient()


@pytest.fixture
def make_studio(
    fast_settings: Settings, spec_client: FakeSpecificationClient
) -> Callable[..., Studio]:
    def _make(**overrides) -> Studio:
        overrides.setdefault("settings", fast_settings)
        overrides.setdefault("client", spec_client)
        return Studio(**overrides)

    return _make


@pytest.fixture
def client(make_studio: Callable[..., Studio], fast_settings: Settings) -> Iterator[TestClient]:
    app = create_app(studio=make_studio(), settings_override=fast_settings)
    with TestClient(app) as test_client:
        yield test_client
