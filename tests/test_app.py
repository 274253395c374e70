import inspect
import json
from typing import Iterator, Optional

import pytest
from fastapi.testclient import TestClient

from app import api
from app.main import create_app
from services.dashboard import DashboardRegistry, build_default_registry
from services.ingestion import IngestionService
from services.state_channel import StateChannel
from storage.local_storage import LocalStorage

SCENARIO = [
    {
        "assetId": 1,
        "name": "A",
        "region": "North",
        "health": "Critical",
        "lastTenVoltageReadings": [{"timestamp": "2024-01-02T00:00:00Z", "voltage": "100"}],
    },
    {
        "assetId": 2,
        "name": "B",
        "region": "South",
        "health": "Good",
        "lastTenVoltgageReadings": [{"timestamp": "2024-01-01T00:00:00Z", "voltage": "200"}],
    },
]


@pytest.fixture
def api_client(tmp_path, monkeypatch) -> Iterator[TestClient]:
    sample = tmp_path / "sampledata.json"
    sample.write_text(json.dumps(SCENARIO))
    registries: dict[str, DashboardRegistry] = {}

    def build_test_registry(state_key: Optional[str] = None) -> DashboardRegistry:
        registry = registries.get("default")
        if registry is None:
            registry = DashboardRegistry(
                storage=LocalStorage(origin="test", root_path=tmp_path / "storage"),
                channel=StateChannel(),
                ingestion=IngestionService(sample_path=sample),
                state_key=state_key or "transformer-app-state",
            )
            registries["default"] = registry
        return registry

    def cache_clear() -> None:
        while registries:
            _, registry = registries.popitem()
            registry.shutdown()

    build_test_registry.cache_clear = cache_clear  # type: ignore[attr-defined]

    monkeypatch.setattr("app.main.build_default_registry", build_test_registry)
    monkeypatch.setattr("app.api.build_default_registry", build_test_registry)
    monkeypatch.setattr("app.web.build_default_registry", build_test_registry)

    app = create_app()
    with TestClient(app) as client:
        yield client

    cache_clear()


def test_lifespan_shuts_down_registry_and_clears_cache(tmp_path, monkeypatch) -> None:
    monkeypatch.setenv("TRANSFORMER_STORAGE_PATH", str(tmp_path / "storage"))
    from settings import get_settings
    from storage.local_storage import build_default_storage

    get_settings.cache_clear()
    build_default_storage.cache_clear()
    build_default_registry.cache_clear()
    try:
        app = create_app()
        with TestClient(app):
            during = build_default_registry()
            during.open_window("tab-1", autoload_sample=False)
            assert list(during.window_ids()) == ["tab-1"]

        assert list(during.window_ids()) == []
        assert build_default_registry() is not during
    finally:
        build_default_registry.cache_clear()
        build_default_storage.cache_clear()
        get_settings.cache_clear()


def test_health(api_client: TestClient) -> None:
    assert api_client.get("/health").json() == {"status": "ok"}


def test_window_state_after_autoload(api_client: TestClient) -> None:
    response = api_client.get("/windows/tab-1/state")

    assert response.status_code == 200
    body = response.json()
    assert body["ready"] is True
    assert body["preferences"] == {
        "selectedTransformers": [1, 2],
        "searchTerm": "",
        "regionFilter": "",
        "healthFilter": "",
        "dataSource": "sample",
    }
    assert body["ingestion"]["status"] == "success"


def test_summary_table_and_chart(api_client: TestClient) -> None:
    summary = api_client.get("/windows/tab-1/summary").json()
    assert summary == {"total": 2, "critical": 1, "regions": 2, "avgVoltage": 150}

    api_client.patch("/windows/tab-1/preferences", json={"regionFilter": "North"})
    table = api_client.get("/windows/tab-1/table").json()
    assert [row["assetId"] for row in table["rows"]] == [1]
    assert table["regions"] == ["North", "South"]
    assert table["healthStatuses"] == ["Critical", "Good"]
    assert (table["shown"], table["total"]) == (1, 2)

    chart = api_client.get("/windows/tab-1/chart").json()
    assert [point["fullTimestamp"] for point in chart["points"]] == [
        "2024-01-01T00:00:00Z",
        "2024-01-02T00:00:00Z",
    ]
    assert chart["points"][0]["A"] is None
    assert chart["points"][0]["B"] == 200
    assert chart["allSelected"] is True
    assert [line["colour"] for line in chart["series"]] == ["#8884d8", "#82ca9d"]


def test_preferences_written_in_one_window_reach_another(api_client: TestClient) -> None:
    api_client.get("/windows/tab-1/state")
    api_client.get("/windows/tab-2/state")

    response = api_client.patch("/windows/tab-1/preferences", json={"searchTerm": "foo"})
    assert response.status_code == 200

    other = api_client.get("/windows/tab-2/state").json()
    assert other["preferences"]["searchTerm"] == "foo"


def test_invalid_preferences_payload_is_rejected(api_client: TestClient) -> None:
    response = api_client.patch("/windows/tab-1/preferences", json={"dataSource": "database"})

    assert response.status_code == 422


def test_null_preference_values_are_rejected(api_client: TestClient) -> None:
    response = api_client.patch("/windows/tab-1/preferences", json={"searchTerm": None})

    assert response.status_code == 422
    state = api_client.get("/windows/tab-1/state").json()
    assert state["preferences"]["searchTerm"] == ""


def test_selection_endpoint(api_client: TestClient) -> None:
    response = api_client.post("/windows/tab-1/selection", json={"assetId": 1, "checked": False})
    assert response.json()["preferences"]["selectedTransformers"] == [2]

    chart = api_client.get("/windows/tab-1/chart").json()
    assert [line["selected"] for line in chart["series"]] == [False, True]
    assert chart["someSelected"] is True

    response = api_client.post("/windows/tab-1/selection", json={"checked": False})
    assert response.json()["preferences"]["selectedTransformers"] == []

    response = api_client.post("/windows/tab-1/selection", json={"assetId": 99})
    assert response.status_code == 400
    assert "99" in response.json()["detail"]


def test_upload_success_and_failure(api_client: TestClient) -> None:
    upload = json.dumps([dict(SCENARIO[0], assetId=5)])
    response = api_client.post(
        "/windows/tab-1/data/upload",
        files={"file": ("fleet.json", upload, "application/json")},
    )
    assert response.status_code == 200
    assert response.json()["status"] == "success"

    state = api_client.get("/windows/tab-1/state").json()
    assert state["preferences"]["selectedTransformers"] == [5]
    assert state["preferences"]["dataSource"] == "uploaded"

    response = api_client.post(
        "/windows/tab-1/data/upload",
        files={"file": ("fleet.json", "not json", "application/json")},
    )
    body = response.json()
    assert body["status"] == "error"
    assert body["message"].startswith("Failed to parse JSON")
    assert body["record_count"] == 1

    response = api_client.post(
        "/windows/tab-1/data/upload",
        files={"file": ("fleet.csv", "a,b", "text/csv")},
    )
    assert response.json()["message"] == "Please select a JSON file"


def test_reload_sample(api_client: TestClient) -> None:
    response = api_client.post("/windows/tab-1/data/sample")

    assert response.status_code == 200
    assert response.json() == {
        "status": "success",
        "message": "Data loaded successfully! Using sample data.",
        "record_count": 2,
    }


def test_close_window(api_client: TestClient) -> None:
    api_client.get("/windows/tab-1/state")

    assert api_client.delete("/windows/tab-1").status_code == 204


def test_ui_page_renders_dashboard(api_client: TestClient) -> None:
    api_client.patch("/windows/tab-1/preferences", json={"healthFilter": "Critical"})

    response = api_client.get("/ui/tab-1")

    assert response.status_code == 200
    assert "Transformer Asset Monitor" in response.text
    assert "Showing 1 of 2 transformers" in response.text
    assert "badge-destructive" in response.text


def test_sample_file_is_served(api_client: TestClient) -> None:
    response = api_client.get("/static/sampledata.json")

    assert response.status_code == 200
    assert isinstance(response.json(), list)


def test_loading_endpoints_run_in_threadpool() -> None:
    assert not inspect.iscoroutinefunction(api.load_sample)
    assert not inspect.iscoroutinefunction(api.upload_data)


def test_ui_forms_change_filters_and_selection(api_client: TestClient) -> None:
    response = api_client.post(
        "/ui/tab-1/filters",
        data={"search": "", "region": "North", "health": "all"},
    )
    assert response.status_code == 200
    assert "Showing 1 of 2 transformers" in response.text

    api_client.post("/ui/tab-1/selection", data={"asset_id": "1", "checked": "false"})
    preferences = api_client.get("/windows/tab-1/state").json()["preferences"]
    assert preferences["regionFilter"] == "North"
    assert preferences["healthFilter"] == ""
    assert preferences["selectedTransformers"] == [2]

    api_client.post("/ui/tab-1/selection", data={"checked": "true"})
    preferences = api_client.get("/windows/tab-1/state").json()["preferences"]
    assert preferences["selectedTransformers"] == [1, 2]

    response = api_client.post("/ui/tab-1/selection", data={"asset_id": "99", "checked": "true"})
    assert response.status_code == 400


def test_ui_forms_load_data(api_client: TestClient) -> None:
    response = api_client.post(
        "/ui/tab-1/data/upload",
        files={"file": ("fleet.json", "not json", "application/json")},
    )
    assert response.status_code == 200
    assert "Failed to parse JSON" in response.text

    response = api_client.post("/ui/tab-1/data/sample")
    assert "Data loaded successfully! Using sample data." in response.text
