"""Tests for the scrape HTTP API."""

import asyncio
import time

from fastapi.testclient import TestClient

from banner_scraper.api.app import create_app
from banner_scraper.containers import AppContainer
from tests.conftest import scripted


def _poll(client: TestClient, session_id: str, timeout: float = 5.0) -> dict:
    deadline = time.monotonic() + timeout
    while True:
        data = client.get(f"/api/scrape/{session_id}").json()
        if data["status"] != "running" or time.monotonic() > deadline:
            return data
        time.sleep(0.01)


def test_locations_endpoint(container: AppContainer) -> None:
    client = TestClient(create_app(container))

    response = client.get("/api/locations")

    assert response.status_code == 200
    data = response.json()
    assert len(data) == 10
    assert data[0] == {"id": 1, "code": "US", "name": "United States"}
    assert data[9] == {"id": 10, "code": "SG", "name": "Singapore"}


def test_health_reports_session_count(container: AppContainer) -> None:
    with TestClient(create_app(container)) as client:
        client.post("/api/scrape", json={"url": "https://shop.example.com"})
        response = client.get("/api/health")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ok"
    assert data["activeSessions"] == 1
    assert "timestamp" in data


def test_scrape_completes_and_reports_results(container: AppContainer) -> None:
    with TestClient(create_app(container)) as client:
        response = client.post(
            "/api/scrape",
            json={"url": "https://shop.example.com", "location": 7, "headless": False},
        )
        assert response.status_code == 200
        accepted = response.json()
        assert accepted["success"] is True
        assert accepted["message"] == "Scraping started"

        data = _poll(client, accepted["sessionId"])

    assert data["id"] == accepted["sessionId"]
    assert data["url"] == "https://shop.example.com"
    assert data["locationRegion"] == "JP"
    assert data["status"] == "completed"
    assert [item["message"] for item in data["progress"]] == [
        "[*] Launching browser",
        "[+] Found 2 homepage banners",
    ]
    assert data["result"]["promotions"] == []
    assert data["error"] is None
    assert isinstance(data["durationMs"], int)


def test_scrape_rejects_invalid_input(container: AppContainer) -> None:
    client = TestClient(create_app(container))

    bad_url = client.post("/api/scrape", json={"url": "not a url"})
    bad_location = client.post(
        "/api/scrape", json={"url": "https://shop.example.com", "location": 11}
    )
    missing_url = client.post("/api/scrape", json={"location": 2})

    assert bad_url.status_code == 400
    assert bad_url.json() == {"error": "invalid URL"}
    assert bad_location.status_code == 400
    assert bad_location.json() == {"error": "invalid location"}
    assert missing_url.status_code == 400
    assert missing_url.json() == {"error": "URL is required"}
    assert len(container.session_store) == 0


def test_scrape_reports_wrongly_typed_fields_as_400(
    container: AppContainer,
) -> None:
    client = TestClient(create_app(container))

    cases = [
        ({"url": "https://shop.example.com", "location": None}, "invalid location"),
        ({"url": "https://shop.example.com", "location": 4.5}, "invalid location"),
        ({"url": "https://shop.example.com", "location": [1]}, "invalid location"),
        ({"url": 123}, "invalid URL"),
    ]
    for body, reason in cases:
        response = client.post("/api/scrape", json=body)
        assert response.status_code == 400, body
        assert response.json() == {"error": reason}

    assert len(container.session_store) == 0


def test_unknown_session_returns_404(container: AppContainer) -> None:
    client = TestClient(create_app(container))

    response = client.get("/api/scrape/does-not-exist")

    assert response.status_code == 404
    assert response.json() == {"error": "not found"}


def test_running_session_has_no_result(container: AppContainer) -> None:
    container.job_orchestrator.launcher = scripted(
        stdout=["[*] Launching browser\n"], release=asyncio.Event()
    )

    with TestClient(create_app(container)) as client:
        session_id = client.post(
            "/api/scrape", json={"url": "https://shop.example.com"}
        ).json()["sessionId"]
        response = client.get(f"/api/scrape/{session_id}")
        conflict = client.delete(f"/api/scrape/{session_id}")

    data = response.json()
    assert data["status"] == "running"
    assert data["result"] is None
    assert data["durationMs"] is None
    assert conflict.status_code == 409
    session = container.session_store.get(session_id)
    assert session is not None
    assert session.error == "job cancelled"


def test_failed_session_reports_error(container: AppContainer) -> None:
    container.job_orchestrator.launcher = scripted(
        stderr=["playwright crashed\n"], exit_code=1
    )

    with TestClient(create_app(container)) as client:
        session_id = client.post(
            "/api/scrape", json={"url": "https://shop.example.com", "headless": "0"}
        ).json()["sessionId"]
        data = _poll(client, session_id)

    assert data["status"] == "error"
    assert data["error"] == "playwright crashed"
    assert data["result"] is None
    assert data["durationMs"] is None


def test_delete_finished_session(container: AppContainer) -> None:
    with TestClient(create_app(container)) as client:
        session_id = client.post(
            "/api/scrape", json={"url": "https://shop.example.com"}
        ).json()["sessionId"]
        _poll(client, session_id)

        deleted = client.delete(f"/api/scrape/{session_id}")
        again = client.delete(f"/api/scrape/{session_id}")

    assert deleted.status_code == 200
    assert deleted.json() == {"deleted": True}
    assert again.status_code == 404
