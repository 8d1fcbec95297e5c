"""Tests for the service container application."""

import socket

import pytest
from fastapi.testclient import TestClient

from web_service import app


@pytest.fixture
def client(monkeypatch):
    monkeypatch.setenv("SERVICE_NAME", "test-service")
    monkeypatch.delenv("IMAGE_TAG", raising=False)
    with TestClient(app) as client:
        yield client


class TestWebService:

    def test_root_reports_service(self, client):
        """Root endpoint answers the load balancer health check."""
        response = client.get("/")

        assert response.status_code == 200
        assert response.json() == {
            "service": "test-service",
            "host": socket.gethostname(),
            "version": "latest",
        }

    def test_root_reports_image_tag(self, client, monkeypatch):
        monkeypatch.setenv("IMAGE_TAG", "abc1234")

        assert client.get("/").json()["version"] == "abc1234"

    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "ok"}
