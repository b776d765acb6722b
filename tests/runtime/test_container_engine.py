"""Tests for container engine detection."""

from unittest.mock import MagicMock, patch

import pytest

from cumulus.runtime.engine import detect_engine, get_container_client


class TestDetectEngine:
    def test_docker(self):
        client = MagicMock()
        client.version.return_value = {
            "Version": "24.0.7",
            "Components": [{"Name": "Engine", "Version": "24.0.7"}],
        }
        assert detect_engine(client) == "docker"

    def test_podman_component(self):
        client = MagicMock()
        client.version.return_value = {
            "Version": "4.9.0",
            "Components": [{"Name": "Podman Engine", "Version": "4.9.0"}],
        }
        assert detect_engine(client) == "podman"

    def test_podman_platform(self):
        client = MagicMock()
        client.version.return_value = {"Platform": {"Name": "linux/amd64/podman"}}
        assert detect_engine(client) == "podman"

    def test_version_failure_defaults_to_docker(self):
        client = MagicMock()
        client.version.side_effect = Exception("boom")
        assert detect_engine(client) == "docker"


class TestGetContainerClient:
    def test_explicit_docker(self):
        client = MagicMock()
        client.version.return_value = {"Version": "24.0.7"}
        with patch("docker.from_env", return_value=client):
            result = get_container_client("docker")

        assert result is client
        client.ping.assert_called_once()

    def test_docker_host_env(self, monkeypatch):
        monkeypatch.delenv("CONTAINER_HOST", raising=False)
        monkeypatch.setenv("DOCKER_HOST", "tcp://build:2375")
        client = MagicMock()
        client.version.return_value = {}
        with patch("docker.DockerClient", return_value=client) as client_cls:
            get_container_client()

        client_cls.assert_called_once_with(base_url="tcp://build:2375")

    def test_podman_socket_missing(self):
        with patch("cumulus.runtime.engine._podman_socket", return_value=None):
            with pytest.raises(ConnectionError, match="No container engine found"):
                get_container_client("podman")

    def test_fallback_to_podman(self, monkeypatch):
        monkeypatch.delenv("CONTAINER_HOST", raising=False)
        monkeypatch.delenv("DOCKER_HOST", raising=False)
        podman = MagicMock()
        podman.version.return_value = {"Components": [{"Name": "Podman Engine"}]}
        with (
            patch("docker.from_env", side_effect=Exception("no docker")),
            patch("docker.DockerClient", return_value=podman),
            patch(
                "cumulus.runtime.engine._podman_socket",
                return_value="unix:///run/podman/podman.sock",
            ),
        ):
            client = get_container_client()

        assert client is podman

    def test_ping_failure(self):
        client = MagicMock()
        client.ping.side_effect = Exception("refused")
        with patch("docker.from_env", return_value=client):
            with pytest.raises(ConnectionError, match="Failed to connect"):
                get_container_client("docker")

    def test_logs_detected_engine(self, caplog):
        client = MagicMock()
        client.version.return_value = {"Platform": {"Name": "linux/amd64/podman"}}
        with patch("docker.from_env", return_value=client):
            with caplog.at_level("INFO", logger="cumulus.runtime.engine"):
                assert get_container_client("docker") is client

        assert "Connected to podman (Docker daemon)" in caplog.text
