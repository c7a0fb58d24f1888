"""Tests for the HTTP surface: info endpoints, static files and the SPA fallback."""

from __future__ import annotations

from dataclasses import replace
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from walkaround_server.api.routes import ServerAPI
from walkaround_server.config.settings import ServerSettings
from walkaround_server.main import create_app


@pytest.fixture
def site(tmp_path: Path) -> Path:
    root = tmp_path / "site"
    (root / "dist" / "assets").mkdir(parents=True)
    (root / "public" / "models").mkdir(parents=True)
    (root / "dist" / "index.html").write_text("<html>app</html>")
    (root / "dist" / "assets" / "main.js").write_text("console.log('hi')")
    (root / "public" / "models" / "character.gltf").write_text("{}")
    (tmp_path / "secret.txt").write_text("nope")
    return root


@pytest.fixture
def settings(tmp_path: Path, site: Path) -> ServerSettings:
    return ServerSettings(
        spawn_config_path=str(tmp_path / "spawn_config.json"),
        static_root=str(site),
    )


class TestInfoEndpoints:
    def test_config(self, settings: ServerSettings) -> None:
        with TestClient(create_app(settings)) as client:
            assert client.get("/api/server/config").json() == {
                "maxPlayers": 20,
                "spawnPolicy": "jitter",
                "defaultSpawnPoint": {"x": 0, "y": 5, "z": 0},
            }

    def test_stats_and_spawn(self, settings: ServerSettings) -> None:
        with TestClient(create_app(settings)) as client:
            assert client.get("/api/server/stats").json() == {
                "connections": 0,
                "players": 0,
                "queued": 0,
            }
            assert client.get("/api/spawn").json() == {"x": 0, "y": 5, "z": 0}

    @pytest.mark.parametrize(
        "content",
        [b'\xff\xfe{"x": 1}', b'{"x": 1' + b"0" * 400 + b', "y": 2, "z": 3}'],
    )
    def test_starts_with_unusable_spawn_file(
        self, settings: ServerSettings, content: bytes
    ) -> None:
        Path(settings.spawn_config_path).write_bytes(content)
        with TestClient(create_app(settings)) as client:
            assert client.get("/api/spawn").json() == {"x": 0, "y": 5, "z": 0}

    def test_cors_allows_any_origin(self, settings: ServerSettings) -> None:
        with TestClient(create_app(settings)) as client:
            response = client.get("/api/spawn", headers={"Origin": "http://localhost:5173"})
            assert response.headers["access-control-allow-origin"] == "*"


class TestStaticFiles:
    def test_build_asset(self, settings: ServerSettings) -> None:
        with TestClient(create_app(settings)) as client:
            response = client.get("/assets/main.js")
            assert response.status_code == 200
            assert response.text == "console.log('hi')"

    def test_public_asset_in_development(self, settings: ServerSettings) -> None:
        with TestClient(create_app(settings)) as client:
            assert client.get("/models/character.gltf").text == "{}"

    def test_production_serves_build_only(self, settings: ServerSettings) -> None:
        production = replace(settings, node_env="production")
        with TestClient(create_app(production)) as client:
            assert client.get("/models/character.gltf").text == "<html>app</html>"

    @pytest.mark.parametrize("path", ["/", "/editor", "/some/client/route"])
    def test_spa_fallback(self, settings: ServerSettings, path: str) -> None:
        with TestClient(create_app(settings)) as client:
            response = client.get(path)
            assert response.status_code == 200
            assert response.text == "<html>app</html>"

    def test_missing_bundle_is_404(self, tmp_path: Path) -> None:
        settings = ServerSettings(
            spawn_config_path=str(tmp_path / "spawn_config.json"),
            static_root=str(tmp_path / "empty"),
        )
        with TestClient(create_app(settings)) as client:
            assert client.get("/anything").status_code == 404

    def test_traversal_is_refused(self, settings: ServerSettings) -> None:
        api = ServerAPI(coordinator=None, settings=settings)
        assert api.find_asset("../../secret.txt") is None
        assert api.find_asset("assets/main.js") is not None
        assert api.find_asset("") is None


class TestSettings:
    def test_rejects_unknown_spawn_policy(self) -> None:
        with pytest.raises(ValueError):
            ServerSettings(spawn_policy="teleport")

    def test_rejects_empty_outbox(self) -> None:
        with pytest.raises(ValueError):
            ServerSettings(outbox_limit=0)

    def test_asset_roots(self, tmp_path: Path) -> None:
        dev = ServerSettings(static_root=str(tmp_path))
        prod = replace(dev, node_env="production")
        assert dev.asset_roots() == [tmp_path / "dist", tmp_path / "public"]
        assert prod.asset_roots() == [tmp_path / "dist"]
