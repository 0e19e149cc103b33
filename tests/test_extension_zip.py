import io
import zipfile
from pathlib import Path
from unittest.mock import patch

import pytest
import requests

from extension_zip import build_zip, ensure_extension_files
from fake_github import FakeResponse


class PngResponse(FakeResponse):
    def __init__(self, status_code=200):
        super().__init__(status_code)
        self.content = b"\x89PNG"


@pytest.fixture
def ext_cfg(cfg):
    src = Path(cfg["extension"]["source_dir"])
    src.mkdir(parents=True)
    (src / "manifest.json").write_text('{"name": "relay"}')
    (src / "popup.js").write_text("console.log('hi')")
    (src / "browser-extension-styles.css").write_text("body {}")
    return cfg["extension"]


def test_assembles_extension_dir(ext_cfg):
    with patch("extension_zip.requests.get", return_value=PngResponse()) as get:
        ext_dir = ensure_extension_files(ext_cfg)

    assert (ext_dir / "manifest.json").read_text() == '{"name": "relay"}'
    assert (ext_dir / "styles.css").read_text() == "body {}"
    assert (ext_dir / "images" / "icon48.png").read_bytes() == b"\x89PNG"
    assert get.call_count == 3


def test_existing_dir_is_reused(ext_cfg):
    Path(ext_cfg["dir"]).mkdir()
    with patch("extension_zip.requests.get") as get:
        ensure_extension_files(ext_cfg)
    get.assert_not_called()


def test_failed_icon_download_cleans_up(ext_cfg):
    with patch("extension_zip.requests.get", return_value=PngResponse(404)):
        with pytest.raises(RuntimeError):
            ensure_extension_files(ext_cfg)
    assert not Path(ext_cfg["dir"]).exists()


def test_zip_contents(tmp_path):
    (tmp_path / "images").mkdir()
    (tmp_path / "manifest.json").write_text("{}")
    (tmp_path / "images" / "icon16.png").write_bytes(b"png")

    with zipfile.ZipFile(io.BytesIO(build_zip(tmp_path))) as zf:
        assert sorted(zf.namelist()) == ["images/icon16.png", "manifest.json"]
        assert zf.read("images/icon16.png") == b"png"


def test_download_route(http, ext_cfg):
    with patch("extension_zip.requests.get", return_value=PngResponse()):
        r = http.get("/extension/download")

    assert r.status_code == 200
    assert r.headers["content-type"] == "application/zip"
    assert "chatgpt-github-integration.zip" in r.headers["content-disposition"]
    with zipfile.ZipFile(io.BytesIO(r.content)) as zf:
        assert "manifest.json" in zf.namelist()


def test_download_route_failure(http, ext_cfg):
    with patch("extension_zip.requests.get", side_effect=requests.ConnectionError("offline")):
        r = http.get("/extension/download")
    assert r.status_code == 500
