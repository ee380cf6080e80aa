"""
Tests for the propertysnap command line interface.
"""

import json
import sys

import pytest

from propertysnap.cli import main
from propertysnap.hashing import hash_bytes

from conftest import make_jpeg


def run_cli(monkeypatch, *args):
    monkeypatch.setattr(sys, "argv", ["propertysnap", *args])
    return main()


class TestHashCommands:
    """hash and integrity commands."""

    def test_hash(self, monkeypatch, capsys, photo_file, jpeg_bytes):
        assert run_cli(monkeypatch, "hash", str(photo_file)) == 0
        assert capsys.readouterr().out.strip() == hash_bytes(jpeg_bytes)

    def test_hash_missing_file(self, monkeypatch, capsys, tmp_path):
        assert run_cli(monkeypatch, "hash", str(tmp_path / "missing.jpg")) == 1
        assert "could not read" in capsys.readouterr().err

    def test_integrity_json(self, monkeypatch, capsys, photo_file, jpeg_bytes):
        code = run_cli(monkeypatch, "integrity", str(photo_file), hash_bytes(jpeg_bytes), "--json")

        result = json.loads(capsys.readouterr().out)
        assert code == 0
        assert result["valid"] is True
        assert result["message"] == "Photo integrity verified"

    def test_integrity_mismatch(self, monkeypatch, capsys, photo_file):
        assert run_cli(monkeypatch, "integrity", str(photo_file), "0" * 64) == 1
        assert "may have been modified" in capsys.readouterr().out


class TestTimestampCommand:
    """timestamp command reads EXIF with Pillow."""

    def test_embedded_datetime(self, monkeypatch, capsys, tmp_path):
        path = tmp_path / "exif.jpg"
        path.write_bytes(make_jpeg(exif_datetime="2024:12:26 14:30:45"))

        assert run_cli(monkeypatch, "timestamp", str(path), "--json") == 0

        data = json.loads(capsys.readouterr().out)
        assert data["source"] == "embedded-exif"
        assert data["captureInstant"] == "2024-12-26T14:30:45.000Z"

    def test_no_exif(self, monkeypatch, capsys, photo_file):
        assert run_cli(monkeypatch, "timestamp", str(photo_file)) == 0
        assert "original timestamp unavailable" in capsys.readouterr().out


class TestDistanceCommand:
    """distance command."""

    def test_near(self, monkeypatch, capsys):
        code = run_cli(monkeypatch, "distance", "-33.8572", "151.2153", "-33.8568", "151.2153", "--json")

        data = json.loads(capsys.readouterr().out)
        assert code == 0
        assert data == {
            "distance": "44m",
            "distanceMeters": 44,
            "near": True,
            "message": "Photo taken 44m from property",
        }

    def test_far(self, monkeypatch, capsys):
        code = run_cli(monkeypatch, "distance", "-33.8688", "151.2093", "-37.8136", "144.9631")

        out = capsys.readouterr().out
        assert code == 1
        assert "km" in out
        assert "Warning" in out


class TestPresignCommand:
    """presign command reads credentials from the environment."""

    def test_presign(self, monkeypatch, capsys):
        monkeypatch.setenv("R2_ACCOUNT_ID", "A")
        monkeypatch.setenv("R2_ACCESS_KEY_ID", "K")
        monkeypatch.setenv("R2_SECRET_ACCESS_KEY", "S")
        monkeypatch.setenv("R2_BUCKET_NAME", "B")

        assert run_cli(monkeypatch, "presign", "photos/x.jpg", "--ttl", "60") == 0

        url = capsys.readouterr().out.strip()
        assert url.startswith("https://A.r2.cloudflarestorage.com/B/photos/x.jpg?")
        assert "X-Amz-Expires=60" in url

    def test_presign_unconfigured(self, monkeypatch, capsys):
        monkeypatch.delenv("R2_ACCOUNT_ID", raising=False)
        monkeypatch.delenv("R2_ACCESS_KEY_ID", raising=False)
        monkeypatch.delenv("R2_SECRET_ACCESS_KEY", raising=False)

        assert run_cli(monkeypatch, "presign", "photos/x.jpg") == 1
        assert "R2 credentials not configured" in capsys.readouterr().err


def test_no_command_prints_help(monkeypatch, capsys):
    assert run_cli(monkeypatch) == 0
    assert "usage" in capsys.readouterr().out.lower()


@pytest.mark.parametrize("command", ["hash", "integrity", "timestamp", "distance", "upload", "presign", "config"])
def test_subcommands_have_help(monkeypatch, capsys, command):
    with pytest.raises(SystemExit) as exc_info:
        run_cli(monkeypatch, command, "--help")

    assert exc_info.value.code == 0
