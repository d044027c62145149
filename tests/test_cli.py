"""Tests for blobdrive CLI helpers."""
import argparse
import asyncio
import logging
import os
from unittest.mock import AsyncMock, MagicMock

import pytest

from blobdrive.cli import (
    CLIError,
    _collect_items,
    _load_env_file,
    _parse_size,
    _run_get,
    _setup_logging,
    run_cli,
)
from blobdrive.services.metadata_store import MetadataStore


@pytest.fixture(autouse=True)
def restore_logging(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("LOG_LEVEL", raising=False)
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    logging.disable(logging.NOTSET)
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.mark.parametrize("text, expected", [
    ("1234", 1234),
    ("3MB", 3 * 1024 * 1024),
    ("1.5 kb", 1536),
    ("2GB", 2 * 1024 ** 3),
    ("10B", 10),
])
def test_parse_size(text, expected):
    assert _parse_size(text) == expected


@pytest.mark.parametrize("text", ["", "lots", "0", "-5MB"])
def test_parse_size_rejects(text):
    with pytest.raises(argparse.ArgumentTypeError):
        _parse_size(text)


def test_load_env_file(tmp_path, monkeypatch):
    env_path = tmp_path / ".env"
    env_path.write_text(
        "\n".join(
            [
                "# endpoints",
                "BLOBDRIVE_RELAY_URL=http://localhost:3312",
                "BLOBDRIVE_PUBLISHER_URL='http://127.0.0.1:9932'",
                "export BLOBDRIVE_STORE_PATH=C:/blobdrive/files.json",
            ]
        ),
        encoding="utf-8",
    )

    monkeypatch.delenv("BLOBDRIVE_RELAY_URL", raising=False)
    monkeypatch.delenv("BLOBDRIVE_PUBLISHER_URL", raising=False)
    monkeypatch.delenv("BLOBDRIVE_STORE_PATH", raising=False)

    _load_env_file(env_path)

    assert os.environ["BLOBDRIVE_RELAY_URL"] == "http://localhost:3312"
    assert os.environ["BLOBDRIVE_PUBLISHER_URL"] == "http://127.0.0.1:9932"
    assert os.environ["BLOBDRIVE_STORE_PATH"] == "C:/blobdrive/files.json"


def test_load_env_file_keeps_existing(tmp_path, monkeypatch):
    env_path = tmp_path / ".env"
    env_path.write_text("BLOBDRIVE_EPOCHS=5\n", encoding="utf-8")
    monkeypatch.setenv("BLOBDRIVE_EPOCHS", "2")

    _load_env_file(env_path)

    assert os.environ["BLOBDRIVE_EPOCHS"] == "2"


def test_load_env_file_missing(tmp_path):
    with pytest.raises(CLIError, match="not found"):
        _load_env_file(tmp_path / "nope.env")


def test_collect_items(tmp_path):
    (tmp_path / "a.png").write_bytes(b"png")
    items = _collect_items([tmp_path / "a.png"])
    assert [(i.name, i.content_type) for i in items] == [("a.png", "image/png")]

    with pytest.raises(CLIError, match="does not exist"):
        _collect_items([tmp_path / "missing.png"])
    with pytest.raises(CLIError, match="not a file"):
        _collect_items([tmp_path])


def test_setup_logging_defaults_to_silent():
    mode = _setup_logging(debug=False, silent=False, log_level=None)
    assert mode == "silent"
    assert logging.getLogger().isEnabledFor(logging.ERROR) is False


def test_setup_logging_debug_mode():
    mode = _setup_logging(debug=True, silent=False, log_level=None)
    assert mode == "DEBUG"
    assert logging.getLogger().isEnabledFor(logging.DEBUG) is True
    assert logging.getLogger("httpx").level == logging.WARNING


def test_setup_logging_from_env(monkeypatch):
    monkeypatch.setenv("LOG_LEVEL", "warning")
    assert _setup_logging(debug=False, silent=False, log_level=None) == "WARNING"


def test_list_on_empty_store(tmp_path, capsys):
    store_path = tmp_path / "files.json"

    assert run_cli(["--store", str(store_path), "--silent", "list"]) == 0
    assert "Active: no files" in capsys.readouterr().out


def test_lifecycle_commands(tmp_path, capsys, make_record):
    store_path = tmp_path / "files.json"
    asyncio.run(MetadataStore(store_path).put(make_record("f1", content_id="mock-blob-1-abcdefghi")))

    assert run_cli(["--store", str(store_path), "--silent", "star", "f1"]) == 0
    assert "f1 starred" in capsys.readouterr().out
    assert run_cli(["--store", str(store_path), "--silent", "trash", "f1"]) == 0
    assert asyncio.run(MetadataStore(store_path).get("f1")).trashed is True
    assert run_cli(["--store", str(store_path), "--silent", "restore", "f1"]) == 0
    assert run_cli(["--store", str(store_path), "--silent", "delete", "f1"]) == 0
    assert "0 file(s) remaining" in capsys.readouterr().out
    assert asyncio.run(MetadataStore(store_path).list_all()) == []


def test_unknown_record_id_fails(tmp_path, capsys):
    store_path = tmp_path / "files.json"

    assert run_cli(["--store", str(store_path), "--silent", "star", "ghost"]) == 1
    assert "no file with id ghost" in capsys.readouterr().err


def test_invalid_configuration(tmp_path, monkeypatch, capsys):
    monkeypatch.setenv("BLOBDRIVE_TIMEOUT", "soon")

    assert run_cli(["--store", str(tmp_path / "files.json"), "--silent", "list"]) == 1
    assert "invalid configuration" in capsys.readouterr().err


def test_no_command_prints_help(capsys):
    assert run_cli(["--silent"]) == 0
    assert "usage" in capsys.readouterr().out.lower()


def test_get_unknown_record_fails(tmp_path, capsys):
    store_path = tmp_path / "files.json"

    assert run_cli(["--store", str(store_path), "--silent", "get", "ghost"]) == 1
    assert "no file with id ghost" in capsys.readouterr().err


def test_get_never_stored_remotely_fails(tmp_path, capsys, make_record):
    store_path = tmp_path / "files.json"
    asyncio.run(MetadataStore(store_path).put(make_record("f1", content_id="mock-blob-1-abcdefghi")))

    assert run_cli(["--store", str(store_path), "--silent", "get", "f1"]) == 1
    assert "could not fetch f1.png" in capsys.readouterr().err
    assert not (tmp_path / "f1.png").exists()


def test_get_writes_fetched_bytes(tmp_path, capsys, make_record):
    drive = MagicMock()
    drive.load = AsyncMock(return_value=[])
    drive.fetch = AsyncMock(return_value=(make_record("f1"), b"\x89PNG...."))

    assert asyncio.run(_run_get(drive, argparse.Namespace(id="f1", output=None))) == 0
    assert (tmp_path / "f1.png").read_bytes() == b"\x89PNG...."

    target = tmp_path / "out" / "copy.png"
    target.parent.mkdir()
    assert asyncio.run(_run_get(drive, argparse.Namespace(id="f1", output=target))) == 0
    assert target.read_bytes() == b"\x89PNG...."
    assert "f1 -> " in capsys.readouterr().out
