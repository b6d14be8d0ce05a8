"""
Tests for the bbr command-line tool.
"""

import json
import os
import sqlite3
import tempfile
from typing import Optional

from typer.testing import CliRunner

from bbr.bag import BagStorage, IOFlag
from bbr.checkpoint import ensure_keypair
from bbr.config import Settings
from bbr.tests.conftest import imu_topic, msg
from cli.main import app

runner = CliRunner()
QUIET = {"BBR_LOG_LEVEL": "CRITICAL"}


def _record_bag(uri: str, settings: Optional[Settings] = None) -> None:
    with BagStorage(settings=settings or Settings()) as storage:
        storage.open(uri, IOFlag.READ_WRITE)
        storage.create_topic(imu_topic("/imu"))
        for i in range(3):
            storage.write(msg("/imu", i, bytes([i])))


def test_verify_valid_bag():
    with tempfile.TemporaryDirectory() as tmpdir:
        uri = os.path.join(tmpdir, "bag")
        _record_bag(uri)

        result = runner.invoke(app, ["verify", uri, "--json"], env=QUIET)

        assert result.exit_code == 0, result.output
        out = json.loads(result.stdout)
        assert out["valid"] is True
        assert out["anchored"] is True
        assert out["topics"][0]["message_count"] == 3


def test_verify_tampered_bag():
    with tempfile.TemporaryDirectory() as tmpdir:
        uri = os.path.join(tmpdir, "bag")
        _record_bag(uri)
        with sqlite3.connect(os.path.join(uri, "bag.db3")) as conn:
            conn.execute("DELETE FROM messages WHERE id = 3")

        result = runner.invoke(app, ["verify", uri], env=QUIET)

        assert result.exit_code == 1
        assert "TAMPERED" in result.stdout


def test_verify_missing_bag():
    with tempfile.TemporaryDirectory() as tmpdir:
        result = runner.invoke(app, ["verify", os.path.join(tmpdir, "nope"), "--json"], env=QUIET)
        assert result.exit_code == 2


def test_bag_topics_and_info():
    with tempfile.TemporaryDirectory() as tmpdir:
        uri = os.path.join(tmpdir, "bag")
        _record_bag(uri)

        topics = runner.invoke(app, ["bag", "topics", uri, "--json"], env=QUIET)
        assert topics.exit_code == 0, topics.output
        [topic] = json.loads(topics.stdout)["topics"]
        assert topic["name"] == "/imu"
        assert topic["message_count"] == 3

        info = runner.invoke(app, ["bag", "info", uri, "--json"], env=QUIET)
        assert info.exit_code == 0, info.output
        assert json.loads(info.stdout)["message_count"] == 3


def test_keygen():
    with tempfile.TemporaryDirectory() as tmpdir:
        key = os.path.join(tmpdir, "recorder")
        result = runner.invoke(app, ["keygen", "--key", key], env=QUIET)
        assert result.exit_code == 0, result.output
        assert os.path.exists(key)
        assert os.path.exists(key + ".pub")


def test_version():
    result = runner.invoke(app, ["version"], env=QUIET)
    assert result.exit_code == 0, result.output
    assert "sha256" in result.output


def test_invalid_config_exits_with_error():
    result = runner.invoke(app, ["version"], env={"BBR_NONCE_BYTES": "4"})
    assert result.exit_code == 2


def test_corrupt_database_is_an_error_not_tampering():
    with tempfile.TemporaryDirectory() as tmpdir:
        uri = os.path.join(tmpdir, "bag")
        _record_bag(uri)
        with open(os.path.join(uri, "bag.db3"), "wb") as f:
            f.write(b"not a database" * 512)

        result = runner.invoke(app, ["verify", uri, "--json"], env=QUIET)
        assert result.exit_code == 2, result.output
        assert json.loads(result.stdout)["valid"] is False

        for command in ("topics", "info"):
            result = runner.invoke(app, ["bag", command, uri, "--json"], env=QUIET)
            assert result.exit_code == 2, result.output
            assert "error" in json.loads(result.stdout)


def test_verify_signed_bag():
    with tempfile.TemporaryDirectory() as tmpdir:
        private_path, public_path = ensure_keypair(os.path.join(tmpdir, "keys", "recorder"))
        _, other_public = ensure_keypair(os.path.join(tmpdir, "keys", "other"))
        uri = os.path.join(tmpdir, "bag")
        _record_bag(uri, Settings(signing_key_path=private_path))

        result = runner.invoke(app, ["verify", uri, "--pubkey", public_path, "--json"], env=QUIET)
        assert result.exit_code == 0, result.output
        assert json.loads(result.stdout)["valid"] is True

        result = runner.invoke(app, ["verify", uri, "--pubkey", other_public, "--json"], env=QUIET)
        assert result.exit_code == 1
        assert "public key ID mismatch" in json.loads(result.stdout)["error"]
