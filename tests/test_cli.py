"""Command line entry points."""

from __future__ import annotations

import yaml
from click.testing import CliRunner

from seashell import snapshot as codec
from seashell.cli import main
from seashell.config import RPC_RETRIES_ENV, RPC_TIMEOUT_ENV
from seashell.digest import compute_accounts_digest
from seashell.snapshot import Snapshot
from seashell.types import Account, encode_address


def _addr(b: int) -> bytes:
    return bytes([b]) * 32


def _seed(root) -> dict[bytes, Account]:
    accounts = {
        _addr(1): Account(address=_addr(1), lamports=5_000_000, data=b"\x01\x02"),
        _addr(2): Account(address=_addr(2), lamports=1_000_000, executable=True),
    }
    codec.save(Snapshot(name="seeded", accounts=accounts), root / "scenarios" / "seeded.json.gz")
    return accounts


def test_show_prints_yaml(tmp_path) -> None:
    _seed(tmp_path)
    result = CliRunner().invoke(main, ["show", "seeded", "--root", str(tmp_path)])
    assert result.exit_code == 0, result.output
    doc = yaml.safe_load(result.stdout)
    assert doc["name"] == "seeded"
    assert [a["address"] for a in doc["accounts"]] == [encode_address(_addr(1)), encode_address(_addr(2))]
    assert doc["accounts"][0]["data_len"] == 2


def test_digest_matches_library(tmp_path) -> None:
    accounts = _seed(tmp_path)
    result = CliRunner().invoke(main, ["digest", "seeded", "--root", str(tmp_path)])
    assert result.exit_code == 0, result.output
    assert result.stdout.strip() == compute_accounts_digest(accounts)


def test_corrupt_scenario_exits_nonzero(tmp_path) -> None:
    path = tmp_path / "scenarios" / "broken.json.gz"
    path.parent.mkdir()
    path.write_bytes(b"nope")
    result = CliRunner().invoke(main, ["digest", "broken", "--root", str(tmp_path)])
    assert result.exit_code == 1


def test_fetch_requires_endpoint(tmp_path) -> None:
    result = CliRunner().invoke(main, ["fetch", "x", encode_address(_addr(1)), "--root", str(tmp_path)])
    assert result.exit_code == 1
    assert not (tmp_path / "scenarios").exists()


def test_fetch_unreachable_endpoint_exits_nonzero(tmp_path, monkeypatch) -> None:
    monkeypatch.setenv(RPC_RETRIES_ENV, "0")
    result = CliRunner().invoke(
        main,
        ["fetch", "x", encode_address(_addr(1)), "--root", str(tmp_path), "--endpoint", "http://127.0.0.1:9"],
    )
    assert result.exit_code == 1
    assert not (tmp_path / "scenarios" / "x.json.gz").exists()


def test_fetch_rejects_bad_address(tmp_path) -> None:
    result = CliRunner().invoke(
        main, ["fetch", "x", "not-base58-0OIl", "--root", str(tmp_path), "--endpoint", "http://127.0.0.1:9"]
    )
    assert result.exit_code == 1


def test_fetch_bad_timeout_setting_exits_nonzero(tmp_path, monkeypatch) -> None:
    monkeypatch.setenv(RPC_TIMEOUT_ENV, "thirty")
    result = CliRunner().invoke(
        main,
        ["fetch", "x", encode_address(_addr(1)), "--root", str(tmp_path), "--endpoint", "http://127.0.0.1:9"],
    )
    assert result.exit_code == 1
    assert not isinstance(result.exception, ValueError)
