"""Tests for KeyStore."""
import re

import pytest
from fastapi.testclient import TestClient

from preset_gateway.config import GatewayConfig
from preset_gateway.errors import NotFoundError
from preset_gateway.keys import KeyStore, generate_secret, mask_secret
from preset_gateway.persistence import MemoryStore
from preset_gateway.server import create_app


def make_store(data=None):
    keys = KeyStore(MemoryStore(data))
    keys.load(seed_secrets=["sk-seed-a", "sk-seed-b"])
    return keys


def test_first_run_seeds_configured_keys():
    keys = make_store()
    assert [k.name for k in keys.list()] == ["seed-1", "seed-2"]
    assert keys.store.load()[0]["secret"] == "sk-seed-a"


def test_existing_file_is_not_reseeded():
    data = [{"id": "k1", "name": "mine", "secret": "sk-x", "enabled": True, "createdAt": "2026-01-01"}]
    keys = make_store(data)
    assert len(keys) == 1
    assert keys.get("k1").name == "mine"


def test_validate_enabled_key():
    keys = make_store()
    record = keys.validate("sk-seed-a")
    assert record is not None
    assert record.name == "seed-1"


def test_validate_unknown_and_partial():
    keys = make_store()
    assert keys.validate("sk-seed") is None
    assert keys.validate("sk-seed-a ") is None
    assert keys.validate("SK-SEED-A") is None
    assert keys.validate("") is None
    assert keys.validate(None) is None


def test_validate_disabled_key():
    keys = make_store()
    record = keys.validate("sk-seed-b")
    keys.set_enabled(record.id, False)
    assert keys.validate("sk-seed-b") is None
    keys.set_enabled(record.id, True)
    assert keys.validate("sk-seed-b") is not None


def test_create_key_format_and_persistence():
    keys = make_store()
    record = keys.create("laptop")
    assert re.fullmatch(r"sk-gw-[A-Za-z0-9]{12}-[A-Za-z0-9]{32}", record.secret)
    assert record.enabled
    assert keys.validate(record.secret) == record
    saved = keys.store.load()
    assert saved[-1]["id"] == record.id
    assert saved[-1]["createdAt"] == record.created_at


def test_created_ids_and_secrets_are_unique():
    keys = make_store()
    created = [keys.create("same name") for _ in range(20)]
    assert len({r.id for r in created}) == 20
    assert len({r.secret for r in created}) == 20


def test_rename_and_delete():
    keys = make_store()
    record = keys.create("old")
    keys.rename(record.id, "new")
    assert keys.get(record.id).name == "new"
    keys.delete(record.id)
    assert record.id not in [k.id for k in keys.list()]
    assert keys.validate(record.secret) is None


def test_unknown_id_raises_not_found():
    keys = make_store()
    with pytest.raises(NotFoundError):
        keys.set_enabled("missing", False)
    with pytest.raises(NotFoundError):
        keys.rename("missing", "x")
    with pytest.raises(NotFoundError):
        keys.delete("missing")


def test_every_mutation_is_saved():
    keys = make_store()
    before = keys.store.saves
    record = keys.create("a")
    keys.rename(record.id, "b")
    keys.set_enabled(record.id, False)
    keys.delete(record.id)
    assert keys.store.saves == before + 4


def test_mask_secret_hides_middle():
    secret = generate_secret()
    masked = mask_secret(secret)
    assert masked.startswith("sk-gw-")
    assert masked.endswith(secret[-4:])
    assert secret[10:30] not in masked


def test_key_record_without_secret_loads_empty(caplog):
    store = MemoryStore([{"id": "k1", "name": "x"}])
    keys = KeyStore(store)
    keys.load(seed_secrets=["sk-seed-a"])
    assert len(keys) == 0
    # Damaged data is neither reseeded nor overwritten
    assert store.saves == 0
    assert store.load() == [{"id": "k1", "name": "x"}]
    assert "Failed to load keys" in caplog.text


def test_corrupt_keys_file_does_not_break_app(tmp_path):
    (tmp_path / "keys.json").write_text("[{oops")
    (tmp_path / "presets.json").write_text("{not json")
    config = GatewayConfig(data_dir=tmp_path, admin_password="pw")
    with TestClient(create_app(config)) as client:
        assert client.get("/health").json()["keys"] == {"total": 0, "enabled": 0}
        assert client.post("/v1/messages", json={}, headers={"x-api-key": "sk-any"}).status_code == 403
