import asyncio
import datetime
import json

import pytest

from storage import JsonFileKeyValueStore


@pytest.mark.asyncio
async def test_put_flushes_json_document(tmp_path):
    path = tmp_path / "nested" / "state.json"
    kv = JsonFileKeyValueStore(str(path))

    await kv.put("supabase-config", {"endpoint": "https://x.supabase.co", "credentialKey": "k"})

    assert kv.save_count == 1
    assert json.loads(path.read_text(encoding="utf-8")) == {
        "supabase-config": {"endpoint": "https://x.supabase.co", "credentialKey": "k"}
    }
    assert not (tmp_path / "nested" / "state.json.tmp").exists()


@pytest.mark.asyncio
async def test_put_none_removes_key(tmp_path):
    path = tmp_path / "state.json"
    kv = JsonFileKeyValueStore(str(path))
    await kv.put("user-session", {"access_token": "a"})
    await kv.put("user-session", None)

    assert kv.get("user-session") is None
    assert "user-session" not in kv.keys()
    assert json.loads(path.read_text(encoding="utf-8")) == {}


@pytest.mark.asyncio
async def test_values_are_stored_in_json_form(tmp_path):
    kv = JsonFileKeyValueStore(str(tmp_path / "state.json"))
    expires = datetime.datetime(2026, 1, 2, 3, 4, 5)
    await kv.put("user-session", {"expires_at": expires, "scopes": ("read", "write")})

    assert kv.get("user-session") == {
        "expires_at": "2026-01-02T03:04:05",
        "scopes": ["read", "write"],
    }


@pytest.mark.asyncio
async def test_concurrent_puts_leave_latest_mirror_on_disk(tmp_path):
    path = tmp_path / "state.json"
    kv = JsonFileKeyValueStore(str(path))

    await asyncio.gather(*(kv.put(f"key-{i}", i) for i in range(10)))

    on_disk = json.loads(path.read_text(encoding="utf-8"))
    assert on_disk == {f"key-{i}": i for i in range(10)}
    assert kv.save_count == 10


@pytest.mark.asyncio
async def test_failed_write_leaves_mirror_unchanged(tmp_path, monkeypatch):
    path = tmp_path / "state.json"
    kv = JsonFileKeyValueStore(str(path))
    await kv.put("user-session", {"access_token": "old"})

    def broken_write(snapshot):
        raise OSError("disk full")

    monkeypatch.setattr(kv, "_write", broken_write)
    with pytest.raises(OSError, match="disk full"):
        await kv.put("user-session", {"access_token": "new"})
    with pytest.raises(OSError):
        await kv.put("user-session", None)

    assert kv.get("user-session") == {"access_token": "old"}
    assert kv.save_count == 1
    assert json.loads(path.read_text(encoding="utf-8")) == {"user-session": {"access_token": "old"}}


def test_corrupt_file_is_moved_aside(tmp_path):
    path = tmp_path / "state.json"
    path.write_text("{not json", encoding="utf-8")

    kv = JsonFileKeyValueStore(str(path))

    assert kv.keys() == []
    assert not path.exists()
    assert (tmp_path / "state.json.corrupt").read_text(encoding="utf-8") == "{not json"


def test_non_object_document_is_ignored(tmp_path):
    path = tmp_path / "state.json"
    path.write_text("[1, 2, 3]", encoding="utf-8")

    kv = JsonFileKeyValueStore(str(path))
    assert kv.keys() == []


@pytest.mark.asyncio
async def test_storage_info(tmp_path):
    kv = JsonFileKeyValueStore(str(tmp_path / "state.json"))
    await kv.put("a", 1)

    info = kv.get_storage_info()
    assert info["exists"] is True
    assert info["keys"] == ["a"]
    assert info["save_count"] == 1
    assert info["size_bytes"] > 0
