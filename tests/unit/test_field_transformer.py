from __future__ import annotations

import threading
from typing import Dict, List, Optional

import pytest

from common.codec import DecodeError, FieldCodec
from common.settings import ENV_SECRET_KEY
from fields.models import REDACTED_MESSAGE, Actor, FieldConfig, PresentationState
from transform.handler import FieldTransformer


ADMIN = Actor(roles={"administrator"})
EDITOR = Actor(roles={"editor"})


class _FakeStore:
    """Stands in for the host's persisted values, keyed by field key."""

    def __init__(self, values: Optional[Dict[str, str]] = None) -> None:
        self.values: Dict[str, str] = dict(values or {})
        self.fetches: List[str] = []

    def fetch(self, key: str) -> Optional[str]:
        self.fetches.append(key)
        return self.values.get(key)


@pytest.fixture
def transformer() -> FieldTransformer:
    return FieldTransformer(FieldCodec("transform-secret"))


@pytest.fixture
def encrypted_cfg() -> FieldConfig:
    return FieldConfig(key="field_ssn", is_encrypted=True)


# --- on_save ---

def test_on_save_encrypts_for_privileged_actor(transformer: FieldTransformer, encrypted_cfg: FieldConfig):
    store = _FakeStore()
    stored = transformer.on_save("123-45-6789", encrypted_cfg, ADMIN, store.fetch)
    assert stored != "123-45-6789"
    assert transformer.codec.is_encoded(stored)
    assert transformer.on_load(stored) == "123-45-6789"
    assert store.fetches == []  # original not needed


def test_on_save_unprivileged_keeps_original(transformer: FieldTransformer, encrypted_cfg: FieldConfig):
    original = transformer.codec.encode("v1")
    store = _FakeStore({"field_ssn": original})

    stored = transformer.on_save("v2", encrypted_cfg, EDITOR, store.fetch)

    assert store.fetches == ["field_ssn"]
    assert transformer.on_load(stored) == "v1"
    assert stored != original  # re-encrypted under a fresh IV


def test_on_save_unprivileged_accepts_plaintext_original(transformer: FieldTransformer, encrypted_cfg: FieldConfig):
    store = _FakeStore({"field_ssn": "v1"})
    stored = transformer.on_save("v2", encrypted_cfg, EDITOR, store.fetch)
    assert transformer.on_load(stored) == "v1"


def test_on_save_unprivileged_without_original(transformer: FieldTransformer, encrypted_cfg: FieldConfig):
    assert transformer.on_save("v2", encrypted_cfg, EDITOR, _FakeStore().fetch) is None
    assert transformer.on_save("v2", encrypted_cfg, EDITOR) is None


def test_on_save_system_save_skips_role_gate(transformer: FieldTransformer, encrypted_cfg: FieldConfig):
    store = _FakeStore({"field_ssn": transformer.codec.encode("v1")})
    stored = transformer.on_save("v2", encrypted_cfg, Actor(), store.fetch, enforce_roles=False)
    assert transformer.on_load(stored) == "v2"
    assert store.fetches == []


def test_on_save_not_encrypted_passes_plaintext(transformer: FieldTransformer):
    cfg = FieldConfig(key="field_name")
    store = _FakeStore()
    assert transformer.on_save("Jane", cfg, EDITOR, store.fetch) == "Jane"
    assert store.fetches == []


def test_on_save_toggle_off_decrypts(transformer: FieldTransformer):
    blob = transformer.codec.encode("was secret")
    cfg = FieldConfig(key="field_x", is_encrypted=False)
    assert transformer.on_save(blob, cfg, ADMIN) == "was secret"


def test_on_save_does_not_double_encrypt(transformer: FieldTransformer, encrypted_cfg: FieldConfig):
    blob = transformer.codec.encode("once")
    stored = transformer.on_save(blob, encrypted_cfg, ADMIN)
    assert transformer.on_load(stored) == "once"


def test_on_save_stores_tag_like_text_as_typed(transformer: FieldTransformer, encrypted_cfg: FieldConfig):
    typed = "_acf_efo_ notes"
    stored = transformer.on_save(typed, encrypted_cfg, ADMIN)
    assert transformer.codec.is_encoded(stored)
    assert stored != typed
    assert transformer.on_load(stored) == typed


def test_on_save_accepts_raw_field_settings(transformer: FieldTransformer):
    field = {"key": "field_raw", "type": "text", "_acf_efo_is_encrypted": True}
    stored = transformer.on_save("abc", field, ADMIN)
    assert transformer.codec.is_encoded(stored)

    # Missing setting: encryption defaults to off
    assert transformer.on_save("abc", {"key": "field_raw"}, ADMIN) == "abc"


def test_on_save_propagates_decode_error(transformer: FieldTransformer):
    cfg = FieldConfig(key="field_x")
    with pytest.raises(DecodeError):
        transformer.on_save("_acf_efo_broken!!", cfg, ADMIN)


# --- on_load ---

def test_on_load_passthrough_and_decrypt(transformer: FieldTransformer):
    assert transformer.on_load("never encrypted") == "never encrypted"
    assert transformer.on_load(None) is None
    assert transformer.on_load(transformer.codec.encode("x")) == "x"


def test_on_load_does_not_redact(transformer: FieldTransformer, encrypted_cfg: FieldConfig):
    blob = transformer.codec.encode("true value")
    assert transformer.on_load(blob, encrypted_cfg, EDITOR) == "true value"


def test_on_load_raises_on_corrupt_blob(transformer: FieldTransformer, encrypted_cfg: FieldConfig):
    with pytest.raises(DecodeError):
        transformer.on_load("_acf_efo_AAAA", encrypted_cfg)


# --- present ---

def test_present_not_encrypted_is_plain(transformer: FieldTransformer):
    r = transformer.present("hello", FieldConfig(key="f"), EDITOR)
    assert r.state is PresentationState.PLAIN
    assert r.value == "hello"
    assert r.encrypted is False


def test_present_without_role_is_redacted(transformer: FieldTransformer, encrypted_cfg: FieldConfig):
    r = transformer.present("secret", encrypted_cfg, EDITOR)
    assert r.state is PresentationState.REDACTED
    assert r.value is None
    assert r.message == REDACTED_MESSAGE == "You do not have permission to view this field."


def test_present_with_role_is_plain(transformer: FieldTransformer, encrypted_cfg: FieldConfig):
    r = transformer.present("secret", encrypted_cfg, ADMIN)
    assert r.state is PresentationState.PLAIN
    assert r.value == "secret"
    assert r.reveal is False
    assert r.encrypted is True


def test_present_hidden_value_is_masked(transformer: FieldTransformer):
    cfg = FieldConfig(key="f", is_encrypted=True, hide_value=True, visible_roles=["editor"])
    r = transformer.present("secret", cfg, EDITOR)
    assert r.state is PresentationState.MASKED
    assert r.value == "secret"
    assert r.reveal is True
    assert r.reveal_label == "Click to Show"


def test_present_redaction_wins_over_hide_flag(transformer: FieldTransformer):
    cfg = FieldConfig(key="f", is_encrypted=True, hide_value=True)
    r = transformer.present("secret", cfg, EDITOR)
    assert r.state is PresentationState.REDACTED


# --- construction ---

def test_from_env(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv(ENV_SECRET_KEY, "env-secret")
    t = FieldTransformer.from_env()
    assert t.on_load(t.codec.encode("v")) == "v"


def test_concurrent_calls_share_one_transformer(transformer: FieldTransformer, encrypted_cfg: FieldConfig):
    results: Dict[int, Optional[str]] = {}

    def work(i: int) -> None:
        stored = transformer.on_save(f"value-{i}", encrypted_cfg, ADMIN)
        results[i] = transformer.on_load(stored)

    threads = [threading.Thread(target=work, args=(i,)) for i in range(16)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert results == {i: f"value-{i}" for i in range(16)}
