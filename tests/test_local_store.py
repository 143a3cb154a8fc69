import json

from client.conflict import ConflictInfo, detect_conflict, has_tracked_data
from client.local_store import LocalStore, WriteOrigin
from client.payload import (
    apply_payload, clear_local_data, collect_payload, local_tracked_fingerprint,
    tracked_fingerprint,
)


def _events(store):
    seen = []
    store.subscribe(seen.append)
    return seen


# ---------- local store ----------

def test_set_emits_one_local_event():
    store = LocalStore()
    seen = _events(store)
    store.set("finance_transactions", [{"id": 1}])
    assert [(e.keys, e.origin) for e in seen] == [(("finance_transactions",), WriteOrigin.LOCAL)]
    assert store.get("finance_transactions") == [{"id": 1}]


def test_write_many_is_a_single_notification():
    store = LocalStore()
    seen = _events(store)
    store.write_many({"a": [1], "b": {"x": 1}}, WriteOrigin.PULL)
    assert len(seen) == 1
    assert seen[0].keys == ("a", "b")
    assert seen[0].origin is WriteOrigin.PULL


def test_plain_strings_are_stored_unquoted():
    store = LocalStore()
    store.set("app_locale", "en-US")
    assert store.get_raw("app_locale") == "en-US"
    assert store.get("app_locale") == "en-US"


def test_unsubscribe_stops_notifications():
    store = LocalStore()
    seen = []
    unsubscribe = store.subscribe(seen.append)
    unsubscribe()
    store.set("a", 1)
    assert seen == []


def test_remove_notifies_only_when_something_was_removed():
    store = LocalStore()
    seen = _events(store)
    store.remove("missing")
    assert seen == []
    store.set("a", 1)
    store.remove("a", "missing", origin=WriteOrigin.RESET)
    assert seen[-1].keys == ("a",)
    assert seen[-1].origin is WriteOrigin.RESET
    assert store.get("a") is None


def test_clear_wipes_everything_in_one_reset_event(tmp_path):
    path = tmp_path / "local.json"
    store = LocalStore(str(path))
    store.write_many({"finance_transactions": [{"id": 1}], "app_locale": "en-US"})
    seen = _events(store)

    store.clear()

    assert [(e.keys, e.origin) for e in seen] == [
        (("finance_transactions", "app_locale"), WriteOrigin.RESET)
    ]
    assert store.keys() == []
    assert json.loads(path.read_text(encoding="utf-8")) == {}

    store.clear()
    assert len(seen) == 1


def test_file_backed_store_survives_reload(tmp_path):
    path = tmp_path / "local.json"
    store = LocalStore(str(path))
    store.set("finance_transactions", [{"id": 7}])

    assert json.loads(path.read_text(encoding="utf-8")) == {"finance_transactions": '[{"id":7}]'}
    assert LocalStore(str(path)).get("finance_transactions") == [{"id": 7}]


def test_unreadable_file_starts_empty(tmp_path):
    path = tmp_path / "local.json"
    path.write_text("{broken", encoding="utf-8")
    assert LocalStore(str(path)).keys() == []


# ---------- payload envelope ----------

def test_collect_payload_defaults():
    payload = collect_payload(LocalStore())
    assert payload["transactions"] == []
    assert payload["investments"] == []
    assert payload["locale"] == "pt-BR"
    assert payload["currency"] == "BRL"
    assert payload["exchange_rates"] == {}
    assert payload["daily_limit_value"] is None


def test_collect_payload_reads_daily_limit_text():
    store = LocalStore()
    store.set("daily-limit-value", "150")
    assert collect_payload(store)["daily_limit_value"] == 150.0


def test_daily_limit_text_survives_a_round_trip():
    store = LocalStore()
    store.set("daily-limit-value", "150")
    apply_payload(store, collect_payload(store))
    assert store.get_raw("daily-limit-value") == "150"

    apply_payload(store, {"daily_limit_value": 12.5})
    assert store.get_raw("daily-limit-value") == "12.5"


def test_apply_payload_writes_present_fields_as_pull():
    store = LocalStore()
    store.set("app_currency", "EUR")
    seen = _events(store)

    apply_payload(store, {"transactions": [{"id": 1}], "locale": "es-ES", "daily_limit_value": 80})

    assert len(seen) == 1 and seen[0].origin is WriteOrigin.PULL
    assert store.get("finance_transactions") == [{"id": 1}]
    # tracked arrays are always replaced, missing means empty
    assert store.get("finance_investments") == []
    assert store.get("app_locale") == "es-ES"
    assert store.get("app_currency") == "EUR"
    assert store.get_raw("daily-limit-value") == "80"


def test_clear_local_data_keeps_locale_currency_and_daily_limit():
    store = LocalStore()
    apply_payload(store, {"transactions": [{"id": 1}], "locale": "en-US",
                          "currency": "USD", "daily_limit_value": 50})
    seen = _events(store)
    clear_local_data(store)
    assert seen[0].origin is WriteOrigin.RESET
    assert store.get("finance_transactions") is None
    assert store.get("app_locale") == "en-US"
    assert store.get("app_currency") == "USD"
    assert store.get_raw("daily-limit-value") == "50"


def test_local_fingerprint_matches_payload_fingerprint():
    store = LocalStore()
    data = {"transactions": [{"id": 1, "description": "pão"}], "investments": [{"id": 2}]}
    apply_payload(store, data)
    assert local_tracked_fingerprint(store) == tracked_fingerprint(data)
    assert local_tracked_fingerprint(LocalStore()) == tracked_fingerprint({})


def test_fingerprint_ignores_object_key_order():
    store = LocalStore()
    store.set("finance_transactions", [{"id": 1, "amount": 10}])
    remote = {"transactions": [{"amount": 10, "id": 1}], "investments": []}
    assert local_tracked_fingerprint(store) == tracked_fingerprint(remote)
    assert detect_conflict(collect_payload(store), remote) is None


# ---------- conflict decision ----------

def test_no_conflict_when_either_side_is_empty():
    full = {"transactions": [{"id": 1}]}
    assert detect_conflict({"transactions": []}, full) is None
    assert detect_conflict(full, {"transactions": [], "investments": []}) is None
    assert detect_conflict(full, None) is None


def test_no_conflict_when_tracked_data_matches():
    data = {"transactions": [{"id": 1}], "investments": []}
    assert detect_conflict(data, dict(data, locale="en-US")) is None


def test_conflict_reports_counts():
    local = {"transactions": [{"id": 1}, {"id": 2}], "investments": [{"id": 9}]}
    remote = {"transactions": [{"id": 3}]}
    assert detect_conflict(local, remote) == ConflictInfo(2, 1, 1, 0)


def test_has_tracked_data():
    assert has_tracked_data({"investments": [{"id": 1}]})
    assert not has_tracked_data({"transactions": [], "locale": "pt-BR"})
    assert not has_tracked_data(None)
