import json

from client.local_store import LocalStore, WriteOrigin

# payload field -> local store key
FIELD_KEYS = {
    "transactions": "finance_transactions",
    "investments": "finance_investments",
    "dashboard_cards": "dashboard_cards",
    "locale": "app_locale",
    "currency": "app_currency",
    "exchange_rates": "exchange_rates",
    "custom_expense_categories": "custom_expense_categories",
    "custom_income_categories": "custom_income_categories",
    "category_translations": "category_translations",
    "hidden_expense_categories": "hidden_expense_categories",
    "hidden_income_categories": "hidden_income_categories",
    "daily_limit_value": "daily-limit-value",
}

_DEFAULTS = {
    "transactions": [],
    "investments": [],
    "dashboard_cards": [],
    "locale": "pt-BR",
    "currency": "BRL",
    "exchange_rates": {},
    "custom_expense_categories": [],
    "custom_income_categories": [],
    "category_translations": {},
    "hidden_expense_categories": [],
    "hidden_income_categories": [],
    "daily_limit_value": None,
}

TRACKED = ("transactions", "investments")

# "clear data" wipes these, locale, currency and the daily limit stay
DOMAIN_KEYS = tuple(
    k for f, k in FIELD_KEYS.items() if f not in ("locale", "currency", "daily_limit_value")
)


def collect_payload(store: LocalStore) -> dict:
    """Bundle the local store into the envelope pushed to the server."""
    payload = {}
    for field, key in FIELD_KEYS.items():
        default = _DEFAULTS[field]
        value = store.get(key, default)
        if field == "daily_limit_value" and value is not None:
            try:
                value = float(value)
            except (TypeError, ValueError):
                value = None
        payload[field] = value
    return payload


def apply_payload(store: LocalStore, data, origin: WriteOrigin = WriteOrigin.PULL):
    """
    Write the remote payload into the local store as a single change
    notification. The tracked arrays are always replaced (missing means
    empty); other fields missing or null remotely are left alone.
    """
    if not isinstance(data, dict):
        return
    values = {}
    for field, key in FIELD_KEYS.items():
        value = data.get(field)
        if field in TRACKED and not isinstance(value, list):
            value = []
        if value is None:
            continue
        if field == "daily_limit_value":
            value = _limit_text(value)
        values[key] = value
    store.write_many(values, origin)


def _limit_text(value) -> str:
    # 150.0 goes back as "150", the way the device wrote it
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def clear_local_data(store: LocalStore):
    store.remove(*DOMAIN_KEYS, origin=WriteOrigin.RESET)


def tracked_counts(data) -> tuple[int, int]:
    if not isinstance(data, dict):
        return 0, 0
    out = []
    for field in TRACKED:
        value = data.get(field)
        out.append(len(value) if isinstance(value, list) else 0)
    return tuple(out)


def local_tracked_counts(store: LocalStore) -> tuple[int, int]:
    return tracked_counts({f: store.get(FIELD_KEYS[f], []) for f in TRACKED})


def _canonical(value) -> str:
    return json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def tracked_fingerprint(data) -> str:
    """
    Canonical text of the two tracked arrays, for byte-level comparison.
    Object keys are sorted, so key order on either side never counts as a change.
    """
    data = data if isinstance(data, dict) else {}
    return "\n".join(_canonical(data.get(f) or []) for f in TRACKED)


def local_tracked_fingerprint(store: LocalStore) -> str:
    return tracked_fingerprint({f: store.get(FIELD_KEYS[f], []) for f in TRACKED})
