from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, ValidationError

# Fields the client bundles from its local storage. The server only ever
# looks inside the two tracked arrays (for counts), the rest is passed
# through as-is once it has the right shape.
TRACKED_FIELDS = ("transactions", "investments")


class SyncPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    transactions: Optional[list[dict[str, Any]]] = None
    investments: Optional[list[dict[str, Any]]] = None
    dashboard_cards: Optional[list[Any]] = None
    locale: Optional[str] = None
    currency: Optional[str] = None
    exchange_rates: Optional[dict[str, Any]] = None
    custom_expense_categories: Optional[list[Any]] = None
    custom_income_categories: Optional[list[Any]] = None
    category_translations: Optional[dict[str, Any]] = None
    hidden_expense_categories: Optional[list[Any]] = None
    hidden_income_categories: Optional[list[Any]] = None
    # localStorage keeps this as text, lax mode turns "150" into 150.0
    daily_limit_value: Optional[float] = None


class PayloadError(ValueError):
    def __init__(self, message: str, details: Optional[list[dict]] = None):
        super().__init__(message)
        self.details = details or []


def validate_payload(raw) -> dict:
    """
    Validate the `data` envelope of a push. Unknown keys are dropped, fields
    the client did not send stay absent, wrong shapes raise PayloadError.
    """
    if not isinstance(raw, dict):
        raise PayloadError("data must be a JSON object")
    try:
        payload = SyncPayload.model_validate(raw)
    except ValidationError as e:
        details = [
            {"field": ".".join(str(p) for p in err.get("loc", ())) or "data",
             "message": err.get("msg", "invalid value")}
            for err in e.errors()
        ]
        raise PayloadError("invalid payload", details)
    return payload.model_dump(exclude_unset=True)
