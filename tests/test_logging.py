import json
import logging

from couponhub.core.logging_config import ContextFormatter, JsonFormatter


def _record(**extra):
    record = logging.makeLogRecord({"name": "couponhub.coupons", "levelname": "INFO", "msg": "coupon redeemed"})
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_json_formatter_carries_extras():
    payload = json.loads(JsonFormatter().format(_record(tenant_id="t1", campaign_id="c1", operation="redeem")))
    assert payload["message"] == "coupon redeemed"
    assert payload["tenant_id"] == "t1"
    assert payload["campaign_id"] == "c1"
    assert payload["operation"] == "redeem"
    assert payload["request_id"] is None


def test_context_formatter_appends_pairs():
    line = ContextFormatter().format(_record(tenant_id="t1", operation="redeem"))
    assert line == "INFO couponhub.coupons coupon redeemed [operation=redeem tenant_id=t1]"
    assert ContextFormatter().format(_record()) == "INFO couponhub.coupons coupon redeemed"
