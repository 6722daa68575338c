from __future__ import annotations

from fastapi.testclient import TestClient

from fbrinvoicing.gateway.client import VALIDATE_INVOICE_PATH
from fbrinvoicing.sdk.client import FBRClient, FBRConfig


def test_sdk_roundtrip_calls(system_app, gateway):
    gateway.route(
        "pdi/v1/itemdesccode",
        [
            {"hS_CODE": "8471.3010", "description": "Laptop computers"},
            {"hS_CODE": "8517.1219", "description": "Mobile phones"},
        ],
    )
    gateway.route(VALIDATE_INVOICE_PATH, {"validationResponse": {"statusCode": "00", "status": "Valid"}})

    with TestClient(system_app) as client:
        sdk = FBRClient(cfg=FBRConfig(base_url=str(client.base_url), api_key="system-key"), session=client)
        assert sdk._session.headers["X-API-Key"] == "system-key"

        version = sdk.version()
        assert version.engine_version

        whoami = sdk.whoami()
        assert whoami.tenant_id == "default"

        codes = sdk.hs_codes()
        assert codes.count == 2

        hits = sdk.search_hs_codes("8517")
        assert [item.key for item in hits.items] == ["8517.1219"]

        uom = sdk.uom("9801.0000", rate="60/bill")
        assert uom.items[0].key == "bill_of_lading"

        status = sdk.cache_status("hs_codes")
        assert status["hs_codes"].present is True

        assert sdk.clear_cache("hs_codes") == {"cleared": ["hs_codes"]}
        assert sdk.cache_status("hs_codes")["hs_codes"].present is False

        totals = sdk.compute_items([{"hs_code": "8471.3010", "rate": "18%", "quantity": 1, "retail_price": 100}])
        assert float(totals["total"]) == 118.0

        result = sdk.validate_invoice({"invoiceType": "Sale Invoice", "items": []})
        assert result["validationResponse"]["status"] == "Valid"


def test_sdk_config_reads_environment(monkeypatch):
    monkeypatch.setenv("FBR_BASE_URL_LOCAL", "http://invoicing.internal:9000")
    monkeypatch.setenv("FBR_API_KEY", "env-key")

    cfg = FBRConfig()

    assert cfg.resolved_base_url == "http://invoicing.internal:9000"
    assert cfg.resolved_api_key == "env-key"
    assert FBRConfig(api_key="explicit").resolved_api_key == "explicit"


def test_sdk_refresh_cache_and_rate_lookups(system_app, gateway):
    gateway.route("pdi/v1/provinces", [{"stateProvinceCode": 7, "stateProvinceDesc": "PUNJAB"}])
    gateway.route("pdi/v2/SaleTypeToRate", [{"ratE_ID": 734, "ratE_DESC": "18%"}])
    gateway.route("pdi/v1/SroSchedule", [{"srO_ID": 7, "srO_DESC": "EIGHTH SCHEDULE"}])

    with TestClient(system_app) as client:
        sdk = FBRClient(cfg=FBRConfig(base_url=str(client.base_url), api_key="system-key"), session=client)

        sdk.provinces()
        refreshed = sdk.refresh_cache("provinces")
        rates = sdk.rates(18, 7, date="24-Feb-2024")
        sros = sdk.sro_schedule(rates.items[0].key, 7, date="04-Feb-2024")

    assert refreshed.kind == "provinces"
    assert [item.key for item in refreshed.items] == ["7"]
    assert len(gateway.calls_to("pdi/v1/provinces")) == 2
    assert [item.description for item in rates.items] == ["18%"]
    assert [item.key for item in sros.items] == ["7"]
    assert gateway.calls_to("pdi/v1/SroSchedule")[0].url.params["rate_id"] == "734"
