from __future__ import annotations

import logging

from fastapi.testclient import TestClient


def test_runid_and_redaction(system_app, gateway, caplog):
    gateway.route("pdi/v1/provinces", [{"stateProvinceCode": 7, "stateProvinceDesc": "PUNJAB"}])
    caplog.set_level(logging.DEBUG, logger="fbrinvoicing")

    with TestClient(system_app, headers={"X-API-Key": "system-key"}) as client:
        resp = client.get("/api/reference/provinces")
        assert resp.status_code == 200

    run_ids = set()
    api_keys = set()
    for record in caplog.records:
        payload = getattr(record, "payload", {})
        if not payload:
            continue
        if payload.get("run_id"):
            run_ids.add(payload["run_id"])
        if "api_key" in payload:
            api_keys.add(payload["api_key"])

    assert len(run_ids) == 1
    assert api_keys
    assert all(val != "system-key" for val in api_keys)
    assert not any("sandbox-token-0123456789" in record.getMessage() for record in caplog.records)
