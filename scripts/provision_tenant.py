#!/usr/bin/env python3
"""Provision an invoicing tenant with API key and FBR tokens.

Usage:
    python scripts/provision_tenant.py --name "Acme Traders" --ntn 1234567
    python scripts/provision_tenant.py --name "Acme Traders" --sandbox-token <token>

Creates a tenant in the JSON registry under ``$FBR_DATA_ROOT/data``,
generates an API key when none is given, and prints the key.
"""

from __future__ import annotations

import argparse
import os
import secrets
import sys

# Ensure project root is on path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))


def main() -> None:
    parser = argparse.ArgumentParser(description="Provision an FBR invoicing tenant")
    parser.add_argument("--name", required=True, help="Tenant display name")
    parser.add_argument("--tenant-id", default=None, help="Custom tenant ID (auto-generated if omitted)")
    parser.add_argument("--api-key", default=None, help="Custom API key (auto-generated if omitted)")
    parser.add_argument("--ntn", default="", help="Seller NTN/CNIC")
    parser.add_argument("--province", default="", help="Seller province")
    parser.add_argument("--sandbox-token", default="", help="FBR sandbox bearer token")
    parser.add_argument("--production-token", default="", help="FBR production bearer token")
    args = parser.parse_args()

    tenant_id = args.tenant_id or f"tenant_{secrets.token_hex(6)}"
    api_key = args.api_key or f"fbr_{secrets.token_urlsafe(24)}"

    from fbrinvoicing.api.tenants import get_registry
    from fbrinvoicing.observability import redact_token

    registry = get_registry()
    try:
        tenant = registry.register_tenant(
            tenant_id=tenant_id,
            name=args.name,
            api_key=api_key,
            seller_ntn=args.ntn,
            seller_province=args.province,
            sandbox_token=args.sandbox_token,
            production_token=args.production_token,
        )
    except ValueError as exc:
        parser.error(str(exc))

    print("=" * 60)
    print("FBR Invoicing Tenant Provisioned Successfully")
    print("=" * 60)
    print(f"  Tenant ID:         {tenant.tenant_id}")
    print(f"  Name:              {tenant.name}")
    print(f"  NTN:               {tenant.seller_ntn or '-'}")
    print(f"  Sandbox token:     {redact_token(tenant.sandbox_token)}")
    print(f"  Production token:  {redact_token(tenant.production_token)}")
    print(f"  API Key:           {api_key}")
    print(f"  Registry:          {registry.path}")
    print("=" * 60)
    print()
    print("Usage:")
    print(f'  curl -H "X-API-Key: {api_key}" http://localhost:8000/v1/auth/whoami')
    print()
    print("To start the server:")
    print("  uvicorn fbrinvoicing.api.app:app --host 0.0.0.0 --port 8000")
    print()


if __name__ == "__main__":
    main()
