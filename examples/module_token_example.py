#!/usr/bin/env python3
"""
Module Token Example

Demonstrates obtaining a signature from the local security module and
building a hub SAS token from it, without the module key ever leaving
the module.

Features:
1. Signing client configured from plain values
2. Tagged error handling (ErrorKind)
3. Result-returning sign call
4. SAS token generation

Environment variables are read here, by the application, never by the
signing client itself.
"""

import asyncio
import os

from returns.result import Failure, Success

from hsmsigner import (
    ErrorKind,
    HsmSignerError,
    SignerConfig,
    SigningClient,
    build_shared_access_signature,
)
from hsmsigner.signing import module_audience


async def main():
    """Sign data and build a module token."""

    print("=" * 70)
    print("hsmsigner - Module Token")
    print("=" * 70)
    print()

    config = SignerConfig.from_mapping(
        {
            "provider_uri": os.environ.get("IOTEDGE_WORKLOADURI", "unix:///var/run/iotedge/workload.sock"),
            "api_version": os.environ.get("IOTEDGE_APIVERSION"),
        }
    )
    module_id = os.environ.get("IOTEDGE_MODULEID", "mymodule")
    device_id = os.environ.get("IOTEDGE_DEVICEID", "mydevice")
    hostname = os.environ.get("IOTEDGE_IOTHUBHOSTNAME", "myhub.azure-devices.net")

    client = SigningClient(config)
    print(f"Provider: {client.endpoint}")
    print(f"API version: {config.api_version}")
    print()

    # ==========================================================================
    # EXAMPLE 1: Sign with Result handling
    # ==========================================================================
    print("1. Sign data")
    print("-" * 40)

    result = await client.try_sign(module_id, b"hello")
    match result:
        case Success(signature):
            print(f"   Signature: {signature}")
        case Failure(error):
            print(f"   Failed ({error.kind.name}, status={error.status_code}): {error.message}")
    print()

    # ==========================================================================
    # EXAMPLE 2: Build a SAS token
    # ==========================================================================
    print("2. Build SAS token")
    print("-" * 40)

    try:
        token = await build_shared_access_signature(
            client,
            module_id,
            module_audience(hostname, device_id, module_id),
        )
        print(f"   {token}")
    except HsmSignerError as e:
        if e.kind is ErrorKind.PERMANENT_COMMUNICATION:
            print(f"   Module rejected the request: {e.message}")
        else:
            print(f"   {e.kind.name}: {e.message}")


if __name__ == "__main__":
    asyncio.run(main())
