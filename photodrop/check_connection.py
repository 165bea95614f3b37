#!/usr/bin/env python3
"""
Upload server connection check

Fetches the file listing once and reports what came back.

Usage:
    photodrop-check                # development
    photodrop-check production     # needs PHOTODROP_API_URL
"""

import sys
from typing import Optional
import httpx
from pydantic import ValidationError

from photodrop.config import ClientSettings
from photodrop.server.models.file import FileListResponse


def hint_for(error: Exception) -> Optional[str]:
    message = str(error)
    if isinstance(error, httpx.ConnectError) and "refused" in message.lower():
        return "Server is not running. Start it with: photodrop-server"
    if "Name or service not known" in message or "nodename nor servname" in message or "getaddrinfo" in message:
        return "Wrong server address or no internet connection"
    return None


def check_connection(api_url: str, client: Optional[httpx.Client] = None) -> bool:
    """Print the result of GET /api/files; True when it succeeded."""
    owns_client = client is None
    client = client or httpx.Client(timeout=10.0)
    print("\n1. Testing basic connection...")
    try:
        response = client.get(f"{api_url}/api/files")
        print(f"Response status: {response.status_code}")
        print(f"Response headers: {dict(response.headers)}")
        response.raise_for_status()

        files = FileListResponse.model_validate(response.json()).files
        print(f"Files found: {len(files)}")
        if files:
            print(f"Example file: {files[0].model_dump(mode='json', by_alias=True)}")
    except (httpx.HTTPError, ValueError, ValidationError) as e:
        print(f"\n❌ Connection error: {e}")
        hint = hint_for(e)
        if hint:
            print(f"💡 {hint}")
        return False
    finally:
        if owns_client:
            client.close()

    print("\n✅ Connection to the server works!")
    return True


def main(argv: Optional[list[str]] = None) -> int:
    argv = sys.argv[1:] if argv is None else argv
    env = argv[0] if argv else "development"

    try:
        settings = ClientSettings(ENV=env)
    except ValidationError as e:
        print(f"❌ Invalid configuration for {env}: {e}")
        return 1

    print(f"Testing connection to the server ({env})")
    print(f"URL: {settings.API_URL}")
    return 0 if check_connection(settings.API_URL) else 1


if __name__ == "__main__":
    sys.exit(main())
