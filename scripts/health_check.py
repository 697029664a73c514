"""Probe a running liveroom instance; exits non-zero unless every service is reachable."""
import asyncio
import os
import sys

import httpx

DEFAULT_URL = "http://localhost:8000/health"


async def check_health(url: str, transport: httpx.AsyncBaseTransport = None) -> bool:
    try:
        async with httpx.AsyncClient(timeout=5.0, transport=transport) as client:
            response = await client.get(url)
            response.raise_for_status()
            data = response.json()
    except (httpx.HTTPError, ValueError) as e:
        print(f"{url}: unreachable ({e})")
        return False

    down = [name for name, ok in data["services"].items() if not ok]
    print(f"{url}: {data['status']} (version {data['version']}, notify backend {data['notify_backend']})")
    if down:
        print(f"down: {', '.join(down)}")
    return not down


if __name__ == "__main__":
    healthy = asyncio.run(check_health(os.getenv("HEALTH_URL", DEFAULT_URL)))
    sys.exit(0 if healthy else 1)
