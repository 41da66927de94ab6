"""Temporal client factory.

Creates connections to Temporal (Cloud or a local dev server) using
settings from the environment.
"""

import os
from pathlib import Path

# Load .env file if it exists
from dotenv import load_dotenv
env_path = Path(__file__).resolve().parent / ".env"
if env_path.exists():
    load_dotenv(env_path)

from temporalio.client import Client

LOCAL_ENDPOINT = "localhost:7233"


async def get_temporal_client() -> Client:
    """Create and return a Temporal client.

    Reads configuration from environment variables:
    - TEMPORAL_ENDPOINT: Temporal endpoint (default: localhost:7233)
    - TEMPORAL_NAMESPACE: Namespace (default: "default")
    - TEMPORAL_API_KEY: Cloud API key; when set the connection uses TLS

    Returns:
        Connected Temporal client

    Raises:
        ValueError: If a non-local endpoint is configured without an API key
    """
    endpoint = os.getenv("TEMPORAL_ENDPOINT", LOCAL_ENDPOINT)
    namespace = os.getenv("TEMPORAL_NAMESPACE", "default")
    api_key = os.getenv("TEMPORAL_API_KEY")

    is_local = endpoint.startswith("localhost") or endpoint.startswith("127.0.0.1")
    if not api_key and not is_local:
        raise ValueError(
            f"TEMPORAL_API_KEY environment variable not set for endpoint {endpoint}. "
            "Set it to your Temporal Cloud API key, or point TEMPORAL_ENDPOINT at a local server"
        )

    if api_key:
        return await Client.connect(
            endpoint,
            namespace=namespace,
            tls=True,
            api_key=api_key,
        )
    return await Client.connect(endpoint, namespace=namespace)
