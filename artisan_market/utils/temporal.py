from temporalio.client import Client

from artisan_market import config

# Client shared by the API once it has connected at startup
_client: Client | None = None


async def get_temporal_client() -> Client:
    """
    Connect to the configured Temporal server and namespace
    """
    return await Client.connect(config.temporal_address(), namespace=config.TEMPORAL_NAMESPACE)


def set_client(client: Client | None):
    global _client
    _client = client


def current_client() -> Client | None:
    return _client
