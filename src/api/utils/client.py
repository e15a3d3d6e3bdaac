"""Client identification shared by rate limiting and request logging."""

from starlette.requests import HTTPConnection

UNKNOWN_CLIENT = "unknown"


def get_client_identity(
    connection: HTTPConnection, *, trust_proxy_headers: bool = False
) -> str:
    """Extract the caller's network address.

    Proxy headers are only honoured when explicitly trusted, otherwise any
    caller could pick its own rate-limit bucket.

    Args:
        connection: The incoming request or connection.
        trust_proxy_headers: Whether X-Forwarded-For / X-Real-IP are trusted.

    Returns:
        str: The client address, or "unknown" if the server did not report one.
    """
    if trust_proxy_headers:
        forwarded_for = connection.headers.get("x-forwarded-for")
        if forwarded_for:
            # Take the first IP (original client)
            return forwarded_for.split(",")[0].strip()

        real_ip = connection.headers.get("x-real-ip")
        if real_ip:
            return real_ip.strip()

    if connection.client and connection.client.host:
        return connection.client.host
    return UNKNOWN_CLIENT
