"""Request-level helpers shared by public endpoints."""

from fastapi import Request

# Checked in order; proxies and CDNs put the real client first
IP_HEADERS = ("CF-Connecting-IP", "X-Forwarded-For", "X-Real-IP")


def get_client_ip(request: Request) -> str:
    """Get client IP address for rate limiting and audit."""
    for header in IP_HEADERS:
        value = request.headers.get(header)
        if value:
            # Take the first IP in the chain
            ip = value.split(",")[0].strip()
            if ip:
                return ip
    # Fallback to direct connection
    return request.client.host if request.client and request.client.host else "unknown"
