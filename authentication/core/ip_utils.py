"""Client IP extraction for proxied (nginx, load balancer) and direct requests."""

FORWARDED_HEADERS = ('HTTP_X_FORWARDED_FOR', 'HTTP_X_REAL_IP', 'HTTP_CF_CONNECTING_IP')


def get_client_ip(request):
    """
    Best-effort client address for a Django/DRF request.

    X-Forwarded-For lists "client, proxy1, proxy2"; the first hop is the client.
    Returns an empty string when nothing usable is present.
    """
    meta = getattr(request, 'META', None) or {}

    for header in FORWARDED_HEADERS:
        value = meta.get(header)
        if value:
            first_hop = value.split(',')[0].strip()
            if first_hop:
                return first_hop

    return (meta.get('REMOTE_ADDR') or '').strip()
