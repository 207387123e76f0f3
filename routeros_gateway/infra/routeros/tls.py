"""TLS settings for device connections.

RouterOS devices ship self-signed certificates, so both protocols connect
without certificate validation (trust on first use) but refuse anything
older than TLS 1.2.
"""

import ssl


def device_ssl_context() -> ssl.SSLContext:
    """Build the client SSL context used for every device connection."""
    context = ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
    context.minimum_version = ssl.TLSVersion.TLSv1_2
    context.check_hostname = False
    context.verify_mode = ssl.CERT_NONE
    return context
