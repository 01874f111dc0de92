from splitpay.platform.security.http_signatures import RequestSigner, content_digest, load_private_key

__all__ = ["RequestSigner", "content_digest", "load_private_key"]
