"""Ed25519 HTTP message signatures for outbound Open Payments requests.

Produces the ``Content-Digest``, ``Signature-Input`` and ``Signature`` headers
the authorization and resource servers use to identify this client. Only the
components those servers check are covered: the method, the target URI, the
``Authorization`` header when present, and the content headers when there is
a body.
"""

from __future__ import annotations

import base64
import time

from Crypto.Hash import SHA512
from Crypto.PublicKey import ECC
from Crypto.Signature import eddsa

from splitpay.platform.errors import ConfigurationError


def content_digest(body: bytes) -> str:
    digest = SHA512.new(body).digest()
    return f"sha-512=:{base64.b64encode(digest).decode('ascii')}:"


def load_private_key(pem: str) -> ECC.EccKey:
    normalized = pem.replace("\\n", "\n").strip()
    try:
        key = ECC.import_key(normalized)
    except (ValueError, IndexError, TypeError) as exc:
        raise ConfigurationError("OP_PRIVATE_KEY_PEM is not a valid private key") from exc
    if not key.has_private():
        raise ConfigurationError("OP_PRIVATE_KEY_PEM does not contain a private key")
    return key


class RequestSigner:
    def __init__(self, *, key_id: str, private_key: ECC.EccKey, label: str = "sig1") -> None:
        try:
            self._signer = eddsa.new(private_key, "rfc8032")
        except ValueError as exc:
            raise ConfigurationError("OP_PRIVATE_KEY_PEM must be an Ed25519 key") from exc
        self._key_id = key_id
        self._label = label

    @classmethod
    def from_pem(cls, *, key_id: str, private_key_pem: str) -> "RequestSigner":
        return cls(key_id=key_id, private_key=load_private_key(private_key_pem))

    @property
    def key_id(self) -> str:
        return self._key_id

    def sign(self, *, method: str, url: str, headers: dict[str, str], created: int | None = None) -> dict[str, str]:
        lowered = {name.lower(): value for name, value in headers.items()}

        components = ["@method", "@target-uri"]
        if "authorization" in lowered:
            components.append("authorization")
        if "content-digest" in lowered:
            components.extend(["content-digest", "content-length", "content-type"])

        created_at = int(time.time()) if created is None else created
        params = "(" + " ".join(f'"{c}"' for c in components) + ")"
        params += f';keyid="{self._key_id}";created={created_at}'

        lines = []
        for component in components:
            if component == "@method":
                value = method.upper()
            elif component == "@target-uri":
                value = url
            else:
                value = lowered[component]
            lines.append(f'"{component}": {value}')
        lines.append(f'"@signature-params": {params}')
        signature_base = "\n".join(lines).encode("utf-8")

        signature = self._signer.sign(signature_base)
        return {
            "Signature-Input": f"{self._label}={params}",
            "Signature": f"{self._label}=:{base64.b64encode(signature).decode('ascii')}:",
        }
