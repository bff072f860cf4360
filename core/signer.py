"""
Request Signer

Computes HMAC signatures for authenticated venue requests.

The signer is stateless: it never stores credentials and never caches
timestamps. Parameter ordering is decided by the venue adapter; the signer
encodes the mapping exactly in the order it receives it.

Encodings:
    QUERY_STRING   k1=v1&k2=v2 (URL-encoded), as Binance signs totalParams
    CONCATENATED   v1v2v3, as Coinbase signs timestamp + method + path + body

Usage:
    signer = Signer()
    ts = signer.timestamp()
    sig = signer.sign({"symbol": "BTCUSDT", "timestamp": str(ts)}, secret)
"""

import hashlib
import hmac
from enum import Enum
from typing import Callable, Mapping, Optional, Union
from urllib.parse import urlencode

from pydantic import SecretStr

from core.errors import SigningError
from core.utils.time import current_utc_timestamp


class SignatureAlgorithm(str, Enum):
    """Supported HMAC digests (hex-encoded output)."""

    HMAC_SHA256 = "HMAC_SHA256"
    HMAC_SHA512 = "HMAC_SHA512"


class ParamEncoding(str, Enum):
    """How an ordered parameter mapping becomes the signed payload."""

    QUERY_STRING = "QUERY_STRING"
    CONCATENATED = "CONCATENATED"


_DIGESTS = {
    SignatureAlgorithm.HMAC_SHA256: hashlib.sha256,
    SignatureAlgorithm.HMAC_SHA512: hashlib.sha512,
}


def encode_params(params: Mapping[str, str], encoding: ParamEncoding = ParamEncoding.QUERY_STRING) -> str:
    """
    Encode an ordered parameter mapping into the canonical signing payload.

    Example:
        >>> encode_params({"symbol": "BTCUSDT", "side": "BUY"})
        'symbol=BTCUSDT&side=BUY'
        >>> encode_params({"ts": "1", "method": "GET"}, ParamEncoding.CONCATENATED)
        '1GET'
    """
    if encoding is ParamEncoding.CONCATENATED:
        return "".join(str(v) for v in params.values())
    return urlencode([(k, str(v)) for k, v in params.items()])


class Signer:
    """
    Stateless HMAC signer.

    Attributes:
        clock: Callable returning current epoch milliseconds (injectable for tests)

    Example:
        >>> signer = Signer(clock=lambda: 1700000000000)
        >>> signer.timestamp()
        1700000000000
    """

    def __init__(self, clock: Optional[Callable[[], int]] = None):
        self._clock = clock or (lambda: current_utc_timestamp(milliseconds=True))

    def timestamp(self) -> int:
        """Current epoch milliseconds, read fresh on every call."""
        return int(self._clock())

    def sign(
        self,
        params: Mapping[str, str],
        secret_key: Union[str, SecretStr],
        algorithm: SignatureAlgorithm = SignatureAlgorithm.HMAC_SHA256,
        encoding: ParamEncoding = ParamEncoding.QUERY_STRING,
    ) -> str:
        """
        Sign an ordered parameter mapping.

        Args:
            params: Ordered mapping of parameter name to string value
            secret_key: Secret key (plain or SecretStr)
            algorithm: HMAC digest to use
            encoding: How params are turned into the signed payload

        Returns:
            str: Lower-case hex signature

        Raises:
            SigningError: If the secret key is empty or the algorithm is unknown
        """
        secret = secret_key.get_secret_value() if isinstance(secret_key, SecretStr) else secret_key
        if not secret:
            raise SigningError("secret key is empty")

        try:
            digest = _DIGESTS[SignatureAlgorithm(algorithm)]
        except (KeyError, ValueError):
            raise SigningError(f"unsupported signature algorithm: {algorithm}")

        payload = encode_params(params, ParamEncoding(encoding))
        return hmac.new(secret.encode("utf-8"), payload.encode("utf-8"), digest).hexdigest()
