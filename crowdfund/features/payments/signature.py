"""
Payment provider signatures.

Defines the signer interface consumed by pledge submission and the
PostFinance SHA-IN implementation. Signing is deterministic: the same order
data and passphrase always yield the same signature.
"""
from typing import Protocol, Dict, Any, Optional
import hashlib

from crowdfund.core.config import settings

SUPPORTED_ALGORITHMS = ("sha1", "sha256", "sha512")

# Order fields mapped to PostFinance parameter names
PARAMETER_NAMES = {
    "orderId": "ORDERID",
    "amount": "AMOUNT",
    "alias": "ALIAS",
    "userId": "USERID",
}


class SignatureProvider(Protocol):
    """
    Protocol for payment signers.

    Implementations must sign {orderId, amount, alias, userId}.
    """

    def sign(self, order: Dict[str, Any]) -> str:
        """
        Sign order data for the payment provider.

        Raises:
            PaymentSignatureError: If the order cannot be signed
        """
        ...


class PaymentSignatureError(Exception):
    """Base exception for payment signature errors."""
    pass


class PostFinanceSigner:
    """PostFinance e-payment SHA-IN signature."""

    def __init__(self, passphrase: str, pspid: Optional[str] = None, algorithm: str = "sha512"):
        if not passphrase:
            raise PaymentSignatureError("SHA-IN passphrase is required")
        algorithm = algorithm.lower()
        if algorithm not in SUPPORTED_ALGORITHMS:
            raise PaymentSignatureError(f"Unsupported SHA algorithm: {algorithm}")
        self.passphrase = passphrase
        self.pspid = pspid
        self.algorithm = algorithm

    def parameters(self, order: Dict[str, Any]) -> Dict[str, str]:
        params = {
            PARAMETER_NAMES.get(key, key.upper()): value
            for key, value in order.items()
        }
        if self.pspid:
            params["PSPID"] = self.pspid
        # Empty parameters are not part of the signed string
        return {key: str(value) for key, value in params.items() if value not in (None, "")}

    def sign(self, order: Dict[str, Any]) -> str:
        params = self.parameters(order)
        if "ORDERID" not in params or "AMOUNT" not in params:
            raise PaymentSignatureError("orderId and amount are required")
        payload = "".join(
            f"{key}={params[key]}{self.passphrase}" for key in sorted(params)
        )
        return hashlib.new(self.algorithm, payload.encode("utf-8")).hexdigest().upper()


def get_signer() -> SignatureProvider:
    """Build the configured signer."""
    return PostFinanceSigner(
        passphrase=settings.PF_SHA_IN_SECRET or "",
        pspid=settings.PF_PSPID,
        algorithm=settings.PF_SHA_ALGORITHM,
    )
