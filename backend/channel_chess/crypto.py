"""Wallet signatures and identities.

Participants are identified by Ethereum-style addresses and authorize
off-path moves by signing a 32-byte digest with ``personal_sign`` (EIP-191).
The service only ever needs to answer one question -- did this address sign
this digest? -- so the rest of the code depends on the small
``SignatureVerifier`` protocol rather than on eth-account directly.
"""

from typing import Optional, Protocol

from eth_account import Account
from eth_account.messages import encode_defunct
from eth_keys.exceptions import BadSignature, ValidationError
from eth_utils import decode_hex, is_address, keccak, to_checksum_address, to_hex

ZERO_ADDRESS = '0x' + '00' * 20
SIGNATURE_LENGTH = 65


class SignatureVerifier(Protocol):
    def verify(self, digest: bytes, signature: str, claimed_signer: str) -> bool:
        ...


class EthSignatureVerifier:
    """Recovers the signer of an EIP-191 signed digest and compares addresses."""

    def verify(self, digest: bytes, signature: str, claimed_signer: str) -> bool:
        if not signature or not claimed_signer:
            return False
        try:
            if len(decode_hex(signature)) != SIGNATURE_LENGTH:
                return False
            recovered = Account.recover_message(encode_defunct(primitive=digest), signature=signature)
        except (BadSignature, ValidationError, ValueError, TypeError):
            return False
        return recovered.lower() == claimed_signer.lower()


def sign_digest(private_key: str, digest: bytes) -> str:
    """Sign ``digest`` the way a wallet would; returns a 0x-prefixed hex signature."""
    signed = Account.sign_message(encode_defunct(primitive=digest), private_key)
    return to_hex(signed.signature)


def text_digest(message: str) -> bytes:
    return keccak(text=message)


def normalize_address(value) -> Optional[str]:
    """Checksummed form of ``value``, or None when it is not an address."""
    if not isinstance(value, str) or not is_address(value):
        return None
    return to_checksum_address(value)
