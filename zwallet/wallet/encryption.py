"""age encryption of the mnemonic phrase."""

from typing import Iterable, Sequence

import pyrage
from pyrage import x25519

from zwallet.wallet.identity import Recipient


def encrypt_mnemonic(recipients: Iterable[Recipient], phrase: str) -> str:
    """
    Encrypt a mnemonic phrase to every recipient.

    Returns:
        ASCII-armored age ciphertext; any one recipient's identity decrypts it.
    """
    recipients = list(recipients)
    if not recipients:
        raise ValueError("At least one recipient is required")

    plaintext = bytearray(phrase.encode())
    try:
        ciphertext = pyrage.encrypt(bytes(plaintext), recipients, armored=True)
    finally:
        plaintext[:] = bytes(len(plaintext))
    return ciphertext.decode("ascii")


def decrypt_mnemonic(ciphertext: str, identities: Sequence[x25519.Identity]) -> str:
    """
    Decrypt an armored mnemonic ciphertext.

    Raises:
        ValueError: If none of the identities can decrypt it
    """
    try:
        plaintext = pyrage.decrypt(ciphertext.encode("ascii"), list(identities))
    except pyrage.DecryptError as e:
        raise ValueError(f"Unable to decrypt mnemonic: {e}") from None
    return plaintext.decode()
