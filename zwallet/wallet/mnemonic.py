"""
BIP-39 mnemonic phrases.

Generation, validation and seed derivation are delegated to the `mnemonic`
package; seeds are returned in a SecretBuffer the caller must wipe.
"""

import getpass
from typing import Callable

from loguru import logger
from mnemonic import Mnemonic

from zwallet.errors import InvalidMnemonic
from zwallet.wallet.secret import SecretBuffer

# =============================================================================
# CONFIGURATION
# =============================================================================

# 256 bits of entropy -> 24 words
MNEMONIC_STRENGTH = 256
WORD_COUNTS = (12, 15, 18, 21, 24)

PROMPT = "Enter mnemonic (or just press Enter to generate a new one):"

_english = Mnemonic("english")


# =============================================================================
# CODEC
# =============================================================================


def generate_mnemonic() -> str:
    """Generate a fresh 24-word English mnemonic."""
    return _english.generate(strength=MNEMONIC_STRENGTH)


def parse_mnemonic(text: str) -> str:
    """
    Normalize and validate a user-supplied phrase.

    Raises:
        InvalidMnemonic: On unknown words, bad word count or bad checksum
    """
    words = text.strip().lower().split()
    if len(words) not in WORD_COUNTS:
        raise InvalidMnemonic(f"expected 12-24 words, got {len(words)}")

    unknown = [w for w in words if w not in _english.wordlist]
    if unknown:
        raise InvalidMnemonic(f"{len(unknown)} word(s) not in the English wordlist")

    phrase = " ".join(words)
    if not _english.check(phrase):
        raise InvalidMnemonic("checksum mismatch")
    return phrase


def obtain_mnemonic(
    prompt: Callable[[str], str] = getpass.getpass,
) -> tuple[str, bool]:
    """
    Prompt (without echo) for a mnemonic.

    Returns:
        Tuple of (phrase, recovery_flag). An empty answer generates a new
        phrase and returns recovery_flag=False; an imported phrase returns
        True so the wallet scans its history.
    """
    answer = prompt(PROMPT)
    if not answer.strip():
        logger.info("Generating a new 24-word mnemonic")
        return generate_mnemonic(), False
    return parse_mnemonic(answer), True


def derive_seed(phrase: str) -> SecretBuffer:
    """Derive the 64-byte BIP-39 seed using the empty passphrase."""
    seed = Mnemonic.to_seed(phrase, passphrase="")
    return SecretBuffer(seed)
