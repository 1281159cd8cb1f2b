"""
age identity file handling.

The identity protects the mnemonic phrase at rest: the phrase is encrypted
to the identity's public recipient and can only be recovered with the
secret key kept in the identity file.
"""

import sys
from datetime import datetime
from pathlib import Path

import pyrage
from loguru import logger
from pyrage import ssh, x25519

from zwallet.errors import IdentityFileInvalid

# Anything pyrage can encrypt to
Recipient = x25519.Recipient | ssh.Recipient


def read_identities(path: Path) -> list[x25519.Identity]:
    """
    Parse an age identity file.

    Blank lines and '#' comments are skipped; every other line must be an
    x25519 secret key.

    Raises:
        IdentityFileInvalid: If a line does not parse or no identity is found
    """
    identities = []
    for lineno, line in enumerate(path.read_text().splitlines(), start=1):
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        try:
            identities.append(x25519.Identity.from_str(line))
        except pyrage.IdentityError:
            raise IdentityFileInvalid(path, f"unparseable identity on line {lineno}") from None

    if not identities:
        raise IdentityFileInvalid(path)
    return identities


def _write_new_identity(path: Path) -> tuple[x25519.Identity, x25519.Recipient]:
    identity = x25519.Identity.generate()
    recipient = identity.to_public()
    created = datetime.now().astimezone().isoformat(timespec="seconds")

    # "x" fails if another process created the file first
    with open(path, "x") as f:
        f.write(f"# created: {created}\n")
        f.write(f"# public key: {recipient}\n")
        f.write(f"{identity}\n")
    return identity, recipient


def obtain_identity(
    path: str | Path,
) -> tuple[list[x25519.Identity], list[Recipient]]:
    """
    Load the identity file at `path`, or create it if it does not exist.

    Returns:
        Tuple of (identities, recipients) where recipients are the public
        halves used to encrypt the mnemonic.
    """
    path = Path(path)
    if path.exists():
        identities = read_identities(path)
        logger.debug(f"Loaded {len(identities)} identity(ies) from {path}")
        return identities, [identity.to_public() for identity in identities]

    print(
        "Generating a new age identity to encrypt the mnemonic phrase",
        file=sys.stderr,
    )
    identity, recipient = _write_new_identity(path)
    logger.info(f"Wrote new age identity to {path} (public key {recipient})")
    return [identity], [recipient]


def parse_recipient(value: str) -> Recipient:
    """
    Parse an extra encryption target for the mnemonic.

    Accepts an age x25519 public key (age1...) or an SSH public key line.
    """
    value = value.strip()
    try:
        if value.startswith("age1"):
            return x25519.Recipient.from_str(value)
        if value.startswith("ssh-"):
            return ssh.Recipient.from_str(value)
    except pyrage.RecipientError as e:
        raise ValueError(f"invalid recipient '{value}': {e}") from None
    raise ValueError(f"unsupported recipient '{value}'")
