"""Terminal formatting helpers."""

import textwrap

from zwallet.network import COIN

TEXT_WIDTH = 80

DETAIL_INDENT = "    "


def format_zec(value: int) -> str:
    """Render a zatoshi amount as whole ZEC with 8 decimal places."""
    sign = "-" if value < 0 else ""
    zec, frac = divmod(abs(value), COIN)
    return f"{sign + str(zec):>3}.{frac:08} ZEC"


def fill_detail(text: str) -> str:
    """Wrap an indented detail line."""
    return textwrap.fill(
        text,
        width=TEXT_WIDTH,
        initial_indent=DETAIL_INDENT,
        subsequent_indent=DETAIL_INDENT,
    )


def fill_unbroken(text: str) -> str:
    """Wrap text without breaking at its spaces (long tokens still wrap)."""
    return textwrap.fill(text.replace(" ", "\u00a0"), width=TEXT_WIDTH)
