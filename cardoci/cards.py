"""
Card catalog for card-oci.

Maps card shorthands ("2c", "ad", "10h") to the image filenames of the
PNG card set and reads deck definition files.
"""

import json
import logging
from types import MappingProxyType

from .errors import DeckFileError, InvalidCardCode

logger = logging.getLogger(__name__)

SUITS = MappingProxyType({
    "c": "clubs",
    "d": "diamonds",
    "s": "spades",
    "h": "hearts",
})

RANKS = MappingProxyType({
    "2": "2", "3": "3", "4": "4", "5": "5",
    "6": "6", "7": "7", "8": "8", "9": "9", "10": "10",
    "j": "jack", "q": "queen", "k": "king", "a": "ace",
})

_SUIT_CODES = {name: code for code, name in SUITS.items()}
_RANK_CODES = {name: code for code, name in RANKS.items()}


def normalize(code: str) -> str:
    return code.strip().lower()


def resolve(code: str) -> str:
    """
    Convert a card shorthand to its image filename.

    The last character selects the suit, everything before it the rank.
    Matching is case-insensitive and ignores surrounding whitespace.

    Args:
        code: Card shorthand (e.g., "2c", "AD", "10h")

    Returns:
        Image filename (e.g., "2_of_clubs.png")

    Raises:
        InvalidCardCode: If the code is too short or rank/suit are unknown

    Examples:
        >>> resolve("2c")
        '2_of_clubs.png'
        >>> resolve("AD")
        'ace_of_diamonds.png'
    """
    s = normalize(code)
    if len(s) < 2:
        raise InvalidCardCode(f"invalid card shorthand: {code!r}")

    suit = SUITS.get(s[-1])
    if suit is None:
        raise InvalidCardCode(f"unknown suit {s[-1]!r} in {code!r}")

    rank = RANKS.get(s[:-1])
    if rank is None:
        raise InvalidCardCode(f"unknown rank {s[:-1]!r} in {code!r}")

    return f"{rank}_of_{suit}.png"


def filename_to_code(filename: str) -> str:
    """
    Inverse of resolve(): "ace_of_diamonds.png" -> "ad".

    Raises:
        InvalidCardCode: If the filename does not follow the naming convention
    """
    stem = filename[:-len(".png")] if filename.endswith(".png") else None
    rank, sep, suit = (stem or "").partition("_of_")
    if not sep or rank not in _RANK_CODES or suit not in _SUIT_CODES:
        raise InvalidCardCode(f"not a card image filename: {filename!r}")
    return _RANK_CODES[rank] + _SUIT_CODES[suit]


def parse_deck(text: str) -> list[str]:
    """
    Decode a deck definition into an ordered list of card shorthands.

    Two formats are accepted:
        - JSON array of strings: ["2c", "ad"]
        - One shorthand per line, blank lines and "#" comments skipped

    Raises:
        DeckFileError: If a JSON deck is malformed or not a list of strings
    """
    stripped = text.strip()
    if stripped.startswith("["):
        try:
            cards = json.loads(stripped)
        except json.JSONDecodeError as e:
            raise DeckFileError(f"malformed JSON deck: {e}") from e
        if not all(isinstance(c, str) for c in cards):
            raise DeckFileError("JSON deck must be an array of strings")
        return [c.strip() for c in cards]

    cards = []
    for line in text.splitlines():
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        cards.append(line)
    return cards


def read_deck(path: str) -> list[str]:
    """
    Read card shorthands from a deck definition file.

    Raises:
        DeckFileError: If the file cannot be read or is malformed
    """
    try:
        with open(path, encoding="utf-8") as f:
            text = f.read()
    except OSError as e:
        raise DeckFileError(f"reading deck {path}: {e}") from e

    cards = parse_deck(text)
    logger.debug(f"Read {len(cards)} cards from {path}")
    return cards
