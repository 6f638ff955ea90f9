import re
import unicodedata
from functools import lru_cache

# Separators used interchangeably by the route API, the location API and
# the government stop list ("M26/4", "M26_4", "M26-4")
CODE_SEPARATORS = re.compile(r"[/_\-]")
CANONICAL_SEPARATOR = "/"


@lru_cache(maxsize=4096)
def normalize_station_code(code: str) -> str:
    """Normalize a station code for comparison.

    - Strips surrounding whitespace
    - Uppercases
    - Maps every "/", "_" and "-" to "/"

    Idempotent: normalizing a normalized code returns it unchanged.

    Example: "m26_4" -> "M26/4"
    Example: "T304-1" -> "T304/1"
    """
    return CODE_SEPARATORS.sub(CANONICAL_SEPARATOR, code.strip().upper())


@lru_cache(maxsize=4096)
def base_station_code(code: str) -> str:
    """Station code without its directional suffix.

    Example: "T304/1" -> "T304"
    Example: "M228" -> "M228"
    """
    return normalize_station_code(code).split(CANONICAL_SEPARATOR, 1)[0]


@lru_cache(maxsize=4096)
def remove_accents(text: str) -> str:
    """Remove accents from text.

    Example: "Praça Ferreira Amaral" -> "Praca Ferreira Amaral"
    """
    # Normalize to NFD (decomposes accented characters)
    normalized = unicodedata.normalize("NFD", text)
    # Remove combining diacritical marks
    return "".join(c for c in normalized if unicodedata.category(c) != "Mn")


@lru_cache(maxsize=4096)
def normalize_name(text: str) -> str:
    """Normalize a stop name for fuzzy matching.

    - Converts to lowercase
    - Removes accents
    - Normalizes whitespace

    Chinese characters pass through unchanged.

    Example: "  Praça  Ferreira Amaral " -> "praca ferreira amaral"
    """
    result = remove_accents(text.lower().strip())
    return " ".join(result.split())
