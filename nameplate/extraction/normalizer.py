import re

_TYPOGRAPHIC = str.maketrans({
    "\N{NO-BREAK SPACE}": " ",
    "\N{LEFT DOUBLE QUOTATION MARK}": '"',
    "\N{RIGHT DOUBLE QUOTATION MARK}": '"',
    "\N{LEFT SINGLE QUOTATION MARK}": "'",
    "\N{RIGHT SINGLE QUOTATION MARK}": "'",
    "\N{HYPHEN}": "-",
    "\N{NON-BREAKING HYPHEN}": "-",
    "\N{FIGURE DASH}": "-",
    "\N{EN DASH}": "-",
    "\N{EM DASH}": "-",
    "|": " ",
})

_TRAILING_SPACE = re.compile(r"[ \t]+\n")
_BLANK_RUNS = re.compile(r"\n{3,}")

# SolaX model prefix "X1-" is routinely read as "XL-".
_XL_PREFIX = re.compile(r"\bXL-", re.IGNORECASE)
# A leading "HL" on serial-like tokens is routinely read as "HU".
_HU_SERIAL = re.compile(r"\bHU(?=[0-9A-Z]{6,}\b)(?=[A-Z]*\d)", re.IGNORECASE)


def normalize(text: str, repair: bool = False) -> str:
    """
    Canonicalizes recognized text. Idempotent.

    Args:
        text: Raw text from the recognizer.
        repair: Also fix the two OCR confusions known for this hardware
            (``XL-`` model prefixes and ``HU`` serial prefixes).
    """
    if not text:
        return ""
    out = str(text).replace("\r\n", "\n").replace("\r", "\n")
    out = out.translate(_TYPOGRAPHIC)
    out = _TRAILING_SPACE.sub("\n", out)
    out = _BLANK_RUNS.sub("\n\n", out)
    out = out.strip()
    if repair:
        out = repair_domain_confusions(out)
    return out


def repair_domain_confusions(text: str) -> str:
    text = _XL_PREFIX.sub("X1-", text)
    return _HU_SERIAL.sub("HL", text)
