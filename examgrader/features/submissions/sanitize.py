"""Source text normalisation applied before code reaches the judge.

Pasted code often carries typographic characters that compile differently (or
not at all). Normalisation never fails.
"""

from __future__ import annotations

import re

from examgrader.features.problems.schemas import DriverTemplate

_ZERO_WIDTH = re.compile("[\u200b-\u200d\ufeff]")
_DOUBLE_QUOTES = re.compile("[\u201c\u201d]")
_SINGLE_QUOTES = re.compile("[\u2018\u2019]")


def sanitize_source(code: str) -> str:
    code = code.replace("\u00a0", " ")
    code = _ZERO_WIDTH.sub("", code)
    code = _DOUBLE_QUOTES.sub('"', code)
    code = _SINGLE_QUOTES.sub("'", code)
    return code.replace("\r\n", "\n").replace("\r", "\n")


def assemble_code(template: DriverTemplate, source_code: str) -> str:
    """Wrap sanitized student code in the problem's driver header and footer."""
    return f"{template.header}\n{sanitize_source(source_code)}\n{template.footer}"
