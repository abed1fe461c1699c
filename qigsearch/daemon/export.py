"""CSV export of retained candidates."""

import time
from typing import Iterable

from .models import Candidate


CSV_HEADER = "Score,Phrase,Address,Context Score,Elegance Score,Typing Score,Tested At"


def candidates_to_csv(candidates: Iterable[Candidate]) -> str:
    """One row per candidate; the phrase column is always double-quoted."""
    lines = [CSV_HEADER]
    for c in candidates:
        phrase = c.phrase.replace('"', '""')
        lines.append(",".join([
            _number(c.score),
            f'"{phrase}"',
            c.address,
            _number(c.qig_score.context_score),
            _number(c.qig_score.elegance_score),
            _number(c.qig_score.typing_score),
            c.tested_at.isoformat() + 'Z',
        ]))
    return "\n".join(lines) + "\n"


def export_filename() -> str:
    return f"qig-candidates-{int(time.time() * 1000)}.csv"


def _number(value: float) -> str:
    # Integers render without a trailing .0
    if float(value).is_integer():
        return str(int(value))
    return repr(float(value))
