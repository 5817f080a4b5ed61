"""Sequential document numbers: {PREFIX}-{YEAR}-{SEQ:03d}, restarting each year."""
import re
from datetime import date
from typing import Optional

from sqlalchemy.orm import Session


def next_document_number(db: Session, column, prefix: str, year: Optional[int] = None) -> str:
    """Max existing sequence for prefix/year plus one. Gaps are never refilled."""
    year = year or date.today().year
    stem = f"{prefix}-{year}-"
    pattern = re.compile(rf"^{re.escape(stem)}(\d+)$")

    highest = 0
    for (number,) in db.query(column).filter(column.like(f"{stem}%")).all():
        match = pattern.match(number or "")
        if match:
            highest = max(highest, int(match.group(1)))
    return f"{stem}{highest + 1:03d}"
