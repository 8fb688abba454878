"""
Project Code Generator

Generates project codes of the form:
    {CATEGORY}-{YEAR}-{VERTICAL_CODE}-{SEQ}      e.g. GAP-2025-SHMLE-001

SEQ is the next unused 3-digit number for the (category, year, vertical)
prefix. It is derived from both the highest existing project code with that
prefix and the prefix's ProjectCodeSequence high-water mark, so a number
freed by deleting a project is never issued again.

Must be called inside the caller's transaction. Allocation starts with a
write (an INSERT ... ON CONFLICT DO NOTHING of the sequence row) before
anything is read:
  - PostgreSQL: the row is then locked with SELECT ... FOR UPDATE until the
    transaction ends; first-use callers wait on the unique key instead of
    failing.
  - SQLite: FOR UPDATE is ignored, but the leading write takes the database
    RESERVED lock, so a concurrent allocation waits (busy timeout) until
    this transaction commits and then reads the committed high-water mark.
"""

import logging
from datetime import date

from sqlalchemy import select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError

from research_portal.core.exceptions import ConflictError
from research_portal.models import db
from research_portal.models.project import Project, ProjectCodeSequence

logger = logging.getLogger(__name__)

DEFAULT_VERTICAL_CODE = "GEN"

# dialect name → INSERT construct supporting on_conflict_do_nothing
_UPSERT_INSERTS = {
    "sqlite": sqlite.insert,
    "postgresql": postgresql.insert,
}


def code_prefix(category: str, year: int, vertical_code: str | None) -> str:
    """``{CATEGORY}-{YEAR}-{VERTICAL}`` with the GEN fallback for missing verticals."""
    return f"{category.upper()}-{year}-{(vertical_code or DEFAULT_VERTICAL_CODE).upper()}"


def _parse_sequence(code: str) -> int:
    try:
        return int(code.rsplit("-", 1)[-1])
    except (ValueError, IndexError):
        logger.warning("Unparseable project code %r — ignoring its sequence", code)
        return 0


def last_issued_code(prefix: str) -> str | None:
    """Lexicographically greatest existing project code under *prefix*."""
    return db.session.execute(
        select(Project.code)
        .where(Project.code.startswith(f"{prefix}-", autoescape=True))
        .order_by(Project.code.desc())
        .limit(1)
    ).scalar_one_or_none()


def _ensure_sequence_row(prefix: str) -> None:
    insert = _UPSERT_INSERTS.get(db.engine.dialect.name)
    if insert is not None:
        db.session.execute(
            insert(ProjectCodeSequence)
            .values(prefix=prefix, last_seq=0)
            .on_conflict_do_nothing(index_elements=["prefix"])
        )
        return

    if db.session.get(ProjectCodeSequence, prefix) is not None:
        return
    db.session.add(ProjectCodeSequence(prefix=prefix, last_seq=0))
    try:
        db.session.flush()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError(
            "Project",
            f"Project code prefix {prefix} is being allocated concurrently; retry the conversion",
        )


def _lock_sequence(prefix: str) -> ProjectCodeSequence:
    _ensure_sequence_row(prefix)
    return db.session.execute(
        select(ProjectCodeSequence)
        .where(ProjectCodeSequence.prefix == prefix)
        .with_for_update()
        .execution_options(populate_existing=True)
    ).scalar_one()


def allocate_project_code(category: str, vertical_code: str | None, *, year: int | None = None) -> str:
    """Reserve and return the next project code for the prefix.

    Args:
        category: Proposal category code (e.g. "GAP").
        vertical_code: Thrust-area code; "GEN" is used when missing.
        year: Defaults to the current calendar year.

    Returns:
        The allocated code. The sequence bump is flushed but not committed.
    """
    year = year or date.today().year
    prefix = code_prefix(category, year, vertical_code)

    seq_row = _lock_sequence(prefix)

    last_code = last_issued_code(prefix)
    last_from_codes = _parse_sequence(last_code) if last_code else 0
    seq = max(seq_row.last_seq or 0, last_from_codes) + 1

    seq_row.last_seq = seq
    db.session.flush()

    code = f"{prefix}-{seq:03d}"
    logger.debug("Allocated project code %s (prefix high-water=%d, last code=%s)",
                 code, seq, last_code)
    return code
