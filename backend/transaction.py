import logging
from contextlib import contextmanager

logger = logging.getLogger(__name__)


@contextmanager
def atomic(session):
    """Run a unit of work on ``session``.

    Commits when the block finishes and rolls back every write made in the
    block when anything raises, then re-raises.
    """
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        logger.warning("Transaction rolled back")
        raise
