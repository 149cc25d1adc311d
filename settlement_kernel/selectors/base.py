"""
Module: settlement_kernel.selectors.base
Responsibility: Abstract base class for read-only query selectors.
Architecture position: Kernel > Selectors.  May import from db/ and models/.
    MUST NOT import from services/ or outer layers.

Invariants enforced:
    - Read-only access: selectors MUST NOT call session.add(),
      session.delete(), session.commit() or session.flush().
    - Selectors return DTOs or computed values, not ORM instances, except
      where a service needs the instance it is about to mutate (those
      helpers live on the service, not here).
"""

from abc import ABC

from sqlalchemy.orm import Session


class BaseSelector(ABC):
    """Read-only access to settlement records through the caller's session."""

    def __init__(self, session: Session):
        self.session = session
