"""In-process issue tracker.

Stands in for a real ticket system when none is wired in: tickets and their
comments are kept in memory for the life of the process. The HTTP service
and the CLI both use it, and the rendered comments are what they show.
"""

import itertools
import logging
from dataclasses import dataclass, field

from core.workflow import TicketRef
from schemas.issue import IssueInput

logger = logging.getLogger(__name__)


@dataclass
class Ticket:
    key: str
    url: str
    summary: str
    description: str
    attachments: list[str] = field(default_factory=list)
    comments: list[str] = field(default_factory=list)


class InMemoryTracker:
    """IssueTracker that keeps tickets in a dict.

    Attributes:
        project_key: Prefix for generated keys (e.g. "INV-1").
        tickets: key → Ticket.
    """

    def __init__(self, project_key: str = "INV") -> None:
        self.project_key = project_key
        self.tickets: dict[str, Ticket] = {}
        self._counter = itertools.count(1)

    async def create_ticket(self, issue: IssueInput, summary: str, description: str, workflow_id: str) -> TicketRef:
        key = f"{self.project_key}-{next(self._counter)}"
        ticket = Ticket(
            key=key,
            url=f"memory://tickets/{key}",
            summary=summary,
            description=description,
            attachments=[a.name for a in issue.attachments],
        )
        self.tickets[key] = ticket
        logger.info("[%s] Created ticket %s: %s", workflow_id, key, summary)
        return TicketRef(key=ticket.key, url=ticket.url)

    async def post_comment(self, key: str, markdown: str, workflow_id: str) -> None:
        """Append a comment to a ticket.

        Raises:
            KeyError: If the ticket does not exist.
        """
        if key not in self.tickets:
            raise KeyError(f"Unknown ticket: {key}")
        self.tickets[key].comments.append(markdown)
        logger.info("[%s] Posted comment to %s (%d chars).", workflow_id, key, len(markdown))
