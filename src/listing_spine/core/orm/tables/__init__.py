"""Mapped tables for the run journal, drafts and entities."""

from listing_spine.core.orm.tables.listing import (
    DeveloperTable,
    DraftTable,
    PgHostelTable,
    ProjectTable,
    PropertyTable,
)
from listing_spine.core.orm.tables.workflow import (
    WorkflowJournalTable,
    WorkflowRunTable,
    WorkflowSignalTable,
)

__all__ = [
    "DraftTable",
    "PropertyTable",
    "PgHostelTable",
    "ProjectTable",
    "DeveloperTable",
    "WorkflowRunTable",
    "WorkflowJournalTable",
    "WorkflowSignalTable",
]
