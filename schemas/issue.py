"""Issue input schema.

Defines the payload the producing collaborator (a chat-platform handler, the
HTTP API, or the CLI) hands to the workflow. This is the only external input
to an investigation. Everything downstream (relevant files, RCA, test cases)
is derived from it.
"""

from pydantic import BaseModel, Field


class Attachment(BaseModel):
    """A file the reporter attached to the issue.

    The investigation never reads attachments. They are forwarded to the
    issue tracker so the ticket carries the same evidence as the report.

    Attributes:
        name: Display file name (e.g. "stacktrace.txt").
        url: Where the tracker integration can download the file from.
        mimetype: Optional MIME type reported by the producer.
    """

    name: str
    url: str
    mimetype: str | None = None


class IssueInput(BaseModel):
    """A reported issue, ready to be investigated.

    Attributes:
        description: Free-text issue description as written by the reporter.
            Keyword extraction for relevant-file discovery runs on this text,
            and it is quoted verbatim in both agent prompts.
        repository: Repository identifier (e.g. "acme/backend"). Used for
            prompts and tickets only — the code itself is read from the
            configured sandbox root. None means "use the configured default".
        attachments: Optional files attached to the report.
    """

    description: str = Field(min_length=1)
    repository: str | None = None
    attachments: list[Attachment] = Field(default_factory=list)
