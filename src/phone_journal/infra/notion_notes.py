"""
Notion transcript publisher.

Creates one page per transcript in the configured database:
- "Date" property: when the note was created
- "Title" property: first 32 characters of the transcript (+ "..." if cut)
- one paragraph block holding the full transcript
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from notion_client import AsyncClient

from src.phone_journal.config.settings import Settings
from src.phone_journal.contracts.errors import PublishError
from src.phone_journal.logging.logger import setup_logger

logger = setup_logger(__name__)

# Maximum length of the title, in code points
MAX_TITLE_LEN = 32
TITLE_ELLIPSIS = "..."

# Notion rejects rich text items longer than this
MAX_RICH_TEXT_LEN = 2000


def transcript_title(transcript: str) -> str:
    if len(transcript) <= MAX_TITLE_LEN:
        return transcript
    return transcript[:MAX_TITLE_LEN] + TITLE_ELLIPSIS


def _rich_text(content: str) -> List[Dict[str, Any]]:
    return [
        {"type": "text", "text": {"content": content[i : i + MAX_RICH_TEXT_LEN]}}
        for i in range(0, len(content), MAX_RICH_TEXT_LEN)
    ]


def build_page_payload(
    transcript: str,
    *,
    database_id: str,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """
    Build the pages.create payload (parent + properties + children).
    """
    created_at = now or datetime.now(timezone.utc)
    return {
        "parent": {"database_id": database_id},
        "properties": {
            "Date": {"date": {"start": created_at.isoformat()}},
            "Title": {"title": _rich_text(transcript_title(transcript))},
        },
        "children": [
            {
                "object": "block",
                "type": "paragraph",
                "paragraph": {"rich_text": _rich_text(transcript)},
            }
        ],
    }


class NotionTranscriptPublisher:
    def __init__(
        self,
        *,
        auth_token: str,
        database_id: str,
        client: Optional[Any] = None,
    ) -> None:
        if not auth_token:
            raise ValueError("NotionTranscriptPublisher: notion_auth_token is missing")
        if not database_id:
            raise ValueError("NotionTranscriptPublisher: notion_database_id is missing")

        self.database_id = database_id
        self._auth_token = auth_token
        # An injected client belongs to the caller and is left open
        self._client = client

    @classmethod
    def from_settings(cls, settings: Settings) -> "NotionTranscriptPublisher":
        return cls(
            auth_token=settings.notion_auth_token.get_secret_value(),
            database_id=settings.notion_database_id,
        )

    async def publish(self, transcript: str) -> str:
        """
        Create the note. Returns the Notion page id.

        Any client error is raised as PublishError; nothing is retried.
        """
        payload = build_page_payload(transcript, database_id=self.database_id)

        client = self._client if self._client is not None else AsyncClient(auth=self._auth_token)
        try:
            page = await client.pages.create(**payload)
        except Exception as exc:
            raise PublishError(f"Failed to create Notion page: {exc}", exc) from exc
        finally:
            if self._client is None:
                await client.aclose()

        page_id = str(page.get("id", "")) if isinstance(page, dict) else ""
        logger.info(
            "Transcript published to Notion | page_id=%s | title=%s",
            page_id,
            transcript_title(transcript),
        )
        return page_id
