from __future__ import annotations

from enum import Enum

from ragjobs.db.models import ProcessType


class Collection(str, Enum):
    PROCESSES = "processes"
    ARTICLE_INTELLIGENCE = "article_intelligence"
    STRUCTURED_SUMMARY = "structured_summary"
    REVIEW_ARTICLE = "review_article"


RESULT_COLLECTIONS: dict[ProcessType, Collection] = {
    ProcessType.ARTICLE_INTELLIGENCE: Collection.ARTICLE_INTELLIGENCE,
    ProcessType.STRUCTURED_SUMMARY: Collection.STRUCTURED_SUMMARY,
    ProcessType.REVIEW_ARTICLE: Collection.REVIEW_ARTICLE,
    # Batch results are fanned out into structured summaries.
    ProcessType.BATCH_SUMMARY: Collection.STRUCTURED_SUMMARY,
}
