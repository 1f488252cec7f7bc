"""Index reference documents into the vector store.

Reads a JSON Lines file of ``{"id", "title", "content", "updated_at"}``
records exported from the document library and (re-)indexes them. Point ids
are deterministic, so running it again updates documents in place.

Usage:
    python -m rfp_assist.sync_index documents.jsonl
"""

import json
import logging
import sys
from typing import List

from dotenv import load_dotenv

from rfp_assist.config import Settings
from rfp_assist.models import SourceDocument
from rfp_assist.rag.pipeline import IngestionPipeline

logger = logging.getLogger(__name__)


def load_documents(path: str) -> List[SourceDocument]:
    docs = []
    with open(path, "r", encoding="utf-8") as f:
        for line in f:
            line = line.strip()
            if not line:
                continue
            record = json.loads(line)
            record["id"] = str(record["id"])
            docs.append(SourceDocument.model_validate(record))
    return docs


def main(argv: List[str] | None = None) -> int:
    argv = sys.argv[1:] if argv is None else argv
    if len(argv) != 1:
        print("usage: python -m rfp_assist.sync_index <documents.jsonl>", file=sys.stderr)
        return 2

    logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")
    load_dotenv()
    settings = Settings.from_env()

    docs = load_documents(argv[0])
    logger.info(f"Syncing {len(docs)} documents to '{settings.collection_name}'")
    report = IngestionPipeline(settings).index_documents(docs)
    print(
        f"Sync complete: {report.documents_indexed} documents, "
        f"{report.points_upserted} points, {report.documents_skipped} skipped"
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
