"""Import translations from a JSON file through the bulk upsert.

Usage:
    python -m sitecms.scripts.import_translations FILE [--batch-size N] [--retries N]

FILE holds a JSON array of objects:
    {"content": "...", "content_element": "<uuid>", "language": "<uuid>",
     "is_active": true, "metadata": {}, "id": "<uuid, optional>"}

A transaction conflict (another writer created the same pair meanwhile)
rolls the whole import back; the import is then retried.
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path

from sitecms.core.database import close_db, get_db_context
from sitecms.core.exceptions import AppException, TransactionConflictError
from sitecms.core.logging import get_logger, setup_logging
from sitecms.core.redis import close_redis, get_cache_client, init_redis
from sitecms.modules.content.translation_service import TranslationService

logger = get_logger(__name__)


def load_items(path: Path) -> list[dict]:
    with path.open(encoding="utf-8") as fh:
        items = json.load(fh)
    if not isinstance(items, list):
        raise ValueError(f"{path} must contain a JSON array")
    return items


async def import_translations(items: list[dict], batch_size: int | None, retries: int) -> int:
    try:
        await init_redis()
    except Exception as e:
        print(f"⚠️  Redis unavailable, cache will not be invalidated: {e}")

    try:
        for attempt in range(1, retries + 2):
            try:
                async with get_db_context() as db:
                    service = TranslationService(
                        db, cache=get_cache_client(), batch_size=batch_size
                    )
                    result = await service.bulk_upsert_translations(items)
                break
            except TransactionConflictError:
                if attempt > retries:
                    raise
                logger.warning("import_retrying", attempt=attempt)
                print(f"  🔄 Conflict on attempt {attempt}, retrying...")
    finally:
        await close_redis()
        await close_db()

    print(f"✅ {result.message}")
    for error in result.errors:
        print(f"  ❌ Item {error.index}: {error.reason}")
    return 0 if not result.errors else 2


async def main() -> int:
    parser = argparse.ArgumentParser(description="Bulk import content translations")
    parser.add_argument("file", type=Path, help="JSON file with translation items")
    parser.add_argument("--batch-size", type=int, default=None, help="Items per chunk")
    parser.add_argument(
        "--retries",
        type=int,
        default=2,
        help="Retries after a transaction conflict",
    )
    args = parser.parse_args()

    setup_logging(log_format="console")

    try:
        items = load_items(args.file)
    except (OSError, ValueError) as e:
        print(f"❌ Error: {e}", file=sys.stderr)
        return 1

    print(f"📥 Importing {len(items)} translations from {args.file}")
    try:
        return await import_translations(items, args.batch_size, args.retries)
    except AppException as e:
        print(f"❌ Error: {e}", file=sys.stderr)
        for error in getattr(e, "errors", []):
            print(f"  - {error}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
