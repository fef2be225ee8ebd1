"""Supabase client factory and bulk question upserts."""
import logging
from functools import lru_cache

from supabase import create_client, Client

from typerating import settings

logger = logging.getLogger(__name__)


def _env_client() -> Client:
    url = settings.SUPABASE_URL
    key = settings.SUPABASE_KEY
    if not url or not key:
        raise ValueError("SUPABASE_URL and SUPABASE_KEY must be set")
    return create_client(url, key)


@lru_cache(maxsize=1)
def get_supabase() -> Client:
    return _env_client()


def get_supabase_uncached() -> Client:
    """For CLI/scripts that want a fresh client."""
    return _env_client()


def _dedupe_by_id(rows: list[dict]) -> list[dict]:
    """Last row wins per id; Postgres refuses ON CONFLICT on a key twice in one statement."""
    by_id = {r["id"]: r for r in rows}
    return list(by_id.values())


def upsert_questions_bulk(client: Client, rows: list[dict], chunk_size: int = 200) -> int:
    """
    Upsert question rows into the questions table in chunks.

    Args:
        client: Supabase client
        rows: question rows, each with an 'id'
        chunk_size: rows per upsert request

    Returns:
        Number of distinct rows upserted
    """
    unique = _dedupe_by_id(rows)
    if len(unique) < len(rows):
        logger.info(f"Deduped questions by id: {len(rows)} -> {len(unique)}")
    chunk_size = max(1, chunk_size)
    n_chunks = (len(unique) + chunk_size - 1) // chunk_size
    for chunk_num, start in enumerate(range(0, len(unique), chunk_size), 1):
        chunk = unique[start : start + chunk_size]
        logger.info(f"Upserting chunk {chunk_num}/{n_chunks} ({len(chunk)} rows)")
        client.table(settings.QUESTIONS_TABLE).upsert(chunk, on_conflict="id").execute()
    return len(unique)


def delete_questions_by_source(client: Client, source: str):
    """Delete all questions with the given source (e.g. 'bundled')."""
    client.table(settings.QUESTIONS_TABLE).delete().eq("source", source).execute()
