"""Rebuild the listing Embedding Index from the command line.

    python run_reindex.py            # missing or stale embeddings only
    python run_reindex.py --all      # every posting
    python run_reindex.py --limit 50
"""
import argparse

from dotenv import load_dotenv

load_dotenv()


def main(argv=None):
    parser = argparse.ArgumentParser(description="Embed postings into the Embedding Index")
    parser.add_argument("--all", action="store_true", help="re-embed every posting, not just stale ones")
    parser.add_argument("--limit", type=int, default=None, help="maximum postings to process")
    args = parser.parse_args(argv)

    from laxbay.db import SessionLocal, init_db
    from laxbay.embeddings import EmbeddingClient, reindex

    init_db()
    db = SessionLocal()
    try:
        result = reindex(db, EmbeddingClient(), stale_only=not args.all, limit=args.limit)
    finally:
        db.close()
    print(f"Indexed {result['indexed']} posting(s), {result['failed']} failed.")
    return 1 if result["failed"] and not result["indexed"] else 0


if __name__ == "__main__":
    raise SystemExit(main())
