"""
Create the site corpus schema.

This script:
1. Enables the pgvector extension
2. Creates entities, documents, crawl_attempts, url_corrections,
   keyword_scores and embedding_chunks (existing tables are left alone)
3. Creates or replaces the search_documents() similarity function

Run with:
    python -m migrations.create_corpus_tables
"""
from sqlalchemy import create_engine, inspect, text
from sqlalchemy.exc import SQLAlchemyError

from sitecorpus.config import get_settings
from sitecorpus.models import Base, EMBEDDING_DIMENSION

settings = get_settings()

SEARCH_FUNCTION_SQL = f"""
CREATE OR REPLACE FUNCTION search_documents(
    query_embedding vector({EMBEDDING_DIMENSION}),
    limit_n int DEFAULT 10
)
RETURNS TABLE (
    document_id int,
    entity_id varchar,
    document_title text,
    chunk_text text,
    similarity float
)
LANGUAGE sql STABLE
AS $$
    SELECT
        d.id,
        d.entity_id,
        d.title,
        c.chunk_text,
        1 - (c.embedding <=> query_embedding) AS similarity
    FROM embedding_chunks c
    JOIN documents d ON d.id = c.document_id
    ORDER BY c.embedding <=> query_embedding
    LIMIT limit_n
$$;
"""


def create_corpus_tables():
    """Create every corpus table plus the vector extension and search function."""
    engine = create_engine(settings.database_url_sync, echo=True)

    with engine.begin() as conn:
        print("Enabling extension: vector")
        conn.execute(text("CREATE EXTENSION IF NOT EXISTS vector"))

    existing_tables = set(inspect(engine).get_table_names())
    with engine.begin() as conn:
        for table in Base.metadata.sorted_tables:
            if table.name in existing_tables:
                print(f"Table already exists: {table.name}")
                continue
            print(f"Creating table: {table.name}")
            table.create(bind=conn)

    with engine.begin() as conn:
        print("Creating function: search_documents")
        conn.execute(text(SEARCH_FUNCTION_SQL))

    print("Migration complete!")


if __name__ == "__main__":
    try:
        create_corpus_tables()
    except SQLAlchemyError as exc:
        print(f"Migration failed: {exc}")
        raise
