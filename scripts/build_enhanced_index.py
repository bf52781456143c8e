#!/usr/bin/env python3
"""Build the enhanced search index from the standard one.

Reads a standard corpus JSON (an array of documents), embeds every chunk
with a sentence-transformers model in batches, and writes the enhanced
corpus JSON consumed by the semantic layer.
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import List

import structlog

from docsearch.common.config import SearchConfig
from docsearch.common.logging import configure_logging
from docsearch.enhancement.loader import EmbeddingModel, SentenceTransformerLoader
from docsearch.exceptions import CorpusFormatError
from docsearch.models import SearchDocument, dump_documents, parse_documents

logger = structlog.get_logger("build_enhanced_index")


def enhance_documents(
    documents: List[SearchDocument],
    model: EmbeddingModel,
    batch_size: int = 32,
) -> int:
    """Attach embeddings and chunk metadata in place; returns chunks embedded."""
    chunks = [chunk for document in documents for chunk in document.chunks]

    for start in range(0, len(chunks), batch_size):
        batch = chunks[start:start + batch_size]
        logger.info(
            "Embedding chunks",
            first=start + 1,
            last=start + len(batch),
            total=len(chunks),
        )
        vectors = model.encode([chunk.text for chunk in batch])
        for chunk, vector in zip(batch, vectors):
            chunk.embedding = [float(x) for x in vector]
            chunk.has_code = "`" in chunk.text
            chunk.word_count = len(chunk.text.split())

    return len(chunks)


async def build_enhanced_index(
    input_path: Path,
    output_path: Path,
    model_name: str,
    batch_size: int = 32,
) -> int:
    """Embed ``input_path`` and write the result to ``output_path``."""
    documents = parse_documents(json.loads(input_path.read_text(encoding="utf-8")))

    loader = SentenceTransformerLoader()
    model = await loader.load(
        model_name,
        lambda fraction, resource: logger.info("Loading model", resource=resource, progress=round(fraction * 100)),
    )

    embedded = enhance_documents(documents, model, batch_size=batch_size)

    output_path.write_text(json.dumps(dump_documents(documents)), encoding="utf-8")
    logger.info(
        "Enhanced index written",
        output=str(output_path),
        documents=len(documents),
        chunks=embedded,
        model_name=model_name,
    )
    return embedded


def main():
    """Main function for CLI."""
    config = SearchConfig()

    parser = argparse.ArgumentParser(description="Attach embeddings to a search index")
    parser.add_argument("input", type=Path, help="Standard index JSON (search-index.json)")
    parser.add_argument("output", type=Path, help="Enhanced index JSON to write")
    parser.add_argument("--model", default=config.docsearch_embedding_model, help="Embedding model name")
    parser.add_argument("--batch-size", type=int, default=32, help="Chunks per encode batch")

    args = parser.parse_args()

    configure_logging("build_enhanced_index", config.docsearch_log_level, "console")

    try:
        asyncio.run(build_enhanced_index(args.input, args.output, args.model, args.batch_size))
    except (OSError, ValueError, CorpusFormatError) as e:
        logger.error("Failed to build enhanced index", input=str(args.input), error=str(e))
        sys.exit(1)


if __name__ == "__main__":
    main()
