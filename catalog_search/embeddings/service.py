# FILE: catalog_search/embeddings/service.py
"""
Query path: similarity search and grounded answers.

search:  embed(query) -> top-K hits
ask:     embed(question) -> top-K hits -> grounded prompt -> streamed
         generation, concatenated in arrival order -> answer + citations

Failures of the provider or the store propagate; nothing here substitutes
an empty or made-up result. Cancellation propagates as CancelledError and
discards any partial answer.
"""

from __future__ import annotations

import logging
from contextlib import aclosing
from dataclasses import dataclass
from typing import AsyncIterator, List, Sequence

from catalog_search.embeddings.vector_store import SimilarityHit, VectorStore
from catalog_search.errors import ClientInputError
from catalog_search.llm.services import EmbeddingService, LlmService

logger = logging.getLogger(__name__)

DEFAULT_TOP_K = 5

PROMPT_TEMPLATE = """You are a helpful assistant for an online shop.
Answer the question using ONLY the product information below.
If none of the product information is relevant to the question, say that you don't know.

Product information:
{context}

Question: {question}
Answer:"""

EMPTY_CONTEXT = "(no product information available)"


@dataclass(frozen=True)
class GroundedAnswer:
    answer: str
    citations: List[SimilarityHit]


def require_text(value: str, field: str) -> str:
    """Reject empty/whitespace-only input before any provider or store call."""
    if value is None or not value.strip():
        raise ClientInputError(f"{field} must not be empty")
    return value.strip()


def build_prompt(question: str, hits: Sequence[SimilarityHit]) -> str:
    """Grounded prompt: one bullet per retrieved content block."""
    if hits:
        context = "\n".join(f"- {hit.content}" for hit in hits)
    else:
        context = EMPTY_CONTEXT
    return PROMPT_TEMPLATE.format(context=context, question=question)


class SearchService:
    def __init__(
        self,
        embeddings: EmbeddingService,
        llm: LlmService,
        store: VectorStore,
        top_k: int = DEFAULT_TOP_K,
    ):
        self._embeddings = embeddings
        self._llm = llm
        self._store = store
        self.top_k = top_k

    async def _retrieve(self, text: str) -> List[SimilarityHit]:
        vector = await self._embeddings.create_embedding(text)
        return await self._store.query_top_k(vector, self.top_k)

    async def search(self, query: str) -> List[SimilarityHit]:
        """Top-K products closest to the query, closest first."""
        query = require_text(query, "q")
        hits = await self._retrieve(query)
        logger.info(f"[search] {len(hits)} hits for query of {len(query)} chars")
        return hits

    async def retrieve_for_question(self, question: str) -> List[SimilarityHit]:
        """Validate the question and fetch the hits that will ground it."""
        question = require_text(question, "question")
        return await self._retrieve(question)

    def stream_answer(self, question: str, hits: Sequence[SimilarityHit]) -> AsyncIterator[str]:
        """Generation fragments for an already-retrieved set of hits."""
        return self._llm.generate(build_prompt(question.strip(), hits))

    async def ask(self, question: str) -> GroundedAnswer:
        """
        Answer a question from stored product content.

        Zero hits is valid: the model is still asked, with an empty context,
        and told to admit it does not know. Citations are exactly the hits
        used for grounding, in the same order.
        """
        hits = await self.retrieve_for_question(question)

        fragments: List[str] = []
        async with aclosing(self.stream_answer(question, hits)) as stream:
            async for fragment in stream:
                fragments.append(fragment)

        answer = "".join(fragments)
        logger.info(f"[search] Answered with {len(hits)} citations ({len(answer)} chars)")
        return GroundedAnswer(answer=answer, citations=list(hits))


__all__ = [
    "GroundedAnswer",
    "SearchService",
    "build_prompt",
    "require_text",
]
