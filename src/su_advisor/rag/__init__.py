"""
RAG Module - Retrieval-Augmented Generation pipeline.
=====================================================

- query_expander: Query variants for wider recall
- chain_of_thought: Step-by-step reasoning prompts
- reranker / retriever: Hybrid multi-query search and lexical rerank
- catalog / local_context / web_snippet: Local structured context
- prompts: Template-based prompt construction
- rate_limiter / providers / gateway: Rate-limited streaming generation
"""

from su_advisor.rag.query_expander import QueryExpander
from su_advisor.rag.reranker import LexicalOverlapReranker, Reranker
from su_advisor.rag.retriever import HybridRetriever
from su_advisor.rag.catalog import CourseCatalog, InstructorIndex
from su_advisor.rag.local_context import LocalContextResolver, merge_context
from su_advisor.rag.web_snippet import WebSnippetProvider
from su_advisor.rag.prompts import PromptBuilder
from su_advisor.rag.rate_limiter import IntervalRateLimiter
from su_advisor.rag.gateway import GenerationGateway, PipelineState

__all__ = [
    "QueryExpander",
    "Reranker",
    "LexicalOverlapReranker",
    "HybridRetriever",
    "CourseCatalog",
    "InstructorIndex",
    "LocalContextResolver",
    "merge_context",
    "WebSnippetProvider",
    "PromptBuilder",
    "IntervalRateLimiter",
    "GenerationGateway",
    "PipelineState",
]
