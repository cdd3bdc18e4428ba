"""LLM-backed analysis, topic labeling and bridge-query generation."""

from __future__ import annotations

import asyncio
import json
import time
from typing import Any

import openai
from loguru import logger
from pydantic import ValidationError as SchemaValidationError

from research_graph.config import settings
from research_graph.errors import AppError, ExternalServiceError, MalformedAnalysisError
from research_graph.models.analysis import AnalysisResult
from research_graph.models.graph import SearchResult
from research_graph.services import logger as log_service
from research_graph.services.retry import with_retry

SERVICE_NAME = "OpenRouter/chat"

ANALYSIS_PROMPT = """You are a research analyst for a tool that surfaces connections and gaps between knowledge sources.

Given this research query: "{query}"

And these sources:
{sources}

Analyze the relationships between these sources. For each meaningful pair of sources, identify:
1. The relationship type: "agrees", "contradicts", "extends", or "gap" (where gap means something important is missing between them)
2. A clear explanation of the connection
3. A strength score from 0.0 to 1.0

Then provide:
- A synthesis that weaves these sources together, emphasizing what's BETWEEN them (connections, contradictions, gaps)
- A list of gaps: what important aspects of "{query}" are NOT covered by these sources?
- 3-5 follow-up questions that would fill those gaps

Source indices are 0-based, in the order listed above.

Respond in this exact JSON format:
{{
  "connections": [
    {{
      "source_a_index": 0,
      "source_b_index": 1,
      "relationship": "agrees|contradicts|extends|gap",
      "explanation": "...",
      "strength": 0.8
    }}
  ],
  "synthesis": "...",
  "gaps": ["...", "..."],
  "follow_up_questions": ["...", "..."]
}}

Only output valid JSON. No markdown fences."""

LABEL_PROMPT = """Generate a short, evocative research topic label (2-5 words) for this query. The label should capture the broader research area, not just restate the query. Be specific but not verbose. Examples: "Quantum Error Correction", "CRISPR Ethics Landscape", "Neural Architecture Search", "Ocean Acidification Feedback".

Query: "{query}"

Respond with ONLY the label, nothing else."""

BRIDGE_QUERY_PROMPT = """You are a research assistant. Two research topics exist that are semantically related but have no connecting sources between them.

Topic A: "{topic_a}"{topic_a_description}
Topic B: "{topic_b}"{topic_b_description}

Semantic similarity between them: {similarity:.3f}

Generate a single, specific search query that would find sources bridging these two topics. The query should target the conceptual space BETWEEN them, not just one or the other: the intersection, tension, or connection point.

Respond with ONLY the search query, nothing else. Keep it under 200 characters."""

BRIDGE_QUERY_MAX_CHARS = 200


def format_sources(sources: list[SearchResult]) -> str:
    blocks = []
    for idx, source in enumerate(sources):
        highlights = " | ".join(source.highlights)
        blocks.append(
            f'[{idx}] "{source.title}" ({source.url})\n'
            f"Summary: {source.snippet()}\n"
            f"Highlights: {highlights}"
        )
    return "\n\n".join(blocks)


def extract_json_object(text: str, start: int = 0) -> str | None:
    """Return the first balanced top-level ``{...}`` at or after ``start``.

    Braces inside JSON strings (including escaped quotes) are ignored.
    """
    begin = text.find("{", start)
    if begin == -1:
        return None
    depth = 0
    in_string = False
    escaped = False
    for idx in range(begin, len(text)):
        ch = text[idx]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return text[begin : idx + 1]
    return None


def _load_json_payload(content: str) -> Any:
    try:
        return json.loads(content)
    except json.JSONDecodeError:
        pass

    cursor = 0
    last_error = "no JSON object found"
    while True:
        candidate = extract_json_object(content, cursor)
        if candidate is None:
            raise MalformedAnalysisError(last_error, raw=content[:200])
        try:
            return json.loads(candidate)
        except json.JSONDecodeError as exc:
            last_error = f"invalid JSON object: {exc}"
            cursor = content.find("{", cursor) + 1


def parse_analysis(content: str) -> AnalysisResult:
    """Strict parse of the analysis model's answer, tolerating surrounding prose."""
    if not content or not content.strip():
        raise MalformedAnalysisError("empty response")
    payload = _load_json_payload(content.strip())
    if not isinstance(payload, dict):
        raise MalformedAnalysisError(
            f"expected a JSON object, got {type(payload).__name__}", raw=content[:200]
        )
    try:
        return AnalysisResult.model_validate(payload)
    except SchemaValidationError as exc:
        raise MalformedAnalysisError(
            f"schema mismatch: {exc.error_count()} error(s): {exc.errors()[0]['msg']}",
            raw=content[:200],
        ) from exc


def _strip_quotes(text: str) -> str:
    cleaned = text.strip()
    for quote in ('"', "'"):
        if cleaned.startswith(quote):
            cleaned = cleaned[1:]
        if cleaned.endswith(quote):
            cleaned = cleaned[:-1]
    return cleaned.strip()


class AnalysisService:
    def __init__(
        self,
        client: Any,
        *,
        analysis_model: str | None = None,
        label_model: str | None = None,
    ):
        self._client = client
        self.analysis_model = analysis_model or settings.analysis_model
        self.label_model = label_model or settings.effective_label_model

    async def analyze(self, query: str, sources: list[SearchResult]) -> AnalysisResult:
        prompt = ANALYSIS_PROMPT.format(query=query, sources=format_sources(sources))
        logger.info(f"Analyzing {len(sources)} sources with {self.analysis_model}")
        content = await self._complete(
            model=self.analysis_model,
            prompt=prompt,
            temperature=0.3,
            max_tokens=settings.analysis_max_tokens,
            timeout=settings.analysis_timeout_seconds,
            max_attempts=settings.analysis_max_attempts,
            caller="analysis",
        )
        analysis = parse_analysis(content)
        logger.info(
            f"Analysis returned {len(analysis.connections)} connections, {len(analysis.gaps)} gaps"
        )
        return analysis

    async def generate_topic_label(self, query_text: str) -> str:
        """Short label for a new topic; falls back to the truncated query, never raises."""
        fallback = query_text[: settings.topic_label_max_chars]
        try:
            content = await self._complete(
                model=self.label_model,
                prompt=LABEL_PROMPT.format(query=query_text),
                temperature=0.5,
                max_tokens=settings.label_max_tokens,
                timeout=settings.label_timeout_seconds,
                max_attempts=settings.label_max_attempts,
                caller="topic_label",
            )
        except Exception as exc:
            logger.warning(f"Topic label generation failed, using query prefix: {exc}")
            return fallback
        label = _strip_quotes(content)
        return label or fallback

    async def generate_bridge_query(
        self,
        topic_a_label: str,
        topic_b_label: str,
        topic_similarity: float,
        *,
        topic_a_description: str | None = None,
        topic_b_description: str | None = None,
    ) -> str:
        prompt = BRIDGE_QUERY_PROMPT.format(
            topic_a=topic_a_label,
            topic_b=topic_b_label,
            topic_a_description=f": {topic_a_description}" if topic_a_description else "",
            topic_b_description=f": {topic_b_description}" if topic_b_description else "",
            similarity=topic_similarity,
        )
        content = await self._complete(
            model=self.label_model,
            prompt=prompt,
            temperature=0.7,
            max_tokens=settings.bridge_query_max_tokens,
            timeout=settings.label_timeout_seconds,
            max_attempts=settings.label_max_attempts,
            caller="bridge_query",
        )
        query = _strip_quotes(content)[:BRIDGE_QUERY_MAX_CHARS].strip()
        if not query:
            raise MalformedAnalysisError("empty bridge query")
        logger.info(f"Bridge query for '{topic_a_label}' / '{topic_b_label}': {query}")
        return query

    async def _complete(
        self,
        *,
        model: str,
        prompt: str,
        temperature: float,
        max_tokens: int,
        timeout: float,
        max_attempts: int,
        caller: str,
    ) -> str:
        started = time.monotonic()

        async def _call() -> Any:
            return await asyncio.wait_for(
                self._client.chat.completions.create(
                    model=model,
                    messages=[{"role": "user", "content": prompt}],
                    temperature=temperature,
                    max_tokens=max_tokens,
                ),
                timeout=timeout,
            )

        try:
            response = await with_retry(
                _call, max_attempts=max_attempts, label=f"{SERVICE_NAME}:{caller}"
            )
        except AppError:
            raise
        except Exception as exc:
            log_service.log_llm_call(
                model=model,
                caller=caller,
                duration_ms=int((time.monotonic() - started) * 1000),
                status="error",
                error=str(exc),
            )
            raise _to_external_error(exc) from exc

        usage = getattr(response, "usage", None)
        log_service.log_llm_call(
            model=model,
            caller=caller,
            input_tokens=getattr(usage, "prompt_tokens", 0) or 0,
            output_tokens=getattr(usage, "completion_tokens", 0) or 0,
            duration_ms=int((time.monotonic() - started) * 1000),
        )
        choices = getattr(response, "choices", None) or []
        if not choices:
            raise MalformedAnalysisError(f"{caller}: response has no choices")
        return getattr(choices[0].message, "content", None) or ""


def _to_external_error(exc: Exception) -> ExternalServiceError:
    if isinstance(exc, openai.APIStatusError):
        return ExternalServiceError(SERVICE_NAME, upstream_status=exc.status_code, detail=str(exc))
    return ExternalServiceError(SERVICE_NAME, detail=str(exc) or type(exc).__name__)
