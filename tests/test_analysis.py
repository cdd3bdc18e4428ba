from __future__ import annotations

import json
from types import SimpleNamespace
from unittest.mock import AsyncMock, patch

import httpx
import openai
import pytest

from research_graph.errors import ExternalServiceError, MalformedAnalysisError
from research_graph.models.graph import SearchResult
from research_graph.services.analysis import (
    AnalysisService,
    extract_json_object,
    format_sources,
    parse_analysis,
)

VALID = {
    "connections": [
        {
            "source_a_index": 0,
            "source_b_index": 1,
            "relationship": "contradicts",
            "explanation": "Different sample sizes",
            "strength": 0.9,
        }
    ],
    "synthesis": "They disagree on scale.",
    "gaps": ["No longitudinal data"],
    "follow_up_questions": ["What happens over ten years?"],
}


def _response(content: str | None, *, usage=None):
    message = SimpleNamespace(content=content)
    return SimpleNamespace(choices=[SimpleNamespace(message=message)], usage=usage)


def _client(*side_effect):
    create = AsyncMock(side_effect=list(side_effect))
    return SimpleNamespace(chat=SimpleNamespace(completions=SimpleNamespace(create=create))), create


def _request() -> httpx.Request:
    return httpx.Request("POST", "https://openrouter.ai/api/v1/chat/completions")


def test_parse_analysis_accepts_plain_json():
    result = parse_analysis(json.dumps(VALID))

    assert result.synthesis == "They disagree on scale."
    assert result.connections[0].relationship == "contradicts"
    assert result.connections[0].source_b_index == 1


def test_parse_analysis_tolerates_prose_and_braces_inside_strings():
    payload = dict(VALID, synthesis='Uses "{braces}" and a } stray brace')
    content = f"Here is the analysis you asked for:\n{json.dumps(payload)}\nLet me know {{if}} needed."

    result = parse_analysis(content)

    assert result.synthesis == 'Uses "{braces}" and a } stray brace'


def test_parse_analysis_skips_unparseable_object_before_the_real_one():
    content = "Draft: {not json at all}\n" + json.dumps(VALID)

    assert parse_analysis(content).gaps == ["No longitudinal data"]


def test_extract_json_object_handles_escaped_quotes():
    text = 'prefix {"a": "quote \\" and { brace", "b": {"c": 1}} suffix'

    assert json.loads(extract_json_object(text)) == {"a": 'quote " and { brace', "b": {"c": 1}}
    assert extract_json_object("no object here") is None


@pytest.mark.parametrize(
    "content",
    [
        "",
        "   ",
        "I could not analyze these sources.",
        '{"connections": [',
        "[1, 2, 3]",
    ],
)
def test_parse_analysis_rejects_malformed_content(content):
    with pytest.raises(MalformedAnalysisError):
        parse_analysis(content)


def test_parse_analysis_rejects_unknown_relationship():
    payload = json.loads(json.dumps(VALID))
    payload["connections"][0]["relationship"] = "vibes"

    with pytest.raises(MalformedAnalysisError, match="schema mismatch"):
        parse_analysis(json.dumps(payload))


def test_strength_is_clamped_into_unit_interval():
    payload = json.loads(json.dumps(VALID))
    payload["connections"][0]["strength"] = 3.5
    payload["connections"].append(dict(payload["connections"][0], strength=-1))

    result = parse_analysis(json.dumps(payload))

    assert [c.strength for c in result.connections] == [1.0, 0.0]


def test_format_sources_numbers_from_zero():
    text = format_sources(
        [
            SearchResult(url="https://a", title="A", summary="sa"),
            SearchResult(url="https://b", title="B", highlights=["hb"]),
        ]
    )

    assert text.startswith('[0] "A" (https://a)')
    assert '[1] "B" (https://b)' in text
    assert "Summary: hb" in text


@pytest.mark.asyncio
async def test_analyze_calls_model_and_parses_answer():
    client, create = _client(_response(json.dumps(VALID), usage=SimpleNamespace(prompt_tokens=10, completion_tokens=5)))
    service = AnalysisService(client, analysis_model="test/model", label_model="test/label")

    result = await service.analyze("why?", [SearchResult(url="https://a", title="A")])

    assert len(result.connections) == 1
    kwargs = create.await_args.kwargs
    assert kwargs["model"] == "test/model"
    assert kwargs["temperature"] == 0.3
    assert '"why?"' in kwargs["messages"][0]["content"]


@pytest.mark.asyncio
async def test_analyze_retries_connection_errors():
    client, create = _client(
        openai.APIConnectionError(request=_request()),
        _response(json.dumps(VALID)),
    )
    service = AnalysisService(client, analysis_model="m", label_model="l")

    with patch("research_graph.services.retry.asyncio.sleep", new=AsyncMock()):
        result = await service.analyze("q", [])

    assert result.synthesis
    assert create.await_count == 2


@pytest.mark.asyncio
async def test_analyze_does_not_retry_client_errors():
    error = openai.BadRequestError(
        "bad model", response=httpx.Response(400, request=_request()), body=None
    )
    client, create = _client(error, _response(json.dumps(VALID)))
    service = AnalysisService(client, analysis_model="m", label_model="l")

    with pytest.raises(ExternalServiceError) as excinfo:
        await service.analyze("q", [])

    assert excinfo.value.upstream_status == 400
    assert excinfo.value.retryable is False
    assert excinfo.value.message == "OpenRouter/chat is temporarily unavailable"
    assert create.await_count == 1


@pytest.mark.asyncio
async def test_analyze_without_choices_is_malformed():
    client, _ = _client(SimpleNamespace(choices=[], usage=None))
    service = AnalysisService(client, analysis_model="m", label_model="l")

    with pytest.raises(MalformedAnalysisError):
        await service.analyze("q", [])


@pytest.mark.asyncio
async def test_topic_label_strips_quotes():
    client, create = _client(_response('  "Quantum Error Correction"\n'))
    service = AnalysisService(client, analysis_model="m", label_model="label/model")

    assert await service.generate_topic_label("how do surface codes work") == "Quantum Error Correction"
    assert create.await_args.kwargs["model"] == "label/model"


@pytest.mark.asyncio
async def test_topic_label_falls_back_to_query_prefix():
    client, _ = _client(RuntimeError("provider down"))
    service = AnalysisService(client, analysis_model="m", label_model="l")
    query = "a very long research question about the interplay of sleep and memory consolidation"

    assert await service.generate_topic_label(query) == query[:50]


@pytest.mark.asyncio
async def test_bridge_query_is_cleaned_and_bounded():
    client, create = _client(_response("'" + "x" * 300 + "'"))
    service = AnalysisService(client, analysis_model="m", label_model="l")

    query = await service.generate_bridge_query("Sleep", "Memory", 0.612, topic_a_description="REM cycles")

    assert query == "x" * 200
    prompt = create.await_args.kwargs["messages"][0]["content"]
    assert 'Topic A: "Sleep": REM cycles' in prompt
    assert "0.612" in prompt
    assert create.await_args.kwargs["temperature"] == 0.7


@pytest.mark.asyncio
async def test_empty_bridge_query_raises():
    client, _ = _client(_response('""'))
    service = AnalysisService(client, analysis_model="m", label_model="l")

    with pytest.raises(MalformedAnalysisError):
        await service.generate_bridge_query("A", "B", 0.5)
