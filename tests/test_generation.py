"""Tests for the text generation adapter."""

import json
from datetime import datetime, timezone
from unittest.mock import MagicMock, Mock

import httpx
import openai
import pytest

from task_graph.errors import GenerationError, OperationTimeoutError
from task_graph.generation import (
    PLACEHOLDER_DESCRIPTION,
    SUMMARY_DISABLED,
    SUMMARY_EMPTY,
    SUMMARY_FAILED,
    FallbackTextGenerator,
    LLMTextGenerator,
    build_generator,
    parse_subtasks,
)
from task_graph.models import Task, TaskStatus

NOW = datetime(2024, 1, 1, tzinfo=timezone.utc)


@pytest.fixture
def task() -> Task:
    """Create a sample task."""
    return Task(id="t1", title="Write spec", description="Draft the API", created_at=NOW, updated_at=NOW)


@pytest.fixture
def mock_llm() -> Mock:
    """Create a mock chat model."""
    return MagicMock()


@pytest.fixture
def llm_generator(mock_llm: Mock, monkeypatch: pytest.MonkeyPatch) -> LLMTextGenerator:
    """Create an LLM generator with a mocked chat model."""
    with monkeypatch.context() as m:
        m.setattr("task_graph.generation.ChatOpenAI", lambda **kwargs: mock_llm)
        generator = LLMTextGenerator(api_key="fake_key", model="gpt-4", timeout=5)
    return generator


def respond(mock_llm: Mock, content: str) -> None:
    mock_llm.bind.return_value.invoke.return_value = MagicMock(content=content)


def test_build_generator_without_key() -> None:
    """Test a missing key selects the fallback generator."""
    assert isinstance(build_generator(api_key=None), FallbackTextGenerator)
    assert isinstance(build_generator(api_key=""), FallbackTextGenerator)


def test_build_generator_with_key(monkeypatch: pytest.MonkeyPatch) -> None:
    """Test a key selects the LLM generator."""
    monkeypatch.setattr("task_graph.generation.ChatOpenAI", lambda **kwargs: MagicMock())
    assert isinstance(build_generator(api_key="fake_key"), LLMTextGenerator)


def test_fallback_summary_is_labeled(task: Task) -> None:
    """Test the fallback summary names itself and the tasks."""
    summary = FallbackTextGenerator().summarize([task])
    assert summary.startswith(SUMMARY_DISABLED)
    assert "Write spec" in summary


def test_fallback_decompose_returns_two_parts(task: Task) -> None:
    """Test the fallback decomposition is deterministic."""
    subtasks = FallbackTextGenerator().decompose(task)
    assert [s.title for s in subtasks] == ["Write spec - Part 1", "Write spec - Part 2"]
    assert all(s.description == PLACEHOLDER_DESCRIPTION for s in subtasks)
    assert all(s.status == TaskStatus.TODO for s in subtasks)


def test_summarize(llm_generator: LLMTextGenerator, mock_llm: Mock, task: Task) -> None:
    """Test the summary text comes from the model."""
    respond(mock_llm, "  Ship the draft.  ")

    assert llm_generator.summarize([task]) == "Ship the draft."
    messages = mock_llm.bind.return_value.invoke.call_args[0][0]
    assert "- Write spec: Draft the API" in messages[1].content


def test_summarize_empty_response(llm_generator: LLMTextGenerator, mock_llm: Mock, task: Task) -> None:
    """Test an empty completion yields the placeholder text."""
    respond(mock_llm, "")
    assert llm_generator.summarize([task]) == SUMMARY_EMPTY


def test_summarize_failure_degrades(llm_generator: LLMTextGenerator, mock_llm: Mock, task: Task) -> None:
    """Test backend errors never escape summarize."""
    mock_llm.bind.return_value.invoke.side_effect = RuntimeError("rate limited")
    assert llm_generator.summarize([task]) == SUMMARY_FAILED


def test_decompose(llm_generator: LLMTextGenerator, mock_llm: Mock, task: Task) -> None:
    """Test subtasks are parsed from the JSON response."""
    respond(
        mock_llm,
        json.dumps(
            {
                "subtasks": [
                    {"title": "Outline", "description": "List sections"},
                    {"title": "Draft", "description": "Write sections"},
                    {"title": "Polish"},
                ]
            }
        ),
    )

    subtasks = llm_generator.decompose(task)

    assert [s.title for s in subtasks] == ["Outline", "Draft", "Polish"]
    assert subtasks[2].description == ""
    assert mock_llm.bind.call_args[1]["response_format"] == {"type": "json_object"}


def test_decompose_malformed_response(llm_generator: LLMTextGenerator, mock_llm: Mock, task: Task) -> None:
    """Test unparsable content yields no subtasks."""
    respond(mock_llm, "Sure! Here are some subtasks: ...")
    assert llm_generator.decompose(task) == []


def test_decompose_empty_response(llm_generator: LLMTextGenerator, mock_llm: Mock, task: Task) -> None:
    """Test empty content yields no subtasks."""
    respond(mock_llm, "")
    assert llm_generator.decompose(task) == []


def test_decompose_backend_error(llm_generator: LLMTextGenerator, mock_llm: Mock, task: Task) -> None:
    """Test a failing backend raises GenerationError."""
    mock_llm.bind.return_value.invoke.side_effect = RuntimeError("service down")
    with pytest.raises(GenerationError):
        llm_generator.decompose(task)


def test_decompose_timeout(llm_generator: LLMTextGenerator, mock_llm: Mock, task: Task) -> None:
    """Test a timed out request raises OperationTimeoutError."""
    request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
    mock_llm.bind.return_value.invoke.side_effect = openai.APITimeoutError(request=request)
    with pytest.raises(OperationTimeoutError):
        llm_generator.decompose(task)


@pytest.mark.parametrize(
    "content",
    [
        "[]",
        '{"tasks": []}',
        '{"subtasks": "none"}',
        '{"subtasks": ["Outline"]}',
        '{"subtasks": [{"description": "no title"}]}',
        '{"subtasks": [{"title": "  "}]}',
    ],
)
def test_parse_subtasks_rejects_wrong_shape(content: str) -> None:
    """Test content of the wrong shape yields no subtasks."""
    assert parse_subtasks(content) == []


def test_parse_subtasks_truncates_to_five() -> None:
    """Test at most five proposals are kept."""
    content = json.dumps({"subtasks": [{"title": f"Step {n}"} for n in range(8)]})
    assert len(parse_subtasks(content)) == 5
