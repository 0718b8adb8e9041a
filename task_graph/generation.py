"""Text generation adapter for summarizing and decomposing tasks.

Two implementations share the ``TextGenerator`` interface:

- ``LLMTextGenerator`` calls an OpenAI chat model through LangChain.
- ``FallbackTextGenerator`` returns deterministic placeholder output when no
  API key is configured.

``build_generator`` picks one of them once, so callers never check whether
generation is configured.
"""

import json
from abc import ABC, abstractmethod
from collections.abc import Sequence
from typing import Any

import openai
import structlog
from langchain_core.messages import HumanMessage, SystemMessage
from langchain_openai import ChatOpenAI

from task_graph.errors import GenerationError, OperationTimeoutError
from task_graph.models import Task, TaskFields, TaskStatus

logger = structlog.get_logger()

MAX_SUBTASKS = 5

SUMMARY_DISABLED = "AI summarization is disabled. Configure openai.api_key to enable this feature."
SUMMARY_FAILED = "Failed to generate summary. Please try again later."
SUMMARY_EMPTY = "No summary generated"
PLACEHOLDER_DESCRIPTION = "AI decomposition is disabled. This is a placeholder subtask."

SUMMARIZE_SYSTEM_PROMPT = (
    "You are a task summarizer. Given a list of related tasks, "
    "create a concise summary that captures their overall objective."
)

DECOMPOSE_SYSTEM_PROMPT = (
    "You are a task decomposition expert. Break down the given task into smaller, manageable subtasks. "
    'Respond with a JSON object of the form {"subtasks": [{"title": "...", "description": "..."}]}.'
)


class TextGenerator(ABC):
    """Interface for the text generation capability."""

    @abstractmethod
    def summarize(self, tasks: Sequence[Task]) -> str:
        """Return a short synopsis of the given tasks. Never raises."""
        pass

    @abstractmethod
    def decompose(self, task: Task) -> list[TaskFields]:
        """Propose subtasks for a task. An empty list means nothing to add."""
        pass


class FallbackTextGenerator(TextGenerator):
    """Deterministic generator used when no backend is configured."""

    def summarize(self, tasks: Sequence[Task]) -> str:
        titles = ", ".join(task.title for task in tasks)
        return f"{SUMMARY_DISABLED} Tasks: {titles}"

    def decompose(self, task: Task) -> list[TaskFields]:
        return [
            TaskFields(title=f"{task.title} - Part {n}", description=PLACEHOLDER_DESCRIPTION, status=TaskStatus.TODO)
            for n in (1, 2)
        ]


def parse_subtasks(content: str) -> list[TaskFields]:
    """Parse a decomposition response.

    Returns an empty list when the content is not a JSON object holding a
    ``subtasks`` list of objects that each carry a non-empty ``title``.
    """
    try:
        parsed = json.loads(content)
    except ValueError as e:
        logger.warning("Decomposition response is not valid JSON", error=str(e))
        return []

    items = parsed.get("subtasks") if isinstance(parsed, dict) else None
    if not isinstance(items, list):
        logger.warning("Decomposition response has no subtasks list")
        return []

    subtasks: list[TaskFields] = []
    for item in items:
        if not isinstance(item, dict):
            logger.warning("Decomposition response has a malformed subtask", item=item)
            return []
        title = item.get("title")
        description = item.get("description") or ""
        if not isinstance(title, str) or not title.strip() or not isinstance(description, str):
            logger.warning("Decomposition response has a malformed subtask", item=item)
            return []
        subtasks.append(TaskFields(title=title.strip(), description=description, status=TaskStatus.TODO))

    if len(subtasks) > MAX_SUBTASKS:
        logger.debug("Truncating decomposition proposals", proposed=len(subtasks), kept=MAX_SUBTASKS)
        subtasks = subtasks[:MAX_SUBTASKS]
    return subtasks


def _content_text(content: Any) -> str:
    """Flatten LangChain message content to plain text."""
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        return "".join(part if isinstance(part, str) else part.get("text", "") for part in content)
    return ""


class LLMTextGenerator(TextGenerator):
    """Generator backed by an OpenAI chat model."""

    def __init__(self, api_key: str, model: str = "gpt-4", timeout: float = 30, temperature: float = 0.7) -> None:
        """Initialize the LLM generator.

        Args:
            api_key: OpenAI API key
            model: Chat model name
            timeout: Seconds bounding each request
            temperature: Sampling temperature
        """
        self.model = model
        self.timeout = timeout
        self.llm = ChatOpenAI(
            model=model,
            api_key=api_key,
            temperature=temperature,
            timeout=timeout,
            max_retries=0,
        )
        logger.info("LLM text generator initialized", model=model, timeout=timeout)

    def summarize(self, tasks: Sequence[Task]) -> str:
        tasks_text = "\n".join(f"- {task.title}: {task.description}" for task in tasks)
        logger.debug("Requesting summary", model=self.model, count=len(tasks))

        try:
            response = self.llm.bind(max_tokens=150).invoke(
                [
                    SystemMessage(content=SUMMARIZE_SYSTEM_PROMPT),
                    HumanMessage(content=f"Summarize these related tasks:\n{tasks_text}"),
                ]
            )
        except Exception as e:
            logger.warning("Summary generation failed, using fallback text", error=str(e))
            return SUMMARY_FAILED

        summary = _content_text(response.content).strip()
        return summary or SUMMARY_EMPTY

    def decompose(self, task: Task) -> list[TaskFields]:
        logger.debug("Requesting decomposition", model=self.model, task_id=task.id)

        try:
            response = self.llm.bind(max_tokens=500, response_format={"type": "json_object"}).invoke(
                [
                    SystemMessage(content=DECOMPOSE_SYSTEM_PROMPT),
                    HumanMessage(
                        content=(
                            f"Break down this task into 2-{MAX_SUBTASKS} subtasks:\n"
                            f"Title: {task.title}\nDescription: {task.description}"
                        )
                    ),
                ]
            )
        except openai.APITimeoutError as e:
            logger.error("Decomposition request timed out", task_id=task.id, timeout=self.timeout)
            raise OperationTimeoutError(f"Decomposition of task {task.id} exceeded {self.timeout}s") from e
        except Exception as e:
            logger.error("Decomposition request failed", task_id=task.id, error=str(e))
            raise GenerationError(f"Decomposition of task {task.id} failed: {e}") from e

        content = _content_text(response.content)
        if not content.strip():
            logger.warning("Decomposition response was empty", task_id=task.id)
            return []

        subtasks = parse_subtasks(content)
        logger.info("Decomposition generated", task_id=task.id, count=len(subtasks))
        return subtasks


def build_generator(api_key: str | None, model: str = "gpt-4", timeout: float = 30) -> TextGenerator:
    """Select the generator implementation for the given configuration."""
    if not api_key:
        logger.warning("OpenAI API key is not set, AI features will use fallback output")
        return FallbackTextGenerator()
    return LLMTextGenerator(api_key=api_key, model=model, timeout=timeout)
