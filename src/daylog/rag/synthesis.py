"""Answer synthesis: turn retrieved log entries into a short written answer.

The generation model is called through LiteLLM behind its own
RemoteCallQueue, so answer generation never waits behind embedding traffic.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass

from daylog.config import DaylogConfig
from daylog.providers.retry import RemoteCallQueue, RetryPolicy
from daylog.rag.llm_client import acomplete, has_api_key

logger = logging.getLogger(__name__)

_SYSTEM_PROMPT = (
    "You are an assistant that answers questions using a person's work log. "
    "Do not invent facts. If the log does not contain the answer, say it is unknown."
)

_DATED_INSTRUCTION = (
    "Prefer the entries from this date and summarise what was done as a short bullet list."
)

_UNDATED_INSTRUCTION = (
    "Using the related entries as evidence, summarise the key points as bullets, "
    "then finish with a 1-2 sentence conclusion."
)


@dataclass
class Context:
    """One log entry handed to the generation model."""

    date: str
    title: str
    content: str


def build_messages(
    question: str, date_filter: str | None, contexts: Sequence[Context]
) -> list[dict]:
    """Return the chat messages for *question* over *contexts*."""
    blocks = "\n\n".join(
        f"# Entry {i}\nDate: {c.date}\nTitle: {c.title}\nContent:\n{c.content}"
        for i, c in enumerate(contexts, start=1)
    )
    if date_filter:
        instruction = f"\nRequested date (ISO): {date_filter}\n{_DATED_INSTRUCTION}\n"
    else:
        instruction = f"\n{_UNDATED_INSTRUCTION}\n"
    user = f"Question: {question}\n{instruction}\nLog entries:\n{blocks}"
    return [
        {"role": "system", "content": _SYSTEM_PROMPT},
        {"role": "user", "content": user},
    ]


class AnswerSynthesizer:
    """Generate an answer with a LiteLLM chat model.

    Args:
        model: LiteLLM model string (provider/model).
        temperature: Sampling temperature.
        queue: Queue serializing generation calls; one is created if omitted.
        timeout: Per-call deadline in seconds.
    """

    def __init__(
        self,
        model: str,
        temperature: float = 0.2,
        queue: RemoteCallQueue | None = None,
        timeout: float | None = None,
    ) -> None:
        self.model = model
        self.temperature = temperature
        self._queue = queue or RemoteCallQueue(name="generation")
        self._timeout = timeout

    @classmethod
    def from_config(cls, cfg: DaylogConfig) -> AnswerSynthesizer:
        queue = RemoteCallQueue(
            RetryPolicy(
                max_retries=cfg.retry.max_retries,
                base_delay=cfg.retry.base_delay,
                max_delay=cfg.retry.max_delay,
            ),
            name="generation",
        )
        return cls(
            cfg.generation.model,
            temperature=cfg.generation.temperature,
            queue=queue,
            timeout=cfg.retry.timeout,
        )

    @property
    def enabled(self) -> bool:
        return has_api_key(self.model)

    async def synthesize(
        self, question: str, date_filter: str | None, contexts: Sequence[Context]
    ) -> str | None:
        """Return the generated answer, or None when generation is unavailable.

        None is returned when no API key is configured for the model or the
        model replies with blank text. Provider failures propagate.
        """
        if not self.enabled:
            logger.debug("no API key for generation model '%s'; skipping synthesis", self.model)
            return None

        messages = build_messages(question, date_filter, contexts)
        text = await self._queue.run(
            lambda: acomplete(self.model, messages, temperature=self.temperature),
            timeout=self._timeout,
        )
        return text.strip() or None
