"""Deterministic doubles shared across tests."""

from collections.abc import Callable
from dataclasses import dataclass, field

from src.features.llm.errors import LlmApiError
from src.features.llm.models import ModelConfig
from src.settings import AppSettings


def make_settings(**overrides: object) -> AppSettings:
    """Build settings isolated from the environment's .env file."""
    values: dict[str, object] = {
        "openai_api_key": None,
        "anthropic_api_key": None,
        "google_api_key": None,
    }
    values.update(overrides)
    return AppSettings(_env_file=None, **values)  # type: ignore[arg-type]


@dataclass
class FakeLlmClient:
    """Records prompts and replays a canned response or error."""

    model: str
    response: str = ""
    error: Exception | None = None
    calls: list[dict[str, object]] = field(default_factory=list)

    def generate_content(
        self,
        prompt: str,
        system_instruction: str | None = None,
        *,
        temperature: float | None = None,
        max_tokens: int | None = None,
        json_output: bool = False,
    ) -> str:
        self.calls.append(
            {
                "prompt": prompt,
                "system_instruction": system_instruction,
                "temperature": temperature,
                "max_tokens": max_tokens,
                "json_output": json_output,
            }
        )
        if self.error is not None:
            raise self.error
        return self.response


class FakeClientFactory:
    """Client factory returning one FakeLlmClient per provider.

    Attributes:
        clients: Clients created so far, keyed by provider.
        requested: Registry ids of every model requested, in order.
    """

    def __init__(
        self,
        responses: dict[str, str] | None = None,
        failing_providers: set[str] | None = None,
    ) -> None:
        self._responses = responses or {}
        self._failing = failing_providers or set()
        self.clients: dict[str, FakeLlmClient] = {}
        self.requested: list[str] = []

    def __call__(self, model: ModelConfig) -> FakeLlmClient:
        self.requested.append(model.id)
        client = self.clients.get(model.provider)
        if client is None:
            error = (
                LlmApiError(f"{model.provider} unavailable", status_code=503)
                if model.provider in self._failing
                else None
            )
            client = FakeLlmClient(
                model=model.api_model,
                response=self._responses.get(model.provider, ""),
                error=error,
            )
            self.clients[model.provider] = client
        return client


class ManualInterval:
    """Interval handle driven by ManualScheduler."""

    def __init__(self, callback: Callable[[], None]) -> None:
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    """Interval scheduler whose ticks are fired explicitly by the test."""

    def __init__(self) -> None:
        self.intervals: list[ManualInterval] = []
        self.scheduled_with: list[float] = []

    def schedule(self, interval: float, callback: Callable[[], None]) -> ManualInterval:
        self.scheduled_with.append(interval)
        handle = ManualInterval(callback)
        self.intervals.append(handle)
        return handle

    @property
    def active(self) -> list[ManualInterval]:
        return [i for i in self.intervals if not i.cancelled]

    def tick(self, times: int = 1) -> None:
        """Fire every active interval ``times`` times."""
        for _ in range(times):
            for handle in self.active:
                handle.callback()
