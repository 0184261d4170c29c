"""Protocol interface for LLM clients."""

from typing import Protocol, runtime_checkable


@runtime_checkable
class LlmClient(Protocol):
    """Protocol for LLM content generation clients.

    Any client that implements ``generate_content`` with the matching
    signature can be used interchangeably by the API handlers,
    regardless of which provider SDK sits underneath.
    """

    model: str

    def generate_content(
        self,
        prompt: str,
        system_instruction: str | None = None,
        *,
        temperature: float | None = None,
        max_tokens: int | None = None,
        json_output: bool = False,
    ) -> str:
        """Generate text from a prompt.

        Args:
            prompt: User prompt text.
            system_instruction: Optional system-level instruction.
            temperature: Sampling temperature override.
            max_tokens: Output token limit override.
            json_output: Ask the provider for a JSON object response
                where it supports a dedicated mode.

        Returns:
            Generated text from the model.

        Raises:
            LlmApiError: If the API call fails.
        """
        ...
