"""LLMClient abstract base class.

Defines the interface every completion-service provider must implement. The
agent loop depends only on this interface — never on a concrete provider.
Swapping OpenAI for OpenRouter (or any other provider) means writing a new
class that satisfies this interface, with zero changes to the rest of the
system.
"""

from abc import ABC, abstractmethod

from schemas.conversation import AssistantMessage, Message


class CompletionError(Exception):
    """Raised when the completion service fails or returns a malformed payload.

    Always fatal to the current agent run. The loop logs it and re-raises;
    it never retries.
    """


class LLMClient(ABC):
    """Abstract base class for all completion-service clients.

    Agents receive an LLMClient instance at construction time and call
    complete() once per iteration. They never import or instantiate a
    concrete provider directly — that decision belongs to the caller that
    wires the system together.

    To add a new provider, subclass LLMClient and implement complete().
    """

    @abstractmethod
    async def complete(self, messages: list[Message], tools: list[dict]) -> AssistantMessage:
        """Send the running conversation and tool schema, return one proposal.

        Args:
            messages: The full conversation in append order, starting with
                the system message.
            tools: Tool schemas in OpenAI function-calling format. The model
                may call any of them (tool selection mode "auto").

        Returns:
            The model's response: optional free text plus zero or more tool
            invocations, in the order the model proposed them.

        Raises:
            CompletionError: On any transport, API or payload error.
            NotImplementedError: If a subclass does not implement this method.
        """
        ...
