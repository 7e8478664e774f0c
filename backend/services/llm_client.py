"""LLM Client for Groq API integration."""
import time
from dataclasses import dataclass
from typing import Optional, Dict, Any
from groq import Groq
from groq import RateLimitError, AuthenticationError, APIError, APITimeoutError
import logging

from config import GROQ_API_KEY, LLM_MODEL, LLM_MAX_TOKENS

logger = logging.getLogger(__name__)

SINGLE_RESTAURANT_PROMPT = (
    "You are a helpful assistant that answers questions about a restaurant menu. "
    "Use the provided menu information to answer the user's question accurately "
    "and helpfully. If the answer isn't in the menu, say so politely."
)

MULTI_RESTAURANT_PROMPT = (
    "You are a helpful assistant that answers questions about multiple restaurant menus. "
    "Use the provided menu information from different restaurants to answer the user's "
    "question. When mentioning items, include which restaurant they're from. If comparing "
    "options, provide helpful comparisons across restaurants."
)

FALLBACK_NOTE = (
    "Note: This is a simple keyword search. For AI-powered answers, "
    "set GROQ_API_KEY in your environment and restart the server."
)


@dataclass
class LLMResponse:
    """Response from LLM generation."""
    text: str
    tokens_input: int
    tokens_output: int
    latency_ms: int
    model_used: str


@dataclass
class LLMError:
    """Structured error response from LLM operations."""
    code: str
    message: str
    details: Dict[str, Any]


class LLMClientError(Exception):
    """Custom exception for LLM client errors with structured error information."""

    def __init__(self, error: LLMError):
        self.error = error
        super().__init__(error.message)


class LLMClient:
    """Client for interfacing with Groq API for text generation."""

    def __init__(self, api_key: Optional[str] = None, model: str = LLM_MODEL):
        """
        Initialize LLM client.

        A missing key does not fail construction; ``generate`` raises a
        NOT_CONFIGURED error instead so the rest of the service can run.

        Args:
            api_key: Groq API key (defaults to GROQ_API_KEY from environment)
            model: Default model name
        """
        self.api_key = api_key or GROQ_API_KEY
        self.model = model
        self.client = Groq(api_key=self.api_key) if self.api_key else None

        if self.client:
            logger.info(f"LLMClient initialized with model: {model}")
        else:
            logger.warning("GROQ_API_KEY not set; LLMClient is unconfigured")

    @property
    def is_configured(self) -> bool:
        return self.client is not None

    def generate(
        self,
        system_prompt: str,
        user_prompt: str,
        max_tokens: int = LLM_MAX_TOKENS,
        model: Optional[str] = None
    ) -> LLMResponse:
        """
        Generate response using Groq API. Failures are not retried.

        Args:
            system_prompt: Instructions for the assistant
            user_prompt: Menu context and question
            max_tokens: Maximum tokens to generate
            model: Model name override

        Returns:
            LLMResponse with text, token counts, and latency

        Raises:
            LLMClientError: Structured error with code, message, and details
        """
        model = model or self.model

        if not self.is_configured:
            raise LLMClientError(LLMError(
                code="NOT_CONFIGURED",
                message="GROQ_API_KEY is not set. Add it to your environment to enable answers.",
                details={"model": model}
            ))

        start_time = time.time()

        try:
            logger.debug(f"Generating response with model: {model}")

            response = self.client.chat.completions.create(
                model=model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_prompt}
                ],
                max_tokens=max_tokens,
                temperature=0.3
            )

            latency_ms = int((time.time() - start_time) * 1000)

            text = response.choices[0].message.content or ""
            tokens_input = response.usage.prompt_tokens
            tokens_output = response.usage.completion_tokens

            logger.info(
                f"Generated response: model={model}, "
                f"input_tokens={tokens_input}, output_tokens={tokens_output}, "
                f"latency={latency_ms}ms"
            )

            return LLMResponse(
                text=text,
                tokens_input=tokens_input,
                tokens_output=tokens_output,
                latency_ms=latency_ms,
                model_used=model
            )

        except RateLimitError as e:
            raise self._error(
                "RATE_LIMIT_ERROR",
                "Rate limit exceeded. Please try again in a few moments.",
                model, start_time, e,
                retry_after=60
            )

        except AuthenticationError as e:
            raise self._error(
                "AUTHENTICATION_ERROR",
                "Authentication failed. Please check your API key.",
                model, start_time, e
            )

        except APITimeoutError as e:
            raise self._error(
                "TIMEOUT_ERROR",
                "Request timed out. Please try again.",
                model, start_time, e
            )

        except APIError as e:
            raise self._error("API_ERROR", f"Groq API error: {str(e)}", model, start_time, e)

        except Exception as e:
            raise self._error(
                "UNKNOWN_ERROR",
                f"Unexpected error during generation: {str(e)}",
                model, start_time, e,
                error_type=type(e).__name__
            )

    @staticmethod
    def _error(
        code: str,
        message: str,
        model: str,
        start_time: float,
        original: Exception,
        **extra: Any
    ) -> LLMClientError:
        latency_ms = int((time.time() - start_time) * 1000)
        error = LLMError(
            code=code,
            message=message,
            details={
                "model": model,
                "latency_ms": latency_ms,
                "original_error": str(original),
                **extra
            }
        )
        logger.error(
            f"{code}: model={model}, latency={latency_ms}ms, error={original}",
            exc_info=True,
            extra={"error_code": error.code, "error_details": error.details}
        )
        return LLMClientError(error)

    @staticmethod
    def build_system_prompt(multi_restaurant: bool) -> str:
        """System prompt for answering about one restaurant or comparing several."""
        return MULTI_RESTAURANT_PROMPT if multi_restaurant else SINGLE_RESTAURANT_PROMPT

    @staticmethod
    def build_user_prompt(question: str, context: str) -> str:
        """
        Build the user prompt with menu context and question.

        Args:
            question: User question
            context: Assembled menu chunks

        Returns:
            Complete prompt string
        """
        return f"""Menu Information:
{context}

Question: {question}

Please provide a helpful and accurate answer based on the menu information above."""

    @staticmethod
    def fallback_answer(question: str, context: str) -> str:
        """
        Keyword answer used when no language model is configured.

        Returns up to five context lines containing a question word longer
        than two characters, or the first three lines when none match.
        """
        context_lines = [line for line in context.split("\n") if line.strip()]
        words = [word for word in question.lower().split(" ") if len(word) > 2]
        relevant = [
            line for line in context_lines
            if any(word in line.lower() for word in words)
        ][:5]

        if relevant:
            body = "\n\n".join(relevant)
            return f"Based on the menu information, here's what I found:\n\n{body}\n\n{FALLBACK_NOTE}"

        body = "\n\n".join(context_lines[:3])
        return (
            "I found menu information but couldn't find specific matches for your "
            f"question. Here's some general menu content:\n\n{body}\n\n{FALLBACK_NOTE}"
        )
