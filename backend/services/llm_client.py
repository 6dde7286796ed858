"""LLM Client for Groq API integration."""
import time
from dataclasses import dataclass
from typing import Optional, Dict, Any, Sequence
from groq import Groq
from groq import RateLimitError, AuthenticationError, APIError, APITimeoutError
import logging

from models.match import RankedMatch
from config import GROQ_API_KEY

logger = logging.getLogger(__name__)


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

    def __init__(self, api_key: Optional[str] = None):
        """
        Initialize LLM client with Groq API key.

        Args:
            api_key: Groq API key (defaults to GROQ_API_KEY from environment)
        """
        self.api_key = api_key or GROQ_API_KEY
        if not self.api_key:
            raise ValueError("GROQ_API_KEY must be provided or set in environment")

        self.client = Groq(api_key=self.api_key)
        logger.info("LLMClient initialized successfully")

    def generate(
        self,
        model: str,
        prompt: str,
        max_tokens: int = 2048,
        temperature: float = 0.7
    ) -> LLMResponse:
        """
        Generate response using Groq API.

        Args:
            model: Model name, usually from GenerationModelSelector
            prompt: Complete prompt with reference blocks and question
            max_tokens: Maximum tokens to generate
            temperature: Sampling temperature

        Returns:
            LLMResponse with text, token counts, and latency

        Raises:
            LLMClientError: Structured error with code, message, and details
        """
        start_time = time.time()

        try:
            logger.debug(f"Generating response with model: {model}")

            response = self.client.chat.completions.create(
                model=model,
                messages=[
                    {
                        "role": "user",
                        "content": prompt
                    }
                ],
                max_tokens=max_tokens,
                temperature=temperature
            )
        except RateLimitError as e:
            raise self._error(
                "RATE_LIMIT_ERROR",
                "Rate limit exceeded. Please try again in a few moments.",
                model, start_time, e, retry_after=60
            )
        except AuthenticationError as e:
            raise self._error(
                "AUTHENTICATION_ERROR",
                "Authentication failed. Please check your API key.",
                model, start_time, e
            )
        except APITimeoutError as e:
            raise self._error("TIMEOUT_ERROR", "Request timed out. Please try again.", model, start_time, e)
        except APIError as e:
            raise self._error("API_ERROR", f"Groq API error: {str(e)}", model, start_time, e)
        except Exception as e:
            raise self._error(
                "UNKNOWN_ERROR",
                f"Unexpected error during generation: {str(e)}",
                model, start_time, e, error_type=type(e).__name__
            )

        latency_ms = int((time.time() - start_time) * 1000)

        text = response.choices[0].message.content if response.choices else None
        if not text:
            raise LLMClientError(LLMError(
                code="EMPTY_RESPONSE",
                message="No answer generated by the model",
                details={"model": model, "latency_ms": latency_ms}
            ))

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
    def build_prompt(question: str, matches: Optional[Sequence[RankedMatch]] = None) -> str:
        """
        Build the answer prompt from re-ranked reference chunks.

        Args:
            question: User question
            matches: Re-ranked matches, best first

        Returns:
            Complete prompt string
        """
        reference_blocks = []
        for index, ranked in enumerate(matches or [], start=1):
            similarity = ranked.match.similarity * 100
            reference_blocks.append(
                f"[Reference {index}] (similarity: {similarity:.1f}%)\n{ranked.match.content}"
            )
        references = "\n\n".join(reference_blocks)

        return f"""You are an educational assistant with deep knowledge of marketing.
The [Reference] blocks below are fragments taken from a marketing learning programme.
Interpret and combine them to give the user a clear answer to the [Question].

Rules:
1. Combine the references: look for shared ideas and patterns, and infer the overall picture from fragments.
2. Even without a direct definition, explain the underlying concept the references point to, using examples where they help a beginner.
3. Only answer "The provided information cannot answer this question" when no reference is related at all.
4. Format the answer in Markdown with headings, bullet points and emphasis where appropriate.
5. Answer in the language of the question.

{references}

[Question]
{question}

[Answer]"""
