from __future__ import annotations
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, TYPE_CHECKING
from concurrent.futures import ThreadPoolExecutor, as_completed
import time
import logging

from apa_checker.ir import Heading, Issue
from apa_checker.llm.prompts import (
    SYSTEM_PROMPT,
    CONTENT_PROMPT_TEMPLATE,
    STRUCTURE_PROMPT_TEMPLATE,
    CITATIONS_PROMPT_TEMPLATE,
    FIX_PROMPT_TEMPLATE,
)

if TYPE_CHECKING:
    import anthropic

logger = logging.getLogger(__name__)


@dataclass
class LLMConfig:
    """Configuration for Claude API client."""
    api_key: str
    model: str = "claude-sonnet-4-20250514"
    max_tokens: int = 1500
    temperature: float = 0.05  # Near-deterministic for consistent JSON
    max_concurrent: int = 3  # One worker per analysis kind
    max_retries: int = 3
    min_request_interval: float = 0.3
    max_text_length: int = 3000


@dataclass
class ModelRequest:
    id: str
    kind: str  # content|structure|citations|fix
    prompt: str


@dataclass
class ModelResponse:
    id: str
    kind: str
    success: bool
    content: str = ""
    error: Optional[str] = None


def truncate_intelligently(text: str, max_length: int) -> str:
    """Cut at a sentence boundary when one falls in the last 30% of the budget."""
    if len(text) <= max_length:
        return text
    truncated = text[:max_length]
    last_sentence = truncated.rfind(". ")
    if last_sentence > max_length * 0.7:
        return truncated[:last_sentence + 1]
    return truncated + "..."


def extract_issue_context(issue: Issue, text: str, radius: int = 200) -> str:
    if issue.anchor_text and issue.anchor_text in text:
        idx = text.index(issue.anchor_text)
        return text[max(0, idx - radius):idx + len(issue.anchor_text) + radius]
    return text[:800]


class ClaudeClient:
    """Thin wrapper around Anthropic's Claude API for APA analysis requests."""

    def __init__(self, config: LLMConfig):
        self.config = config
        self._client: Optional["anthropic.Anthropic"] = None

    @property
    def client(self) -> "anthropic.Anthropic":
        """Lazy initialization of Anthropic client."""
        if self._client is None:
            try:
                import anthropic
                self._client = anthropic.Anthropic(api_key=self.config.api_key)
            except ImportError:
                raise ImportError(
                    "anthropic library not installed. "
                    "Run: pip install anthropic"
                )
        return self._client

    # Prompt builders, one per analysis kind

    def content_request(self, text: str, document_type: str = "academic paper") -> ModelRequest:
        excerpt = truncate_intelligently(text, self.config.max_text_length)
        return ModelRequest(
            id="content",
            kind="content",
            prompt=CONTENT_PROMPT_TEMPLATE.format(document_type=document_type, text=excerpt[:2000]),
        )

    def structure_request(self, text: str, headings: Sequence[Heading]) -> ModelRequest:
        heading_list = "\n".join(f"Level {h.level}: {h.text}" for h in headings)
        return ModelRequest(
            id="structure",
            kind="structure",
            prompt=STRUCTURE_PROMPT_TEMPLATE.format(
                headings=heading_list or "(no headings detected)",
                excerpt_chars=1500,
                text=text[:1500],
            ),
        )

    def citations_request(self, text: str, citations: Sequence[str]) -> ModelRequest:
        return ModelRequest(
            id="citations",
            kind="citations",
            prompt=CITATIONS_PROMPT_TEMPLATE.format(text=text[:1500], citations="\n".join(citations)),
        )

    def fix_request(self, issue: Issue, document_text: str) -> ModelRequest:
        return ModelRequest(
            id=f"fix_{issue.id}",
            kind="fix",
            prompt=FIX_PROMPT_TEMPLATE.format(
                title=issue.title,
                description=issue.description,
                severity=issue.severity,
                category=issue.category,
                context=extract_issue_context(issue, document_text)[:800],
            ),
        )

    def _single_request(self, request: ModelRequest) -> ModelResponse:
        """Execute a single request with retry logic for rate limits."""
        last_error: Optional[Exception] = None
        for attempt in range(self.config.max_retries + 1):
            try:
                time.sleep(self.config.min_request_interval)

                message = self.client.messages.create(
                    model=self.config.model,
                    max_tokens=self.config.max_tokens,
                    temperature=self.config.temperature,
                    system=SYSTEM_PROMPT,
                    messages=[{"role": "user", "content": request.prompt}],
                )

                content = ""
                for block in message.content:
                    if hasattr(block, "text"):
                        content += block.text

                return ModelResponse(id=request.id, kind=request.kind, success=True, content=content.strip())

            except ImportError:
                raise
            except Exception as e:
                last_error = e
                error_str = str(e).lower()

                is_rate_limit = (
                    "rate" in error_str or
                    "429" in error_str or
                    "too many requests" in error_str or
                    "overloaded" in error_str
                )

                if is_rate_limit and attempt < self.config.max_retries:
                    backoff = 2 ** (attempt + 1)
                    logger.warning(f"Rate limit hit for {request.id}, retry {attempt+1}/{self.config.max_retries} in {backoff}s")
                    time.sleep(backoff)
                    continue
                break

        logger.warning(f"Model request failed for {request.id}: {type(last_error).__name__}: {last_error}")
        return ModelResponse(id=request.id, kind=request.kind, success=False, error=str(last_error))

    def complete(self, request: ModelRequest) -> ModelResponse:
        return self._single_request(request)

    def complete_batch(self, requests: List[ModelRequest]) -> List[ModelResponse]:
        """
        Execute several requests in parallel.

        Returns responses in the same order as ``requests``. A failed request
        yields an unsuccessful response; it never raises.
        """
        if not requests:
            return []

        results: List[Optional[ModelResponse]] = [None] * len(requests)
        request_to_idx: Dict[str, int] = {req.id: i for i, req in enumerate(requests)}
        start_time = time.time()

        with ThreadPoolExecutor(max_workers=self.config.max_concurrent) as executor:
            future_to_request = {executor.submit(self._single_request, req): req for req in requests}
            for future in as_completed(future_to_request):
                req = future_to_request[future]
                try:
                    result = future.result()
                except Exception as e:
                    logger.warning(f"Model request {req.id} raised: {type(e).__name__}: {e}")
                    result = ModelResponse(id=req.id, kind=req.kind, success=False, error=str(e))
                results[request_to_idx[result.id]] = result

        elapsed = time.time() - start_time
        successful = sum(1 for r in results if r is not None and r.success)
        logger.info(f"Completed {len(requests)} model requests in {elapsed:.1f}s ({successful} successful)")
        return [r for r in results if r is not None]
