"""
Resilient Model Client
======================

Turns an ApplicationAnalysis into a validated TestSpecification using an
OpenAI-compatible chat completion endpoint.

Every remote call goes through:
- the circuit breaker (fast-fail while the endpoint is known to be down)
- the retry policy (exponential backoff for transient failures)
- a per-operation timeout (a timeout counts as a failure)

Model output is parsed and validated before it is returned. Invalid output
is never retried: it is a content problem, not a transient fault.
"""

import asyncio
import json
import logging
import time
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, List, Optional

import httpx
from pydantic import ValidationError as PydanticValidationError

from ..config import AIConfig, ModelParameters, get_ai_config
from ..errors import CircuitOpenError, ModelServiceError, ValidationError
from ..models import ApplicationAnalysis, LearningContext, TestSpecification
from .circuit_breaker import CircuitBreaker, CircuitState
from .retry import RetryPolicy, retry_async
from .usage import UsageTracker

logger = logging.getLogger(__name__)


@dataclass
class ChatCompletion:
    """Content and token usage of one completion"""
    content: str
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


@dataclass
class ApiCallLogEntry:
    """One attempt against the model endpoint"""
    timestamp: str
    operation: str
    model: str
    attempt: int
    status: str  # success, failure
    latency_ms: int
    error: Optional[str] = None
    prompt_tokens: Optional[int] = None
    completion_tokens: Optional[int] = None
    total_tokens: Optional[int] = None


@dataclass
class ClientContext:
    """
    Mutable state owned by one client: breaker and call log.

    Kept outside the client so independent instances (e.g. one per tenant)
    never share breaker state.
    """
    breaker: CircuitBreaker
    call_log: List[ApiCallLogEntry] = field(default_factory=list)

    @classmethod
    def create(cls, config: AIConfig, clock: Callable[[], float] = time.monotonic) -> "ClientContext":
        return cls(breaker=CircuitBreaker.from_settings(config.circuit_breaker, clock=clock))


class OpenAIChatTransport:
    """Minimal async client for /chat/completions"""

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://api.openai.com/v1",
        organization: Optional[str] = None,
        timeout_s: float = 30.0
    ):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.organization = organization
        self.timeout_s = timeout_s

    async def complete(
        self,
        model: str,
        messages: List[Dict[str, str]],
        parameters: ModelParameters
    ) -> ChatCompletion:
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json"
        }
        if self.organization:
            headers["OpenAI-Organization"] = self.organization

        async with httpx.AsyncClient(timeout=self.timeout_s) as client:
            response = await client.post(
                f"{self.base_url}/chat/completions",
                headers=headers,
                json={
                    "model": model,
                    "messages": messages,
                    "temperature": parameters.temperature,
                    "max_tokens": parameters.max_tokens,
                    "top_p": parameters.top_p,
                    "frequency_penalty": parameters.frequency_penalty,
                    "presence_penalty": parameters.presence_penalty,
                    "response_format": {"type": "json_object"}
                }
            )

        if response.status_code != 200:
            raise ModelServiceError(response.status_code, response.text[:200])

        data = response.json()
        choices = data.get("choices") or [{}]
        usage = data.get("usage") or {}
        return ChatCompletion(
            content=(choices[0].get("message") or {}).get("content") or "",
            prompt_tokens=usage.get("prompt_tokens", 0),
            completion_tokens=usage.get("completion_tokens", 0),
            total_tokens=usage.get("total_tokens", 0)
        )


class ResilientModelClient:
    """
    Model client with circuit breaking, retry and response validation.

    The transport, sleep and clock are injectable. Without an injected
    transport the OpenAI API key must be configured; a missing key raises
    ConfigurationError here rather than failing each request.
    """

    OPERATION = "generateTestSpecification"

    def __init__(
        self,
        config: Optional[AIConfig] = None,
        transport=None,
        context: Optional[ClientContext] = None,
        usage_tracker: Optional[UsageTracker] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic
    ):
        self.config = config or get_ai_config()
        if transport is None:
            transport = OpenAIChatTransport(
                api_key=self.config.get_api_key(),
                base_url=self.config.base_url,
                organization=self.config.organization,
                timeout_s=self.config.timeout.request_timeout_ms / 1000
            )
        self.transport = transport
        self.context = context or ClientContext.create(self.config, clock=clock)
        self.retry_policy = RetryPolicy.from_settings(self.config.retry)
        self.usage_tracker = usage_tracker
        self.sleep = sleep
        self.clock = clock

    # =========================================================================
    # GENERATION
    # =========================================================================

    async def generate_test_specification(
        self,
        analysis: ApplicationAnalysis,
        scenario: str,
        context: Optional[LearningContext] = None,
        user_id: Optional[str] = None,
        project_id: Optional[str] = None
    ) -> TestSpecification:
        """
        Ask the model for a test plan and return it validated.

        Raises CircuitOpenError, MaxRetriesExceededError, ValidationError
        or UsageLimitExceededError.
        """
        model = self.config.get_model_for_operation("generation")
        timeout_ms = self.config.get_timeout_ms("generation")

        if self.usage_tracker:
            self.usage_tracker.check_limits(user_id=user_id, project_id=project_id)

        messages = [
            {"role": "system", "content": self.config.prompts.system_role},
            {"role": "user", "content": self.construct_prompt(analysis, scenario, context)}
        ]

        async def attempt(number: int) -> ChatCompletion:
            return await self._call_model(number, model, messages, timeout_ms)

        completion = await retry_async(
            attempt,
            self.retry_policy,
            sleep=self.sleep,
            no_retry=(CircuitOpenError,),
            label=self.OPERATION
        )

        if self.usage_tracker:
            cost = self.usage_tracker.record(
                model,
                completion.prompt_tokens,
                completion.completion_tokens,
                user_id=user_id,
                project_id=project_id
            )
            logger.debug(f"[AI-ENGINE] Estimated cost ${cost:.4f}")

        try:
            specification = self.validate_response(self.parse_response(completion.content))
        except ValidationError as e:
            logger.error(f"[AI-ENGINE] {e}")
            raise

        logger.info(
            f"[AI-ENGINE] Generated specification '{specification.test_name}' "
            f"with {len(specification.steps)} steps"
        )
        return specification

    async def _call_model(
        self,
        attempt: int,
        model: str,
        messages: List[Dict[str, str]],
        timeout_ms: int
    ) -> ChatCompletion:
        """One breaker-guarded, time-bounded attempt. Appends one log entry."""
        breaker = self.context.breaker
        start = self.clock()

        try:
            breaker.before_call()
        except CircuitOpenError as e:
            self._log_attempt(model, attempt, start, "failure", error=str(e))
            raise

        try:
            completion = await asyncio.wait_for(
                self.transport.complete(model=model, messages=messages, parameters=self.config.parameters),
                timeout=timeout_ms / 1000
            )
        except asyncio.CancelledError:
            # a cancelled attempt must not hold a half-open trial slot
            breaker.record_failure()
            self._log_attempt(model, attempt, start, "failure", error="Request cancelled")
            raise
        except Exception as e:
            breaker.record_failure()
            if isinstance(e, asyncio.TimeoutError):
                error = f"Request timed out after {timeout_ms}ms"
            else:
                error = str(e) or e.__class__.__name__
            self._log_attempt(model, attempt, start, "failure", error=error)
            raise

        breaker.record_success()
        self._log_attempt(model, attempt, start, "success", completion=completion)
        return completion

    def _log_attempt(
        self,
        model: str,
        attempt: int,
        start: float,
        status: str,
        error: Optional[str] = None,
        completion: Optional[ChatCompletion] = None
    ):
        entry = ApiCallLogEntry(
            timestamp=datetime.now().isoformat(),
            operation=self.OPERATION,
            model=model,
            attempt=attempt,
            status=status,
            latency_ms=int((self.clock() - start) * 1000),
            error=error,
            prompt_tokens=completion.prompt_tokens if completion else None,
            completion_tokens=completion.completion_tokens if completion else None,
            total_tokens=completion.total_tokens if completion else None
        )
        self.context.call_log.append(entry)

        if status == "success":
            logger.info(f"[AI-ENGINE] {json.dumps(asdict(entry))}")
        else:
            logger.warning(f"[AI-ENGINE] {json.dumps(asdict(entry))}")

    # =========================================================================
    # PROMPT
    # =========================================================================

    def construct_prompt(
        self,
        analysis: ApplicationAnalysis,
        scenario: str,
        context: Optional[LearningContext] = None
    ) -> str:
        """Build the user prompt from the page analysis and scenario"""
        element_lines = []
        for idx, element in enumerate(analysis.elements[:self.config.prompts.max_elements]):
            attrs = " ".join(
                f'{key}="{value}"' for key, value in element.attributes.items() if value
            )
            element_lines.append(f"{idx + 1}. {element.type} [{attrs}]")

        pattern_lines = [
            f"- {pattern.type.value}: {pattern.description}" for pattern in analysis.patterns
        ]

        learning_feedback = ""
        if context:
            learning_feedback = (
                "\n\nLearning Context:\n"
                f"- Successful patterns: {', '.join(context.successful_patterns)}\n"
                f"- Patterns to avoid: {', '.join(context.failing_patterns)}\n"
                f"- Preferred selector strategies: {', '.join(context.selector_preferences)}"
            )

        return f"""Analyze the following web page and generate a test case for the scenario: "{scenario}"

Page Information:
- URL: {analysis.url}
- Title: {analysis.title}
- Is SPA: {str(analysis.metadata.is_spa).lower()}

Interactive Elements:
{chr(10).join(element_lines)}

UI Patterns Detected:
{chr(10).join(pattern_lines)}
{learning_feedback}

Generate a comprehensive test case that:
1. Uses descriptive element descriptions (not exact selectors)
2. Includes all necessary steps to complete the scenario
3. Adds appropriate assertions to verify success
4. Uses wait steps when needed for dynamic content
5. Follows best practices for test maintainability

Return the test specification in JSON format with this structure:
{{
  "testName": "descriptive test name",
  "description": "detailed description of what the test validates",
  "steps": [
    {{
      "action": "navigate|click|type|assert|wait",
      "description": "what this step does",
      "elementDescription": "description of the element (for click/type/assert)",
      "value": "value to type (for type action)",
      "assertion": {{
        "type": "exists|visible|text|value|attribute",
        "expected": "expected value"
      }}
    }}
  ],
  "tags": ["tag1", "tag2"]
}}"""

    # =========================================================================
    # RESPONSE HANDLING
    # =========================================================================

    def parse_response(self, content: str) -> Any:
        """Decode the model's JSON, tolerating markdown code fences"""
        cleaned = (content or "").strip()
        if not cleaned:
            raise ValidationError("AI generated empty response")

        if "```json" in cleaned:
            cleaned = cleaned.split("```json")[1].split("```")[0]
        elif "```" in cleaned:
            cleaned = cleaned.split("```")[1].split("```")[0]
        cleaned = cleaned.strip()

        try:
            return json.loads(cleaned)
        except json.JSONDecodeError as e:
            raise ValidationError(f"AI generated invalid JSON: {e}") from e

    def validate_response(self, raw: Any) -> TestSpecification:
        """
        Enforce the structural contract on decoded model output.

        All-or-nothing: any violation raises ValidationError listing every
        offending field.
        """
        try:
            return TestSpecification.model_validate(raw)
        except PydanticValidationError as e:
            issues = [
                f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}"
                for err in e.errors()
            ]
            raise ValidationError(
                "AI generated invalid test specification. "
                f"Validation errors: {', '.join(issues)}",
                issues
            ) from e

    # =========================================================================
    # MANAGEMENT
    # =========================================================================

    def get_logs(self) -> List[ApiCallLogEntry]:
        return list(self.context.call_log)

    def clear_logs(self):
        self.context.call_log.clear()

    def get_circuit_state(self) -> CircuitState:
        return self.context.breaker.get_state()

    def reset_circuit(self):
        """Force the breaker back to CLOSED (operational recovery, tests)"""
        self.context.breaker.reset()
        logger.info("[AI-ENGINE] Circuit breaker reset")
