"""
Client for the AI chat-completions gateway.

Every interview step that needs generated text goes through
``GenerationService.generate``: it turns a ``GenerationRequest`` into a
system/user prompt pair, posts it to the gateway and returns the raw text
content. Gateway failures are mapped onto ``GenerationFailed`` with a kind
the caller can show to the user.
"""
import logging
from typing import List, Optional, Tuple

import httpx

from config import settings
from enums import GenerationErrorKind, GenerationTask
from errors import GenerationFailed
from schemas import GenerationRequest, QARecord

logger = logging.getLogger(__name__)

RATE_LIMIT_MESSAGE = "Rate limit exceeded. Please try again in a moment."
QUOTA_MESSAGE = "AI credits exhausted. Please add more credits."
GENERIC_MESSAGE = "AI service is unavailable. Please try again."

TYPE_GUIDELINES = """Guidelines:
- For technical interviews: Focus on problem-solving, coding concepts, system design, and technical knowledge relevant to the role
- For behavioral interviews: Use STAR method questions about past experiences, teamwork, leadership, and conflict resolution
- For case study interviews: Present business scenarios that require analytical thinking and structured problem-solving"""


def _question_prompts(request: GenerationRequest) -> Tuple[str, str]:
    system_prompt = f"""You are an expert interviewer conducting a {request.difficulty}-level {request.interview_type} interview for a {request.job_role} position.

Your role is to ask thoughtful, relevant interview questions that assess the candidate's skills and experience.

{TYPE_GUIDELINES}

Keep questions clear, focused, and appropriate for the {request.difficulty} level."""

    previous = ""
    if request.previous_questions:
        numbered = "\n".join(f"{i}. {q}" for i, q in enumerate(request.previous_questions, start=1))
        previous = (
            f"\n\nPrevious questions asked:\n{numbered}\n\n"
            "Ask a different question that hasn't been covered yet."
        )

    user_prompt = f"""Generate question {request.question_number} of {request.total_questions} for this {request.interview_type} interview.{previous}

Provide ONLY the interview question, nothing else. No preamble, no explanation, just the question itself."""
    return system_prompt, user_prompt


def _evaluation_prompts(request: GenerationRequest) -> Tuple[str, str]:
    system_prompt = f"""You are an expert interviewer evaluating answers for a {request.difficulty}-level {request.interview_type} interview for a {request.job_role} position.

Evaluate the candidate's answer based on:
- Relevance and completeness
- Technical accuracy (for technical questions)
- Communication clarity
- Use of specific examples (for behavioral questions)
- Problem-solving approach (for case studies)

Be constructive and specific in your feedback."""

    user_prompt = f"""Question: {request.current_question}

Candidate's Answer: {request.user_answer}

Provide your evaluation in the following JSON format ONLY (no other text):
{{
  "score": <number from 1-10>,
  "feedback": "<specific, constructive feedback in 2-3 sentences>"
}}"""
    return system_prompt, user_prompt


def _format_qa(all_qa: List[QARecord]) -> str:
    return "\n".join(
        f"\nQ{i}: {qa.question}\nA{i}: {qa.answer}\nScore: {qa.score:g}/10"
        for i, qa in enumerate(all_qa, start=1)
    )


def _feedback_prompts(request: GenerationRequest) -> Tuple[str, str]:
    system_prompt = f"""You are an expert career coach providing comprehensive interview feedback for a {request.difficulty}-level {request.interview_type} interview for a {request.job_role} position.

Provide actionable, encouraging feedback that helps the candidate improve."""

    user_prompt = f"""Here is the complete interview:
{_format_qa(request.all_qa)}

Provide a comprehensive evaluation in the following JSON format ONLY (no other text):
{{
  "overallScore": <number from 1-10, calculated as weighted average>,
  "strengths": ["<strength 1>", "<strength 2>", "<strength 3>"],
  "improvements": ["<area 1>", "<area 2>", "<area 3>"],
  "summary": "<2-3 sentence overall assessment>"
}}"""
    return system_prompt, user_prompt


PROMPT_BUILDERS = {
    GenerationTask.GENERATE_QUESTION: _question_prompts,
    GenerationTask.EVALUATE_ANSWER: _evaluation_prompts,
    GenerationTask.GENERATE_FEEDBACK: _feedback_prompts,
}


def build_messages(request: GenerationRequest) -> List[dict]:
    system_prompt, user_prompt = PROMPT_BUILDERS[request.type](request)
    return [
        {"role": "system", "content": system_prompt},
        {"role": "user", "content": user_prompt},
    ]


class GenerationService:
    """Stateless request/response client for the chat-completions gateway."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        url: Optional[str] = None,
        model: Optional[str] = None,
        temperature: Optional[float] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key if api_key is not None else settings.ai_gateway_api_key
        self.url = url or settings.ai_gateway_url
        self.model = model or settings.ai_model
        self.temperature = temperature if temperature is not None else settings.ai_temperature
        self.timeout = timeout if timeout is not None else settings.ai_timeout_seconds
        self.transport = transport

    async def generate(self, request: GenerationRequest) -> str:
        """Run one generation task and return the gateway's text content."""
        if not self.api_key:
            logger.error("AI gateway api key is not configured")
            raise GenerationFailed(GENERIC_MESSAGE, details={"reason": "missing_api_key"})

        logger.info(
            "Processing %s request for %s %s interview",
            request.type.value, request.job_role, request.interview_type,
        )
        payload = {
            "model": self.model,
            "messages": build_messages(request),
            "temperature": self.temperature,
        }

        try:
            async with httpx.AsyncClient(transport=self.transport, timeout=self.timeout) as client:
                response = await client.post(
                    self.url,
                    headers={
                        "Authorization": f"Bearer {self.api_key}",
                        "Content-Type": "application/json"
                    },
                    json=payload,
                )
        except httpx.TimeoutException as e:
            logger.error("AI gateway timed out after %ss: %s", self.timeout, e)
            raise GenerationFailed(GENERIC_MESSAGE, details={"reason": "timeout"}) from e
        except httpx.HTTPError as e:
            logger.error("AI gateway request failed: %s", e)
            raise GenerationFailed(GENERIC_MESSAGE, details={"reason": str(e)}) from e

        if response.status_code == 429:
            raise GenerationFailed(RATE_LIMIT_MESSAGE, kind=GenerationErrorKind.RATE_LIMITED)
        if response.status_code == 402:
            raise GenerationFailed(QUOTA_MESSAGE, kind=GenerationErrorKind.QUOTA_EXHAUSTED)
        if response.status_code != 200:
            logger.error("AI gateway error: %s %s", response.status_code, response.text)
            raise GenerationFailed(GENERIC_MESSAGE, details={"status": response.status_code})

        try:
            data = response.json()
            content = data["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            logger.error("Unexpected AI gateway response body: %s", response.text[:500])
            raise GenerationFailed(GENERIC_MESSAGE, details={"reason": "bad_response"}) from e

        if not content or not str(content).strip():
            raise GenerationFailed(GENERIC_MESSAGE, details={"reason": "empty_content"})

        logger.info("Successfully processed %s request", request.type.value)
        return content
