"""
Interviewer agent.

Produces the interviewer's side of the conversation: the opening line, the
next question given the history, and the evaluation-mode rubric text.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from mock_interviewer.models.llm_client import LLMClient, LLMClientBase
from mock_interviewer.schemas import ConversationTurn, InterviewContext, TurnRole

logger = logging.getLogger(__name__)


class DialogueGenerator:
    """
    LLM-backed interviewer.

    Thin adapter over the generation provider: it owns the prompts and
    leaves retries and timeouts to the client.
    """

    INTRO_PROMPT = """You are Rachel, a professional and friendly mock interviewer.

Candidate interview details:
- Company: {company}
- Role: {role}
- Level: {level}

Begin the interview by greeting the candidate. Clearly state:
• The role: "{role}"
• The level: "{level}"
• The company: "{company}"

Say it as: "This is a level {level} interview for the {role} position at {company}."

Ask how they are doing. Keep it under 3 sentences.

Do not introduce yourself as the candidate.
Do not make up extra information about the company.
Do not ask anything unrelated to the role, level, or company."""

    QUESTION_PROMPT = """You are a professional and friendly mock interviewer.

You are interviewing a candidate for the role of {role} at {company}, specifically for a level {level} position.

Your task:
- Ask one realistic, relevant, and technical interview question.
- Tailor the question to the domain or expected responsibilities of {company}, if known.
- Consider the candidate's last response and keep the conversation flowing naturally.
- DO NOT say phrases like "Here's your next question" or "Let's begin with".
- DO NOT give feedback or commentary. Only ask the question.
- Keep the question concise (1-2 sentences). It should sound like it's from a real human interviewer."""

    EVALUATION_PROMPT = """You are evaluating a mock interview for the role of {role} at {company}, level {level}.

{scope}

Provide a score out of 10 and a one-sentence explanation for each of the following categories:
• Correctness
• Clarity & Structure
• Completeness
• Relevance
• Confidence & Tone
• Communication Skills

Use this exact format, one line per category:
• Correctness: 6/10 – Explanation of the score
• Clarity & Structure: 5/10 – Explanation of the score
• Completeness: 4/10 – Explanation of the score
• Relevance: 5/10 – Explanation of the score
• Confidence & Tone: 7/10 – Explanation of the score
• Communication Skills: 6/10 – Explanation of the score

Overall Feedback: A short paragraph summarizing the strengths and areas for improvement."""

    SESSION_SCOPE = (
        "Evaluate the candidate's overall performance across all of their answers, "
        "given below in order."
    )
    ANSWER_SCOPE = "Evaluate only the candidate's latest answer, given below."

    def __init__(self, llm_client: LLMClientBase | None = None) -> None:
        """
        Initialize the interviewer agent.

        Args:
            llm_client: Generation provider. Creates default if None.
        """
        self._llm_client = llm_client or LLMClient()

    async def opening(self, context: InterviewContext) -> str:
        """
        Generate the opening utterance.

        Only the system instruction is sent; there is no history yet.

        Args:
            context: Interview context.

        Returns:
            Greeting that names the role, level and company.
        """
        prompt = self.INTRO_PROMPT.format(
            company=context.company,
            role=context.role,
            level=context.level,
        )
        return await self._llm_client.generate(prompt, ())

    async def next_question(
        self,
        context: InterviewContext,
        turns: Sequence[ConversationTurn],
    ) -> str:
        """
        Generate the next interviewer question.

        Args:
            context: Interview context.
            turns: Full ordered conversation so far.

        Returns:
            The next question.
        """
        prompt = self.QUESTION_PROMPT.format(
            company=context.company,
            role=context.role,
            level=context.level,
        )
        return await self._llm_client.generate(prompt, list(turns))

    async def evaluate(
        self,
        context: InterviewContext,
        answers: Sequence[ConversationTurn],
        *,
        single_answer: bool = False,
    ) -> str:
        """
        Generate rubric text for the candidate's answers.

        Args:
            context: Interview context.
            answers: Candidate turns to evaluate.
            single_answer: Score one answer instead of the whole session.

        Returns:
            Rubric text in the bullet/score/overall feedback format.
        """
        candidate_turns = [
            turn
            for turn in answers
            if turn.role == TurnRole.CANDIDATE and turn.content.strip()
        ]
        prompt = self.EVALUATION_PROMPT.format(
            company=context.company,
            role=context.role,
            level=context.level,
            scope=self.ANSWER_SCOPE if single_answer else self.SESSION_SCOPE,
        )
        logger.debug(f"Requesting evaluation of {len(candidate_turns)} answer(s)")
        return await self._llm_client.generate(prompt, candidate_turns)
