"""Sequential, failure-isolated answering of question batches.

Questions are answered one at a time with a fixed pause between generator
calls; this is the backpressure against the chat provider's rate limit.
"""

import logging
import time
from typing import Callable, List, Optional, Sequence

from rfp_assist.models import ConversationTurn, Question, QuestionStatus
from rfp_assist.rag.generator import INVALID_QUESTION_ANSWER, AnswerGenerator

logger = logging.getLogger(__name__)

RETRY_HINT = "Failed to generate an answer. Please try regenerating this question."


class BatchProcessor:
    def __init__(
        self,
        generator: AnswerGenerator,
        request_delay: float = 1.0,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.generator = generator
        self.request_delay = request_delay
        self.sleep = sleep

    def _answer(
        self, question: Question, history: Sequence[ConversationTurn]
    ) -> Question:
        try:
            result = self.generator.generate_answer(question.text, history)
        except Exception as e:
            logger.warning(f"Question {question.id} failed: {e}")
            return question.model_copy(
                update={
                    "status": QuestionStatus.FAILED,
                    "answer": RETRY_HINT,
                    "sources": [],
                }
            )
        return question.model_copy(
            update={
                "status": QuestionStatus.COMPLETED,
                "answer": result.answer,
                "sources": result.sources,
            }
        )

    @staticmethod
    def _reject_blank(question: Question) -> Question:
        return question.model_copy(
            update={
                "status": QuestionStatus.FAILED,
                "answer": INVALID_QUESTION_ANSWER,
                "sources": [],
            }
        )

    def process_questions(
        self,
        questions: Sequence[Question],
        history: Optional[Sequence[ConversationTurn]] = None,
    ) -> List[Question]:
        """Answer questions in order, never letting one failure stop the batch.

        Args:
            questions: Questions to answer, in the order they appear.
            history: Optional turns loaded by the caller; they precede the
                answers produced within this batch.

        Returns:
            The questions, same order and length, with ``answer``,
            ``sources`` and ``status`` filled in.
        """
        turns: List[ConversationTurn] = list(history or [])
        processed: List[Question] = []
        calls = 0

        for question in questions:
            if not question.text or not question.text.strip():
                processed.append(self._reject_blank(question))
                continue

            if calls > 0 and self.request_delay > 0:
                self.sleep(self.request_delay)
            calls += 1

            answered = self._answer(question, list(turns))
            if answered.status == QuestionStatus.COMPLETED:
                turns.append(ConversationTurn.from_question(answered))
            processed.append(answered)

        failed = sum(1 for q in processed if q.status == QuestionStatus.FAILED)
        logger.info(
            f"Processed batch of {len(processed)} questions: {len(processed) - failed} completed, {failed} failed"
        )
        return processed

    def regenerate(
        self,
        question: Question,
        history: Optional[Sequence[ConversationTurn]] = None,
    ) -> Question:
        """Answer a single question again, with the same failure isolation."""
        if not question.text or not question.text.strip():
            return self._reject_blank(question)
        return self._answer(question, list(history or []))
