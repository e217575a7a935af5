from abc import ABC, abstractmethod

from quiz_archiver.database.models import AttemptAttachment, QuestionAttemptRecord
from quiz_archiver.report.models import DisplayOptions


class BaseQuestionRenderer(ABC):
    """Contract for rendering one question attempt of a quiz attempt."""

    @abstractmethod
    def render(
        self,
        question_attempt: QuestionAttemptRecord,
        options: DisplayOptions,
        contextid: int,
        attachments: list[AttemptAttachment],
    ) -> str:
        """Render a question attempt as an HTML fragment.

        Args:
            question_attempt: Question attempt of a single slot, including its steps.
            options: Parts of the question to include.
            contextid: Context of the quiz the attempt belongs to, used to
                       rewrite embedded file URLs.
            attachments: Files attached to this slot.

        Returns:
            HTML fragment. Must be deterministic for identical input.
        """


class BasePageChrome(ABC):
    """Contract for the page boilerplate surrounding a full-page report."""

    @abstractmethod
    def header(self, title: str, body_classes: list[str]) -> str:
        """Opening markup up to and including the start of the main content."""

    @abstractmethod
    def footer(self) -> str:
        """Closing markup after the main content."""
