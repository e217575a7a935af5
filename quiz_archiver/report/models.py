from dataclasses import dataclass

from quiz_archiver.archiving.types import ReportSection


@dataclass(frozen=True)
class DisplayOptions:
    """Controls which parts of a question are rendered into a report.

    Read-only mode, marks, correctness and flags are always shown in archived
    reports; manual comment links never are.
    """

    feedback: bool = False
    generalfeedback: bool = False
    rightanswer: bool = False
    history: bool = False
    attachments: bool = False
    readonly: bool = True
    marks: bool = True
    correctness: bool = True
    flags: bool = True
    manualcommentlink: bool = False

    @classmethod
    def from_sections(cls, sections: dict[ReportSection, bool]) -> "DisplayOptions":
        return cls(
            feedback=sections.get(ReportSection.QUESTION_FEEDBACK, False),
            generalfeedback=sections.get(ReportSection.GENERAL_FEEDBACK, False),
            rightanswer=sections.get(ReportSection.CORRECT_ANSWER, False),
            history=sections.get(ReportSection.ANSWER_HISTORY, False),
            attachments=sections.get(ReportSection.ATTACHMENTS, False),
        )


@dataclass(frozen=True)
class HeaderRow:
    """One key/value row of the attempt summary table."""

    key: str
    title: str
    content: str
