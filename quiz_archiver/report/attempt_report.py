"""Rendering of quiz attempts into self-contained HTML reports."""

import html
import time
from collections.abc import Callable
from datetime import tzinfo

from quiz_archiver.archiving.quiz_manager import QuizManager
from quiz_archiver.archiving.types import AttemptState, ReportSection
from quiz_archiver.database.models import AttemptAttachment, AttemptRecord, FeedbackBand
from quiz_archiver.logging.logger import Log
from quiz_archiver.report.base import BasePageChrome, BaseQuestionRenderer
from quiz_archiver.report.formatting import (
    format_float,
    format_time,
    has_grades,
    rescale_grade,
    userdate,
)
from quiz_archiver.report.html_rewriter import ImageHandler, rewrite_html
from quiz_archiver.report.models import DisplayOptions, HeaderRow

REPORT_BODY_CLASS = "quiz-archiver-report"

NONE_PLACEHOLDER = "<i>None</i>"

# Overtime is only reported once the time limit is exceeded by more than this.
OVERTIME_GRACE_SECONDS = 60

MINIMAL_PAGE_CSS = """
nav.navbar {
    display: none !important;
}

footer {
    display: none !important;
}

div#page {
    margin-top: 0 !important;
    padding-left: 0 !important;
    padding-right: 0 !important;
    height: initial !important;
}

div#page-wrapper {
    height: initial !important;
}

.stackinputerror {
    display: none !important;
}
"""


class AttemptReport:
    """Generates the HTML report of a single quiz attempt.

    Output is deterministic for identical database state and clock value.
    """

    def __init__(
        self,
        quiz_manager: QuizManager,
        question_renderer: BaseQuestionRenderer,
        page_chrome: BasePageChrome,
        wwwroot: str,
        tz: tzinfo,
        image_handler: ImageHandler | None = None,
        clock: Callable[[], int] | None = None,
    ) -> None:
        self._quiz_manager = quiz_manager
        self._question_renderer = question_renderer
        self._page_chrome = page_chrome
        self._wwwroot = wwwroot.rstrip("/")
        self._tz = tz
        self._image_handler = image_handler
        self._clock = clock or (lambda: int(time.time()))

    def generate(self, attempt_id: int, sections: dict[ReportSection, bool]) -> str:
        """Render the requested sections of an attempt as an HTML fragment.

        Raises:
            AttemptNotFoundError: if the attempt does not belong to this quiz.
        """
        sections = ReportSection.resolve(sections)
        attempt = self._quiz_manager.get_attempt(attempt_id)

        fragment = ""
        if sections[ReportSection.HEADER]:
            rows = self._header_rows(attempt, sections[ReportSection.OVERALL_FEEDBACK])
            fragment += self._render_summary_table(rows)

        if sections[ReportSection.QUESTION]:
            fragment += self._render_questions(attempt, DisplayOptions.from_sections(sections))

        return fragment

    def generate_full_page(
        self,
        attempt_id: int,
        sections: dict[ReportSection, bool],
        fixrelativeurls: bool = True,
        minimal: bool = True,
        inlineimages: bool = True,
    ) -> str:
        """Render an attempt as a complete HTML document.

        Args:
            attempt_id: Attempt to render.
            sections: Report sections to include.
            fixrelativeurls: Add a ``<base>`` element pointing at the site root.
            minimal: Hide navigation and footer via injected CSS.
            inlineimages: Replace image sources with base64 data URIs.
        """
        quiz = self._quiz_manager.quiz
        document = (
            self._page_chrome.header(title=quiz.name, body_classes=[REPORT_BODY_CLASS])
            + self.generate(attempt_id, sections)
            + self._page_chrome.footer()
        )

        head_html = ""
        if fixrelativeurls:
            head_html += f'<base href="{html.escape(self._wwwroot, quote=True)}">'
        if minimal:
            head_html += f"<style>{MINIMAL_PAGE_CSS}</style>"

        image_handler = self._image_handler if inlineimages else None
        Log.debug("Rendering full page report", attempt_id=attempt_id, inline_images=inlineimages)
        return rewrite_html(document, head_html=head_html, image_handler=image_handler)

    def _header_rows(self, attempt: AttemptRecord, include_feedback: bool) -> list[HeaderRow]:
        quiz = self._quiz_manager.quiz
        course = self._quiz_manager.course
        user = self._quiz_manager.get_user(attempt.userid)
        finished = attempt.state is AttemptState.FINISHED

        timetaken, overtime = self._durations(attempt)

        user_url = f"{self._wwwroot}/user/view.php?id={user.id}&course={course.id}"
        rows = [
            HeaderRow(
                "user",
                "User",
                f'<a href="{html.escape(user_url, quote=True)}">{html.escape(user.fullname)}</a>',
            ),
            HeaderRow("useridnumber", "ID number", html.escape(user.idnumber) if user.idnumber else NONE_PLACEHOLDER),
            HeaderRow("course", "Course", f"{html.escape(course.fullname)} (Course-ID: {course.id})"),
            HeaderRow("quiz", "Quiz", f"{html.escape(quiz.name)} (Quiz-ID: {quiz.id})"),
            HeaderRow("startedon", "Started on", userdate(attempt.timestart, self._tz)),
            HeaderRow("state", "State", attempt.state.display_name),
        ]
        if finished:
            rows.append(HeaderRow("completedon", "Completed on", userdate(attempt.timefinish, self._tz)))
            rows.append(HeaderRow("timetaken", "Duration", timetaken))
        if overtime:
            rows.append(HeaderRow("overdue", "Overdue", overtime))

        grade = rescale_grade(attempt.sumgrades, quiz.grade, quiz.sumgrades)
        if has_grades(quiz.grade, quiz.sumgrades):
            rows.extend(self._grade_rows(attempt, grade))

        if include_feedback:
            feedback = self._overall_feedback(grade)
            rows.append(HeaderRow("feedback", "Feedback", feedback or NONE_PLACEHOLDER))

        rows.append(HeaderRow("exportdate", "Archived", userdate(self._clock(), self._tz)))
        return rows

    def _durations(self, attempt: AttemptRecord) -> tuple[str, str]:
        """Return the formatted time taken and overtime (empty if none) of an attempt."""
        if attempt.state is not AttemptState.FINISHED:
            return "Not yet finished", ""

        elapsed = attempt.timefinish - attempt.timestart
        if not elapsed:
            return "-", ""

        timelimit = self._quiz_manager.quiz.timelimit
        overtime = ""
        if timelimit and elapsed > timelimit + OVERTIME_GRACE_SECONDS:
            overtime = format_time(elapsed - timelimit)
        return format_time(elapsed), overtime

    def _grade_rows(self, attempt: AttemptRecord, grade: float | None) -> list[HeaderRow]:
        quiz = self._quiz_manager.quiz
        if grade is None:
            return [HeaderRow("grade", "Grade", "Not yet graded")]
        if attempt.state is not AttemptState.FINISHED:
            return []

        rows = []
        if quiz.grade != quiz.sumgrades:
            marks = self._format_grade(attempt.sumgrades or 0.0)
            rows.append(HeaderRow("marks", "Marks", f"{marks}/{self._format_grade(quiz.sumgrades)}"))

        scaled = f"<b>{self._format_grade(grade)}</b>"
        maxgrade = self._format_grade(quiz.grade)
        if quiz.grade != 100:
            percent = format_float((attempt.sumgrades or 0.0) * 100 / quiz.sumgrades, 0)
            content = f"{scaled} out of {maxgrade} (<b>{percent}</b>%)"
        else:
            content = f"{scaled} out of {maxgrade}"
        rows.append(HeaderRow("grade", "Grade", content))
        return rows

    def _overall_feedback(self, grade: float | None) -> str:
        if grade is None:
            return ""
        band = _matching_band(self._quiz_manager.list_feedback_bands(), grade)
        return band.feedbacktext if band else ""

    def _format_grade(self, value: float) -> str:
        return format_float(value, self._quiz_manager.quiz.decimalpoints)

    def _render_questions(self, attempt: AttemptRecord, options: DisplayOptions) -> str:
        contextid = self._quiz_manager.cm.contextid
        attachments_by_slot: dict[int, list[AttemptAttachment]] = {}
        if options.attachments:
            for attachment in self._quiz_manager.list_attachments(attempt.id):
                attachments_by_slot.setdefault(attachment.slot, []).append(attachment)

        rendered = [
            self._question_renderer.render(
                qa,
                options,
                contextid,
                attachments_by_slot.get(qa.slot, []),
            )
            for qa in self._quiz_manager.list_question_attempts(attempt)
        ]
        return "".join(rendered)

    @staticmethod
    def _render_summary_table(rows: list[HeaderRow]) -> str:
        body = "".join(
            f'<tr class="{row.key}"><th class="cell" scope="row">{row.title}</th>'
            f'<td class="cell">{row.content}</td></tr>'
            for row in rows
        )
        return (
            '<table class="generaltable generalbox quizreviewsummary mb-0">'
            f"<tbody>{body}</tbody></table>"
        )


def _matching_band(bands: list[FeedbackBand], grade: float) -> FeedbackBand | None:
    for band in bands:
        if band.mingrade <= grade < band.maxgrade:
            return band
    return None
