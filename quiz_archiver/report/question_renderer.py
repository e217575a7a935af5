import html
from datetime import tzinfo

from quiz_archiver.database.models import (
    AttemptAttachment,
    QuestionAttemptRecord,
    QuestionStepRecord,
)
from quiz_archiver.report.base import BaseQuestionRenderer
from quiz_archiver.report.formatting import format_float, userdate
from quiz_archiver.report.models import DisplayOptions

PLUGINFILE_PLACEHOLDER = "@@PLUGINFILE@@"

_STATE_LABELS = {
    "todo": "Not yet answered",
    "invalid": "Incomplete answer",
    "complete": "Answer saved",
    "needsgrading": "Requires grading",
    "finished": "Finished",
    "gaveup": "Not answered",
    "gradedwrong": "Incorrect",
    "gradedpartial": "Partially correct",
    "gradedright": "Correct",
    "mangrwrong": "Incorrect",
    "mangrpartial": "Partially correct",
    "mangrright": "Correct",
    "mangaveup": "Not answered",
    "mangrfinished": "Finished",
}

_STATE_CLASSES = {
    "gradedwrong": "incorrect",
    "mangrwrong": "incorrect",
    "gradedpartial": "partiallycorrect",
    "mangrpartial": "partiallycorrect",
    "gradedright": "correct",
    "mangrright": "correct",
    "gaveup": "notanswered",
    "mangaveup": "notanswered",
}


class DefaultQuestionRenderer(BaseQuestionRenderer):
    """Renders question attempts from their stored text, summaries and steps."""

    def __init__(self, wwwroot: str, tz: tzinfo, decimalpoints: int = 2) -> None:
        self._wwwroot = wwwroot.rstrip("/")
        self._tz = tz
        self._decimalpoints = decimalpoints

    def render(
        self,
        question_attempt: QuestionAttemptRecord,
        options: DisplayOptions,
        contextid: int,
        attachments: list[AttemptAttachment],
    ) -> str:
        qa = question_attempt
        state = qa.last_step.state if qa.last_step else "todo"
        classes = ["que", _STATE_CLASSES.get(state, state)]
        if options.readonly:
            classes.append("readonly")

        parts = [
            f'<div id="question-{qa.questionusageid}-{qa.slot}" class="{" ".join(classes)}">',
            self._render_info(qa, state, options),
            '<div class="content">',
            '<div class="formulation clearfix">',
            f'<h4 class="accesshide">{html.escape(qa.name)}</h4>',
            f'<div class="qtext">{self._rewrite_urls(qa, qa.questiontext, "questiontext", contextid)}</div>',
        ]
        if qa.responsesummary:
            parts.append(f'<div class="response">{html.escape(qa.responsesummary)}</div>')
        if options.attachments and attachments:
            parts.append(self._render_attachments(attachments))
        parts.append("</div>")

        outcome = self._render_outcome(qa, options, contextid)
        if outcome:
            parts.append(outcome)
        if options.history:
            parts.append(self._render_history(qa))

        parts.append("</div>")
        parts.append("</div>")
        return "\n".join(parts)

    def _render_info(self, qa: QuestionAttemptRecord, state: str, options: DisplayOptions) -> str:
        parts = [
            '<div class="info">',
            f'<h3 class="no">Question <span class="qno">{qa.slot}</span></h3>',
        ]
        if options.correctness:
            parts.append(f'<div class="state">{_STATE_LABELS.get(state, state)}</div>')
        if options.marks:
            parts.append(f'<div class="grade">{self._format_mark(qa)}</div>')
        if options.flags:
            parts.append('<div class="questionflag"></div>')
        parts.append("</div>")
        return "".join(parts)

    def _render_outcome(self, qa: QuestionAttemptRecord, options: DisplayOptions, contextid: int) -> str:
        feedback: list[str] = []
        if options.feedback and qa.last_step and qa.last_step.fraction is not None:
            label = _STATE_LABELS.get(qa.last_step.state, "")
            feedback.append(f'<div class="specificfeedback">Your answer is {label.lower()}.</div>')
        if options.generalfeedback and qa.generalfeedback:
            text = self._rewrite_urls(qa, qa.generalfeedback, "generalfeedback", contextid)
            feedback.append(f'<div class="generalfeedback">{text}</div>')
        if options.rightanswer and qa.rightanswer:
            feedback.append(
                f'<div class="rightanswer">The correct answer is: {html.escape(qa.rightanswer)}</div>'
            )
        if not feedback:
            return ""
        return '<div class="outcome clearfix"><div class="feedback">' + "".join(feedback) + "</div></div>"

    def _render_history(self, qa: QuestionAttemptRecord) -> str:
        rows = "".join(self._render_history_row(qa, step) for step in qa.steps)
        return (
            '<div class="history"><h4>Response history</h4>'
            '<table class="generaltable"><thead><tr>'
            "<th>Step</th><th>Time</th><th>State</th><th>Marks</th>"
            f"</tr></thead><tbody>{rows}</tbody></table></div>"
        )

    def _render_history_row(self, qa: QuestionAttemptRecord, step: QuestionStepRecord) -> str:
        marks = "" if step.fraction is None else format_float(step.fraction * qa.maxmark, self._decimalpoints)
        return (
            f"<tr><td>{step.sequencenumber + 1}</td>"
            f"<td>{userdate(step.timecreated, self._tz)}</td>"
            f"<td>{_STATE_LABELS.get(step.state, step.state)}</td>"
            f"<td>{marks}</td></tr>"
        )

    @staticmethod
    def _render_attachments(attachments: list[AttemptAttachment]) -> str:
        items = "".join(f"<li>{html.escape(a.file.filename)}</li>" for a in attachments)
        return f'<div class="attachments"><ul>{items}</ul></div>'

    def _format_mark(self, qa: QuestionAttemptRecord) -> str:
        maxmark = format_float(qa.maxmark, self._decimalpoints)
        step = qa.last_step
        if step is None or step.fraction is None:
            return f"Marked out of {maxmark}"
        mark = format_float(step.fraction * qa.maxmark, self._decimalpoints)
        return f"Mark {mark} out of {maxmark}"

    def _rewrite_urls(self, qa: QuestionAttemptRecord, text: str, filearea: str, contextid: int) -> str:
        base = (
            f"{self._wwwroot}/pluginfile.php/{contextid}/question/{filearea}"
            f"/{qa.questionusageid}/{qa.slot}/{qa.questionid}"
        )
        return text.replace(PLUGINFILE_PLACEHOLDER, base)
