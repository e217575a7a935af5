from datetime import timezone

import pytest

from quiz_archiver.database.models import (
    AttemptAttachment,
    QuestionAttemptRecord,
    QuestionStepRecord,
    StoredFile,
)
from quiz_archiver.report.models import DisplayOptions
from quiz_archiver.report.question_renderer import DefaultQuestionRenderer


def _question(steps: list[QuestionStepRecord] | None = None, **overrides: object) -> QuestionAttemptRecord:
    values: dict = {
        "id": 500,
        "questionusageid": 77,
        "slot": 2,
        "questionid": 9,
        "maxmark": 2.0,
        "name": "Addition",
        "questiontext": '<p>What is 2+2?</p><img src="@@PLUGINFILE@@/sum.png">',
        "generalfeedback": "<p>Basic arithmetic.</p>",
        "rightanswer": "4",
        "responsesummary": "<b>4</b>",
        "steps": steps
        if steps is not None
        else [
            QuestionStepRecord(id=1, sequencenumber=0, state="todo", fraction=None, timecreated=0),
            QuestionStepRecord(id=2, sequencenumber=1, state="gradedpartial", fraction=0.5, timecreated=60),
        ],
    }
    values.update(overrides)
    return QuestionAttemptRecord(**values)


def _attachment(filename: str) -> AttemptAttachment:
    file = StoredFile(
        id=1,
        contenthash="ab" * 20,
        contextid=42,
        component="question",
        filearea="response_attachments",
        itemid=2,
        filepath="/",
        filename=filename,
        filesize=10,
    )
    return AttemptAttachment(usageid=77, slot=2, file=file)


@pytest.fixture()
def renderer() -> DefaultQuestionRenderer:
    return DefaultQuestionRenderer("https://moodle.example.com/", timezone.utc)


class TestRender:
    def test_wrapper_carries_slot_and_state(self, renderer: DefaultQuestionRenderer) -> None:
        result = renderer.render(_question(), DisplayOptions(), 42, [])

        assert result.startswith('<div id="question-77-2" class="que partiallycorrect readonly">')
        assert 'Question <span class="qno">2</span>' in result
        assert '<div class="state">Partially correct</div>' in result
        assert '<div class="grade">Mark 1.00 out of 2.00</div>' in result

    def test_unanswered_question_shows_max_mark(self, renderer: DefaultQuestionRenderer) -> None:
        question = _question(
            steps=[QuestionStepRecord(id=1, sequencenumber=0, state="todo", fraction=None, timecreated=0)]
        )

        result = renderer.render(question, DisplayOptions(), 42, [])

        assert "Marked out of 2.00" in result
        assert "Not yet answered" in result

    def test_pluginfile_placeholder_is_rewritten(self, renderer: DefaultQuestionRenderer) -> None:
        result = renderer.render(_question(), DisplayOptions(), 42, [])

        assert (
            '<img src="https://moodle.example.com/pluginfile.php/42/question/questiontext/77/2/9/sum.png">'
            in result
        )

    def test_response_summary_is_escaped(self, renderer: DefaultQuestionRenderer) -> None:
        result = renderer.render(_question(), DisplayOptions(), 42, [])
        assert '<div class="response">&lt;b&gt;4&lt;/b&gt;</div>' in result

    def test_optional_parts_are_hidden_by_default(self, renderer: DefaultQuestionRenderer) -> None:
        result = renderer.render(_question(), DisplayOptions(), 42, [_attachment("essay.pdf")])

        assert "outcome" not in result
        assert "Response history" not in result
        assert "essay.pdf" not in result

    def test_feedback_and_right_answer(self, renderer: DefaultQuestionRenderer) -> None:
        options = DisplayOptions(feedback=True, generalfeedback=True, rightanswer=True)

        result = renderer.render(_question(), options, 42, [])

        assert "Your answer is partially correct." in result
        assert '<div class="generalfeedback"><p>Basic arithmetic.</p></div>' in result
        assert "The correct answer is: 4" in result

    def test_history_lists_every_step(self, renderer: DefaultQuestionRenderer) -> None:
        result = renderer.render(_question(), DisplayOptions(history=True), 42, [])

        assert result.count("<tr><td>") == 2
        assert "<td>Thursday, 01 January 1970, 12:01 AM</td>" in result
        assert "<td>1.00</td>" in result

    def test_attachments_are_listed(self, renderer: DefaultQuestionRenderer) -> None:
        attachments = [_attachment("essay.pdf"), _attachment("a&b.png")]

        result = renderer.render(_question(), DisplayOptions(attachments=True), 42, attachments)

        assert '<div class="attachments"><ul><li>essay.pdf</li><li>a&amp;b.png</li></ul></div>' in result

    def test_output_is_deterministic(self, renderer: DefaultQuestionRenderer) -> None:
        options = DisplayOptions(feedback=True, history=True)
        assert renderer.render(_question(), options, 42, []) == renderer.render(_question(), options, 42, [])
