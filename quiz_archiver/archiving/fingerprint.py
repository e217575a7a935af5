import hashlib
import json

from quiz_archiver.database.repositories.quiz_repository import QuizRepository


def fingerprint(quiz_repo: QuizRepository, quiz_id: int) -> str:
    """Digest over the last-modified signals of a quiz and its attempts.

    Stable as long as neither the quiz nor any of its attempts changed. A quiz
    without attempts encodes the attempt signal as JSON null.

    Raises:
        QuizNotFoundError: if the quiz does not exist.
    """
    quiz_modified, attempts_modified = quiz_repo.get_last_modified(quiz_id)
    payload = json.dumps(
        {
            "quiz_timemodified": quiz_modified,
            "attempts_timemodified_max": attempts_modified,
        },
        sort_keys=True,
        separators=(",", ":"),
    )
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()
