"""
Answer values as stored in quiz_answers.answer.

Checkbox answers are a list of strings; every other type is a single
string. Inside the app an answer is either a Scalar or a MultiValue and
only this module knows how they are serialised in the text column.
Object answers from the client are stored as JSON text and read back as
a Scalar.
"""
import json
from dataclasses import dataclass, field


@dataclass(frozen=True)
class Scalar:
    value: str

    @property
    def is_multi(self):
        return False

    def as_text(self):
        return self.value

    def to_json(self):
        return self.value


@dataclass(frozen=True)
class MultiValue:
    values: tuple = field(default_factory=tuple)

    @property
    def is_multi(self):
        return True

    def as_text(self, separator=', '):
        return separator.join(self.values)

    def to_json(self):
        return list(self.values)


def from_input(raw):
    """
    Builds a tagged answer from request data (str, number, list). Dicts
    pass through untouched so encode_answer writes them as JSON.
    """
    if raw is None:
        return None
    if isinstance(raw, (Scalar, MultiValue, dict)):
        return raw
    if isinstance(raw, (list, tuple)):
        return MultiValue(tuple(str(v) for v in raw))
    return Scalar(str(raw))


def encode_answer(answer):
    """Serialises an answer for the text column. None stays None."""
    if answer is None:
        return None
    if isinstance(answer, MultiValue):
        return json.dumps(list(answer.values), ensure_ascii=False)
    if isinstance(answer, Scalar):
        return answer.value
    if isinstance(answer, (list, tuple, dict)):
        return json.dumps(answer, ensure_ascii=False)
    return str(answer)


def decode_answer(raw):
    """
    Parses a stored answer. Rows that look like a JSON array but fail to
    parse are legacy data and come back as the raw string.
    """
    if raw is None:
        return None
    if isinstance(raw, list):
        return MultiValue(tuple(str(v) for v in raw))
    raw = str(raw)
    if raw.startswith('['):
        try:
            parsed = json.loads(raw)
        except ValueError:
            return Scalar(raw)
        if isinstance(parsed, list):
            return MultiValue(tuple(str(v) for v in parsed))
    return Scalar(raw)


def answer_text(raw, separator=', '):
    """Display text for a stored value, empty string when unanswered."""
    answer = decode_answer(raw)
    if answer is None:
        return ''
    if isinstance(answer, MultiValue):
        return answer.as_text(separator)
    return answer.as_text()
