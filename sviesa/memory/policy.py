"""
Which answers are worth memoizing.

Questions about today's readings or the liturgical day change daily, so
their answers are never stored durably. Very short answers are usually
error text.
"""

TIME_SENSITIVE_KEYWORDS = (
    "šiandien",
    "šiandieną",
    "evangelij",
    "skaitin",
    "liturgi",
    "dienos",
    "sekmadien",
)


def is_time_sensitive(question: str) -> bool:
    lower = question.lower()
    return any(keyword in lower for keyword in TIME_SENSITIVE_KEYWORDS)


def is_durable_answer(question: str, answer: str, min_length: int = 100) -> bool:
    return len(answer.strip()) >= min_length and not is_time_sensitive(question)
