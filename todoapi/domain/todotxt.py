"""Extraction of todo.txt markers from free text.

See https://github.com/todotxt/todo.txt for the format. Only the markers the
service stores are recognised: a leading ``(X) `` priority, ``@context`` and
``+project`` words.
"""

import re
from dataclasses import dataclass, field
from typing import List

PRIORITY_RX = re.compile(r"^\(([A-Z])\) ")
COMPLETED_PREFIX = "x "


@dataclass(slots=True)
class ParsedText:
    priority: str = ""
    completed: bool = False
    contexts: List[str] = field(default_factory=list)
    projects: List[str] = field(default_factory=list)


def parse_todo_text(text: str) -> ParsedText:
    parsed = ParsedText(completed=text.startswith(COMPLETED_PREFIX))

    match = PRIORITY_RX.match(text)
    if match:
        parsed.priority = match.group(1)

    for word in text.split():
        if len(word) < 2:
            continue
        if word[0] == "@" and word[1:] not in parsed.contexts:
            parsed.contexts.append(word[1:])
        elif word[0] == "+" and word[1:] not in parsed.projects:
            parsed.projects.append(word[1:])
    return parsed
