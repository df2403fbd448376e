import threading
from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import Deque, Dict, Tuple

# Assistant messages with this prefix are machine-derived facts and are the
# only assistant output fed back into later prompts.
FACT_PREFIX = "FACTS: "

NO_PRIOR_MESSAGES = "(no prior messages)\n"


class Role(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


@dataclass(frozen=True)
class Message:
    role: Role
    content: str

    @property
    def is_fact(self) -> bool:
        return self.role is Role.ASSISTANT and self.content.startswith(FACT_PREFIX)

    def to_dict(self) -> Dict[str, str]:
        return {"role": self.role.value, "content": self.content}


class ConversationMemoryStore:
    """
    Bounded, per-session window of recent dialogue.

    Each session key gets its own lock, so writers on one session never wait
    for another session. The registry lock is only held while a session's
    log and lock are looked up or created.
    """

    def __init__(self, max_messages: int = 10):
        if max_messages < 1:
            raise ValueError("max_messages must be at least 1")
        self.max_messages = max_messages
        self._logs: Dict[str, Deque[Message]] = {}
        self._locks: Dict[str, threading.Lock] = {}
        self._registry_lock = threading.Lock()

    def _session(self, session_key: str, create: bool):
        with self._registry_lock:
            log = self._logs.get(session_key)
            if log is None and create:
                log = deque(maxlen=self.max_messages)
                self._logs[session_key] = log
                self._locks[session_key] = threading.Lock()
            return log, self._locks.get(session_key)

    def append(self, session_key: str, role, content: str) -> None:
        if not session_key:
            return
        message = Message(role=Role(role), content=content or "")
        log, lock = self._session(session_key, create=True)
        with lock:
            if len(log) >= self.max_messages:
                log.popleft()
            log.append(message)

    def render_all(self, session_key: str) -> Tuple[Message, ...]:
        """Snapshot of the session log, oldest first. Empty for unknown sessions."""
        if not session_key:
            return ()
        log, lock = self._session(session_key, create=False)
        if log is None:
            return ()
        with lock:
            return tuple(log)

    def render_filtered(self, session_key: str) -> str:
        """Prompt transcript: user turns and fact annotations only."""
        if not session_key:
            return ""
        messages = self.render_all(session_key)
        if not messages:
            return NO_PRIOR_MESSAGES
        return _format(m for m in messages if m.role is Role.USER or m.is_fact)

    def render_text(self, session_key: str) -> str:
        if not session_key:
            return ""
        messages = self.render_all(session_key)
        if not messages:
            return NO_PRIOR_MESSAGES
        return _format(messages)


def _format(messages) -> str:
    return "".join(f"{m.role.value}: {m.content}\n" for m in messages)
