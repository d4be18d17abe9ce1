# krishirakshak/store.py
import dataclasses
import itertools
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple, Union

from krishirakshak.decoder import ImageRef
from krishirakshak.errors import EntryNotFoundError
from krishirakshak.policy import PredictionResult

_ids = itertools.count(1)

PATCHABLE_FIELDS = frozenset({"explanation", "explanation_status"})


def _next_id() -> str:
    return f"entry-{next(_ids)}"


class ExplanationStatus(str, Enum):
    ABSENT = "absent"
    PENDING = "pending"
    READY = "ready"


@dataclass(frozen=True)
class UserTurn:
    text: str
    images: Tuple[ImageRef, ...] = ()
    id: str = field(default_factory=_next_id)


@dataclass(frozen=True)
class BotText:
    text: str
    id: str = field(default_factory=_next_id)


@dataclass(frozen=True)
class BotTyping:
    id: str = field(default_factory=_next_id)


@dataclass(frozen=True)
class ResultCard:
    source: ImageRef
    prediction: PredictionResult
    advice: str
    explanation: Optional[str] = None
    explanation_status: ExplanationStatus = ExplanationStatus.ABSENT
    id: str = field(default_factory=_next_id)

    def summary(self) -> str:
        p = self.prediction
        return f"Detected {p.readable} (confidence {p.confidence_text}) in {self.source.name}. {self.advice}"


ConversationEntry = Union[UserTurn, BotText, BotTyping, ResultCard]


class ConversationStore:
    """
    Ordered log of conversation entries for one session.

    Entries keep their insertion order. `list()` hands out tuples, so a
    snapshot never changes after it is returned.
    """

    def __init__(self):
        self._entries: List[ConversationEntry] = []
        self._index: Dict[str, int] = {}

    def __len__(self):
        return len(self._entries)

    def append(self, entry: ConversationEntry) -> str:
        if entry.id in self._index:
            raise ValueError(f"Duplicate entry id {entry.id}")
        self._index[entry.id] = len(self._entries)
        self._entries.append(entry)
        return entry.id

    def get(self, entry_id: str) -> ConversationEntry:
        try:
            return self._entries[self._index[entry_id]]
        except KeyError:
            raise EntryNotFoundError(entry_id) from None

    def update(self, entry_id: str, **patch) -> ResultCard:
        entry = self.get(entry_id)
        if not isinstance(entry, ResultCard):
            raise TypeError(f"{type(entry).__name__} entries cannot be updated")
        unknown = set(patch) - PATCHABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot patch {sorted(unknown)}; only {sorted(PATCHABLE_FIELDS)}")
        updated = dataclasses.replace(entry, **patch)
        self._entries[self._index[entry_id]] = updated
        return updated

    def remove_typing(self) -> int:
        kept = [e for e in self._entries if not isinstance(e, BotTyping)]
        removed = len(self._entries) - len(kept)
        if removed:
            self._entries = kept
            self._index = {e.id: i for i, e in enumerate(kept)}
        return removed

    def list(self) -> Tuple[ConversationEntry, ...]:
        return tuple(self._entries)

    def cards(self) -> Tuple[ResultCard, ...]:
        return tuple(e for e in self._entries if isinstance(e, ResultCard))

    def history(self) -> List[dict]:
        messages = []
        for e in self._entries:
            if isinstance(e, UserTurn):
                messages.append({"role": "user", "text": e.text})
            elif isinstance(e, BotText):
                messages.append({"role": "assistant", "text": e.text})
            elif isinstance(e, ResultCard):
                messages.append({"role": "assistant", "text": e.summary()})
        return messages

    def close(self):
        """Release every preview handle still referenced by an entry."""
        for e in self._entries:
            if isinstance(e, UserTurn):
                refs = e.images
            elif isinstance(e, ResultCard):
                refs = (e.source,)
            else:
                continue
            for ref in refs:
                if ref.preview is not None:
                    ref.preview.release()
