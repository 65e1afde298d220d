"""Abstract base classes for dependency injection."""

from abc import ABC, abstractmethod
from dataclasses import dataclass

from .models import RelatedWord, SentenceChallenge, WordRecord


class ContentError(Exception):
    """A generative-content request failed. Recoverable by retrying the flow."""


@dataclass(frozen=True)
class PracticeReply:
    text: str
    ended: bool = False


class AIProvider(ABC):
    """Abstract base class for the generative content backend.

    Language arguments are English language names ("Spanish"), not codes.
    Every method raises ContentError on failure.
    """

    @abstractmethod
    def fetch_daily_word(self, target_language: str, native_language: str,
                         excluded_words: list[str]) -> WordRecord:
        """Generate a beginner word with a curious origin, avoiding excluded_words."""
        pass

    @abstractmethod
    def get_sentence_challenge(self, word: WordRecord, target_language: str,
                               native_language: str) -> SentenceChallenge:
        """Three sentences using the word, one of them correctly."""
        pass

    @abstractmethod
    def get_related_word(self, word: WordRecord, target_language: str,
                         native_language: str) -> RelatedWord:
        """Find another word linked to this one."""
        pass

    @abstractmethod
    def get_mnemonic_image(self, word: WordRecord, native_language: str) -> str:
        """Generate a mnemonic image. Returns base64-encoded JPEG bytes."""
        pass

    @abstractmethod
    def get_pronunciation_audio(self, word: str, target_language: str) -> str:
        """Pronounce a word. Returns base64-encoded 16-bit mono PCM."""
        pass

    @abstractmethod
    def start_practice(self, word: WordRecord, target_language: str,
                       native_language: str) -> tuple[object, PracticeReply]:
        """Open a guided practice chat. Returns (chat handle, tutor greeting)."""
        pass

    @abstractmethod
    def send_practice_message(self, chat: object, message: str) -> PracticeReply:
        """Send a learner message. reply.ended is set once the tutor closes the session."""
        pass


class Storage(ABC):
    """Abstract base class for the durable string key-value store.

    Each user has an independent namespace. There are no transactions.
    """

    @abstractmethod
    def load_config(self) -> dict:
        """Load configuration. Returns config dict."""
        pass

    @abstractmethod
    def get_item(self, key: str, user_id: str = "default") -> str | None:
        """Return the stored string, or None if the key is absent."""
        pass

    @abstractmethod
    def set_item(self, key: str, value: str, user_id: str = "default") -> None:
        pass

    @abstractmethod
    def remove_item(self, key: str, user_id: str = "default") -> None:
        """Delete a key. Missing keys are ignored."""
        pass

    @abstractmethod
    def clear(self, user_id: str = "default") -> None:
        """Delete every key for a user."""
        pass
