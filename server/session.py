"""Per-user session orchestration: screens, events, persistence and ad gating."""

import asyncio
import logging
import random
import time
from datetime import date
from enum import Enum
from typing import Callable

from core import gamification
from core.cancellation import TokenRegistry
from core.config import (
    DEFAULT_NATIVE_LANGUAGE, DEFAULT_TARGET_LANGUAGE, LANGUAGE_ENGLISH_NAMES,
    NOTIFICATION_DURATION_SECONDS, REVIEW_SESSION_SIZE, StorageKeys
)
from core.interfaces import AIProvider, ContentError, PracticeReply, Storage
from core.migration import load_progress, save_progress
from core.models import (
    Notification, RelatedWord, SentenceChallenge, Transition, UserProgress, WordRecord
)
from core.offline_deck import pick_offline_word
from core.utils import answer_matches, build_report_link, pcm_to_wav, shuffle_challenge

logger = logging.getLogger(__name__)


class View(Enum):
    WELCOME = 'welcome'
    HOME = 'home'
    LEARNING = 'learning'
    LESSON_COMPLETE = 'lesson_complete'
    PRACTICE = 'practice'
    SETTINGS = 'settings'
    STATISTICS = 'statistics'
    MEMORY_CHEST = 'memory_chest'
    REVIEW = 'review'


# Transitions a user can pick directly. LESSON_COMPLETE and REVIEW are only
# reached through complete_lesson/dismiss_ad and start_review.
NAVIGABLE = {
    View.HOME: {View.LEARNING, View.SETTINGS, View.STATISTICS, View.MEMORY_CHEST},
    View.LESSON_COMPLETE: {View.PRACTICE},
}

# Fetch scopes owned by each screen, cancelled when the screen is left
SCREEN_SCOPES = {
    View.LEARNING: ('word', 'challenge', 'audio'),
    View.LESSON_COMPLETE: ('related', 'image', 'audio'),
    View.PRACTICE: ('practice',),
    View.MEMORY_CHEST: ('audio',),
}


class InvalidTransition(Exception):
    """The event does not apply to the session's current state."""


class SessionOrchestrator:
    """Owns one learner's progress and routes every mutation through the engine."""

    def __init__(self, storage: Storage, ai_provider: AIProvider | None = None,
                 user_id: str = "default", today: Callable[[], date] = date.today):
        self.storage = storage
        self.ai_provider = ai_provider
        self.user_id = user_id
        self.today = today
        self.tokens = TokenRegistry()
        self._load()

    def _load(self) -> None:
        """(Re)initialize everything from storage, as on app start."""
        self.progress: UserProgress = load_progress(self.storage, self.user_id)
        self.native_language = self.storage.get_item(StorageKeys.NATIVE_LANGUAGE, self.user_id) or DEFAULT_NATIVE_LANGUAGE
        self.target_language = self.storage.get_item(StorageKeys.TARGET_LANGUAGE, self.user_id) or DEFAULT_TARGET_LANGUAGE
        has_visited = self.storage.get_item(StorageKeys.HAS_VISITED, self.user_id) == 'true'
        has_seen = self.storage.get_item(StorageKeys.HAS_SEEN_ONBOARDING, self.user_id) == 'true'
        self.view = View.HOME if has_visited else View.WELCOME
        self.show_onboarding = has_visited and not has_seen
        self.nav_stack: list[View] = []
        self.notifications: list[Notification] = []
        self.confetti = False
        self.haptic = False
        self.pending_lesson: tuple[WordRecord, bool] | None = None
        self.audio_cache: dict[str, str] = {}
        self._clear_screen_state()

    def _clear_screen_state(self) -> None:
        self.daily_word: WordRecord | None = None
        self.challenge: SentenceChallenge | None = None
        self.quiz_attempts = 0
        self.related_word: RelatedWord | None = None
        self.mnemonic_image: str | None = None
        self.review_words: list[WordRecord] = []
        self.practice_chat = None
        self.practice_messages: list[dict] = []
        self.practice_ended = False

    # ------------------------------------------------------------------
    # Plumbing
    # ------------------------------------------------------------------

    def _apply(self, transition: Transition) -> None:
        """Commit a transition: persist, queue notifications, flag celebrations."""
        self.progress = transition.progress
        save_progress(self.storage, self.progress, self.user_id)
        self.notifications.extend(transition.notifications)
        self.confetti = self.confetti or transition.confetti
        self.haptic = self.haptic or transition.haptic

    def _notify(self, category: str, message: str, icon: str = None) -> None:
        self.notifications.append(Notification(category, message, icon))

    def _log_event(self, event: str, **data) -> None:
        if hasattr(self.storage, 'log_event'):
            self.storage.log_event(event, self.user_id, **data)

    def _require_view(self, *views: View) -> None:
        if self.view not in views:
            expected = ', '.join(v.value for v in views)
            raise InvalidTransition(f"Not allowed on {self.view.value} (expected {expected})")

    def _enter(self, view: View) -> None:
        for scope in SCREEN_SCOPES.get(self.view, ()):
            self.tokens.cancel(scope)
        if view in (View.HOME, View.WELCOME):
            self.nav_stack.clear()
        else:
            self.nav_stack.append(view)
        logger.info(f"[{self.user_id}] {self.view.value} -> {view.value}")
        self.view = view

    def _language_names(self) -> tuple[str, str]:
        return LANGUAGE_ENGLISH_NAMES[self.target_language], LANGUAGE_ENGLISH_NAMES[self.native_language]

    async def _call(self, scope: str, method: str, *args):
        """Run a blocking provider method under a fresh token for scope."""
        if self.ai_provider is None:
            raise ContentError("No content provider configured")
        fn = getattr(self.ai_provider, method)
        token = self.tokens.renew(scope)
        loop = asyncio.get_event_loop()
        return await token.run(loop.run_in_executor(None, lambda: fn(*args)))

    def take_effects(self) -> dict:
        """Celebration flags raised since the last call, then reset."""
        effects = {'confetti': self.confetti, 'haptic': self.haptic}
        self.confetti = False
        self.haptic = False
        return effects

    def active_notifications(self, now: float | None = None) -> list[Notification]:
        """Drop expired notifications and return the rest."""
        now = time.time() if now is None else now
        self.notifications = [
            n for n in self.notifications
            if now - n.created_at < NOTIFICATION_DURATION_SECONDS
        ]
        return list(self.notifications)

    # ------------------------------------------------------------------
    # Navigation
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Leave the welcome screen for the first time."""
        self._require_view(View.WELCOME)
        self.storage.set_item(StorageKeys.HAS_VISITED, 'true', self.user_id)
        if self.storage.get_item(StorageKeys.HAS_SEEN_ONBOARDING, self.user_id) != 'true':
            self.show_onboarding = True
        self._enter(View.HOME)

    def complete_onboarding(self) -> None:
        self.storage.set_item(StorageKeys.HAS_SEEN_ONBOARDING, 'true', self.user_id)
        self.show_onboarding = False

    def navigate(self, view: View) -> None:
        if view == View.HOME:
            self.back_to_home()
            return
        if view not in NAVIGABLE.get(self.view, set()):
            raise InvalidTransition(f"Cannot go from {self.view.value} to {view.value}")
        if view == View.PRACTICE and self.daily_word is None:
            raise InvalidTransition("No word to practice")
        if view == View.LEARNING:
            self._clear_screen_state()
        self._enter(view)

    def back_to_home(self) -> None:
        self._require_view(*(v for v in View if v != View.WELCOME))
        if self.pending_lesson is not None:
            raise InvalidTransition("An ad must be dismissed first")
        self._clear_screen_state()
        self._apply(gamification.check_achievements(self.progress))
        self._enter(View.HOME)

    def back(self) -> bool:
        """Platform back signal. True if intercepted, False if the app should exit."""
        if not self.nav_stack:
            return False
        # Swallowed while an ad is up; the ad callback decides where to go
        if self.pending_lesson is not None:
            return True
        self.nav_stack.pop()
        self.back_to_home()
        return True

    # ------------------------------------------------------------------
    # Learning
    # ------------------------------------------------------------------

    async def fetch_daily_word(self) -> WordRecord:
        """Fetch today's word, falling back to the offline deck."""
        self._require_view(View.LEARNING)
        self._clear_screen_state()
        target, native = self._language_names()
        learned = self.progress.learned_word_keys()
        try:
            word = await self._call('word', 'fetch_daily_word', target, native, learned)
        except ContentError as e:
            logger.warning(f"Online fetch failed, attempting to use offline deck: {e}")
            word = pick_offline_word(learned)
            if word is None:
                raise ContentError("Could not fetch a new word and the offline deck is exhausted") from e
            self._notify('achievement', "You're offline, so here's a word from the offline deck.", icon='wifi-slash')
        self.daily_word = word
        return word

    async def fetch_sentence_challenge(self) -> SentenceChallenge:
        self._require_view(View.LEARNING)
        if self.daily_word is None:
            raise InvalidTransition("No daily word loaded")
        target, native = self._language_names()
        challenge = await self._call(
            'challenge', 'get_sentence_challenge', self.daily_word, target, native
        )
        self.challenge = shuffle_challenge(challenge)
        self.quiz_attempts = 0
        return self.challenge

    def answer_challenge(self, index: int) -> tuple[bool, bool]:
        """Check a quiz answer. Returns (correct, show_ad)."""
        self._require_view(View.LEARNING)
        if self.challenge is None:
            raise InvalidTransition("No challenge loaded")
        if not 0 <= index < len(self.challenge.options):
            raise InvalidTransition(f"Option {index} out of range")
        self.quiz_attempts += 1
        if index != self.challenge.correct_index:
            return False, False
        return True, self.complete_lesson(self.daily_word, self.quiz_attempts == 1)

    def complete_lesson(self, word: WordRecord, is_first_try: bool) -> bool:
        """Finish the lesson. Returns True if an ad must be shown before the reward lands."""
        self._require_view(View.LEARNING)
        if self.pending_lesson is not None:
            raise InvalidTransition("A lesson is already waiting on an ad")
        self.daily_word = word
        if gamification.should_show_ad(self.progress):
            self.pending_lesson = (word, is_first_try)
            logger.info(f"[{self.user_id}] Ad due, deferring lesson reward")
            return True
        self._commit_lesson(word, is_first_try)
        return False

    def dismiss_ad(self) -> None:
        """Ad closed or skipped: commit the deferred lesson exactly once."""
        if self.pending_lesson is None:
            raise InvalidTransition("No ad is showing")
        word, is_first_try = self.pending_lesson
        self.pending_lesson = None
        self._commit_lesson(word, is_first_try)

    def _commit_lesson(self, word: WordRecord, is_first_try: bool) -> None:
        outcome = gamification.complete_lesson(self.progress, word, is_first_try, today=self.today())
        self._apply(outcome)
        self._log_event('lesson_complete', word=word.word, first_try=is_first_try, xp=self.progress.xp)
        self._enter(View.LESSON_COMPLETE)

    # ------------------------------------------------------------------
    # Lesson extras
    # ------------------------------------------------------------------

    async def fetch_related_word(self) -> RelatedWord:
        """One related word per lesson; only the first find earns XP."""
        self._require_view(View.LESSON_COMPLETE)
        if self.related_word is not None:
            return self.related_word
        target, native = self._language_names()
        related = await self._call('related', 'get_related_word', self.daily_word, target, native)
        self.related_word = related
        self._apply(gamification.find_related_word(self.progress))
        return related

    async def fetch_mnemonic_image(self) -> str:
        self._require_view(View.LESSON_COMPLETE)
        if self.mnemonic_image is not None:
            return self.mnemonic_image
        _target, native = self._language_names()
        image = await self._call('image', 'get_mnemonic_image', self.daily_word, native)
        self.mnemonic_image = image
        self._apply(gamification.visualize_word(self.progress))
        return image

    async def fetch_pronunciation(self, word: str) -> bytes:
        """WAV audio for a word, cached for the session."""
        if word not in self.audio_cache:
            target, _native = self._language_names()
            self.audio_cache[word] = await self._call(
                f'audio:{word}', 'get_pronunciation_audio', word, target
            )
        return pcm_to_wav(self.audio_cache[word])

    def report_word(self, word_id: str | None = None) -> str:
        word = self.progress.learned_words.get(word_id) if word_id else self.daily_word
        if word is None:
            raise InvalidTransition("Unknown word")
        self._notify('achievement', "Thanks! Your report is ready to send.", icon='flag')
        return build_report_link(word, self.native_language, self.target_language)

    # ------------------------------------------------------------------
    # Practice
    # ------------------------------------------------------------------

    async def start_practice(self) -> PracticeReply:
        self._require_view(View.PRACTICE)
        target, native = self._language_names()
        self.practice_messages = []
        self.practice_ended = False
        chat, reply = await self._call('practice', 'start_practice', self.daily_word, target, native)
        self.practice_chat = chat
        self.practice_messages.append({'role': 'model', 'text': reply.text})
        return reply

    async def send_practice_message(self, message: str) -> PracticeReply:
        self._require_view(View.PRACTICE)
        message = (message or '').strip()
        if self.practice_chat is None:
            raise InvalidTransition("Practice chat not started")
        if not message:
            raise InvalidTransition("Empty message")
        if self.practice_ended:
            raise InvalidTransition("Practice session already ended")
        self.practice_messages.append({'role': 'user', 'text': message})
        reply = await self._call('practice', 'send_practice_message', self.practice_chat, message)
        self.practice_messages.append({'role': 'model', 'text': reply.text})
        if reply.ended:
            self.practice_ended = True
        return reply

    def finish_practice(self) -> None:
        self._require_view(View.PRACTICE)
        if not self.practice_ended:
            raise InvalidTransition("Practice session has not ended")
        self._apply(gamification.finish_practice_session(self.progress))
        self._log_event('practice_complete', word=self.daily_word.word if self.daily_word else None)
        self.back_to_home()

    # ------------------------------------------------------------------
    # Review
    # ------------------------------------------------------------------

    def start_review(self, word_ids: list[str] | None = None) -> list[WordRecord]:
        """Pick up to REVIEW_SESSION_SIZE random words, from all learned words or the given ids."""
        self._require_view(View.HOME, View.MEMORY_CHEST)
        learned = self.progress.learned_words
        if word_ids is None:
            candidates = list(learned.values())
        else:
            candidates = [learned[i] for i in word_ids if i in learned]
        if not candidates:
            return []
        random.shuffle(candidates)
        self.review_words = candidates[:REVIEW_SESSION_SIZE]
        self._enter(View.REVIEW)
        return self.review_words

    def check_review_answer(self, index: int, answer: str) -> bool:
        self._require_view(View.REVIEW)
        if not 0 <= index < len(self.review_words):
            raise InvalidTransition(f"Review item {index} out of range")
        return answer_matches(answer, self.review_words[index].word)

    def finish_review(self) -> None:
        self._require_view(View.REVIEW)
        self._apply(gamification.finish_review_session(self.progress))
        self._log_event('review_complete', words=[w.word for w in self.review_words])
        self.back_to_home()

    # ------------------------------------------------------------------
    # Collections
    # ------------------------------------------------------------------

    def create_collection(self, name: str) -> None:
        self._apply(gamification.create_collection(self.progress, name))

    def update_collections(self, word_id: str, selected_ids: list[str], new_name: str | None = None) -> None:
        if word_id not in self.progress.learned_words:
            raise InvalidTransition(f"'{word_id}' is not a learned word")
        self._apply(gamification.update_collections(self.progress, word_id, selected_ids, new_name))

    # ------------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------------

    def _check_language(self, code: str) -> None:
        if code not in LANGUAGE_ENGLISH_NAMES:
            raise InvalidTransition(f"Unsupported language: {code}")

    def _save_languages(self) -> None:
        self.storage.set_item(StorageKeys.NATIVE_LANGUAGE, self.native_language, self.user_id)
        self.storage.set_item(StorageKeys.TARGET_LANGUAGE, self.target_language, self.user_id)

    def set_native_language(self, code: str) -> None:
        """Picking the current target language swaps the pair."""
        self._check_language(code)
        if code == self.target_language:
            self.target_language = self.native_language
        self.native_language = code
        self._save_languages()

    def set_target_language(self, code: str) -> None:
        self._check_language(code)
        if code == self.native_language:
            self.native_language = self.target_language
        self.target_language = code
        self._save_languages()

    def reset_progress(self, confirmed: bool) -> None:
        """Wipe all stored data for this user and start over."""
        if not confirmed:
            raise InvalidTransition("Reset must be confirmed")
        self.tokens.cancel_all()
        self.storage.clear(self.user_id)
        logger.info(f"[{self.user_id}] Progress reset")
        self._load()

    # ------------------------------------------------------------------
    # Read models
    # ------------------------------------------------------------------

    def statistics(self) -> dict:
        p = self.progress
        level, level_name, _threshold = gamification.level_info(p.level)
        return {
            'streak': p.streak.count,
            'longest_streak': p.longest_streak,
            'words_learned': len(p.learned_words),
            'xp': p.xp,
            'level': level,
            'level_name': level_name,
            'level_progress': gamification.level_progress_percent(p),
            'achievements': [
                {
                    'id': a.id,
                    'name': a.name,
                    'description': a.description,
                    'icon': a.icon,
                    'unlocked': a.id in p.unlocked_achievements
                }
                for a in gamification.ACHIEVEMENTS
            ]
        }

    def snapshot(self) -> dict:
        return {
            'view': self.view.value,
            'native_language': self.native_language,
            'target_language': self.target_language,
            'show_onboarding': self.show_onboarding,
            'ad_pending': self.pending_lesson is not None,
            'daily_word': self.daily_word.to_dict() if self.daily_word else None,
            'progress': self.progress.to_dict()
        }
