"""Domain models for verbadiem application."""

import time
from dataclasses import dataclass, field, replace


@dataclass(frozen=True)
class WordRecord:
    """A learned (or offered) daily word. Keyed by `word` once learned."""
    word: str
    pronunciation: str = ''
    translation: str = ''
    etymology: str = ''
    example: str = ''
    example_translation: str = ''

    def to_dict(self) -> dict:
        return {
            'word': self.word,
            'pronunciation': self.pronunciation,
            'translation': self.translation,
            'etymology': self.etymology,
            'example': self.example,
            'exampleTranslation': self.example_translation
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'WordRecord':
        return cls(
            word=data['word'],
            pronunciation=data.get('pronunciation', ''),
            translation=data.get('translation', ''),
            etymology=data.get('etymology', ''),
            example=data.get('example', ''),
            example_translation=data.get('exampleTranslation', data.get('example_translation', ''))
        )


@dataclass(frozen=True)
class RelatedWord:
    word: str
    translation: str
    reason: str

    def to_dict(self) -> dict:
        return {'word': self.word, 'translation': self.translation, 'reason': self.reason}


@dataclass(frozen=True)
class SentenceOption:
    sentence: str
    translation: str

    def to_dict(self) -> dict:
        return {'sentence': self.sentence, 'translation': self.translation}


@dataclass(frozen=True)
class SentenceChallenge:
    """Three sentences using the word, exactly one of them correctly."""
    options: tuple
    correct_index: int

    def to_dict(self) -> dict:
        return {
            'options': [o.to_dict() for o in self.options],
            'correctIndex': self.correct_index
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'SentenceChallenge':
        options = tuple(SentenceOption(o['sentence'], o['translation']) for o in data['options'])
        return cls(options=options, correct_index=int(data['correctIndex']))


@dataclass(frozen=True)
class StreakData:
    count: int = 0
    last_completion_date: str = ''  # ISO date YYYY-MM-DD, '' if never

    def to_dict(self) -> dict:
        return {'count': self.count, 'lastCompletionDate': self.last_completion_date}

    @classmethod
    def from_dict(cls, data: dict | None) -> 'StreakData':
        if not data:
            return cls()
        return cls(
            count=int(data.get('count', 0) or 0),
            last_completion_date=data.get('lastCompletionDate', '') or ''
        )


@dataclass(frozen=True)
class Collection:
    """User-defined group of learned-word references."""
    id: str
    name: str
    word_ids: tuple = ()

    def to_dict(self) -> dict:
        return {'id': self.id, 'name': self.name, 'wordIds': list(self.word_ids)}

    @classmethod
    def from_dict(cls, data: dict) -> 'Collection':
        return cls(
            id=str(data['id']),
            name=data.get('name', ''),
            word_ids=tuple(data.get('wordIds', []))
        )


@dataclass(frozen=True)
class UserProgress:
    """One learner's progress. Replaced, never mutated, by the gamification engine."""
    streak: StreakData = field(default_factory=StreakData)
    longest_streak: int = 0
    learned_words: dict = field(default_factory=dict)  # word text -> WordRecord
    collections: tuple = ()
    xp: int = 0
    level: int = 1
    unlocked_achievements: tuple = ()
    practice_count: int = 0
    visualize_count: int = 0
    review_count: int = 0
    related_word_count: int = 0
    lessons_completed_since_ad: int = 0

    def evolve(self, **changes) -> 'UserProgress':
        """Return a copy with the given fields replaced."""
        return replace(self, **changes)

    def learned_word_keys(self) -> list[str]:
        return list(self.learned_words.keys())

    def to_dict(self) -> dict:
        return {
            'streak': self.streak.to_dict(),
            'longestStreak': self.longest_streak,
            'learnedWords': {k: w.to_dict() for k, w in self.learned_words.items()},
            'collections': [c.to_dict() for c in self.collections],
            'xp': self.xp,
            'level': self.level,
            'unlockedAchievements': list(self.unlocked_achievements),
            'practiceCount': self.practice_count,
            'visualizeCount': self.visualize_count,
            'reviewCount': self.review_count,
            'relatedWordCount': self.related_word_count,
            'lessonsCompletedSinceAd': self.lessons_completed_since_ad
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'UserProgress':
        """Build from the current persisted shape. Missing fields get defaults."""
        learned = data.get('learnedWords') or {}
        seen = set()
        achievements = []
        for ach in data.get('unlockedAchievements', []):
            if ach not in seen:
                seen.add(ach)
                achievements.append(ach)
        return cls(
            streak=StreakData.from_dict(data.get('streak')),
            longest_streak=int(data.get('longestStreak', 0) or 0),
            learned_words={k: WordRecord.from_dict(w) for k, w in learned.items()},
            collections=tuple(Collection.from_dict(c) for c in data.get('collections') or []),
            xp=int(data.get('xp', 0) or 0),
            level=int(data.get('level', 1) or 1),
            unlocked_achievements=tuple(achievements),
            practice_count=int(data.get('practiceCount', 0) or 0),
            visualize_count=int(data.get('visualizeCount', 0) or 0),
            review_count=int(data.get('reviewCount', 0) or 0),
            related_word_count=int(data.get('relatedWordCount', 0) or 0),
            lessons_completed_since_ad=int(data.get('lessonsCompletedSinceAd', 0) or 0)
        )


_last_notification_id = 0


def _next_notification_id() -> int:
    """Time-derived id, bumped when two notifications land in the same millisecond."""
    global _last_notification_id
    candidate = int(time.time() * 1000)
    if candidate <= _last_notification_id:
        candidate = _last_notification_id + 1
    _last_notification_id = candidate
    return candidate


@dataclass(frozen=True)
class Notification:
    """Ephemeral toast. Never persisted."""
    category: str  # 'xp' | 'level' | 'achievement'
    message: str
    icon: str | None = None
    id: int = field(default_factory=_next_notification_id)
    created_at: float = field(default_factory=time.time)

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'type': self.category,
            'message': self.message,
            'icon': self.icon
        }


@dataclass(frozen=True)
class Transition:
    """Result of a gamification step: next state plus side-announcements."""
    progress: UserProgress
    notifications: tuple = ()
    confetti: bool = False
    haptic: bool = False

    def then(self, other: 'Transition') -> 'Transition':
        """Chain a follow-up transition computed from self.progress."""
        return Transition(
            progress=other.progress,
            notifications=self.notifications + other.notifications,
            confetti=self.confetti or other.confetti,
            haptic=self.haptic or other.haptic
        )


@dataclass(frozen=True)
class LessonOutcome(Transition):
    show_ad: bool = False
