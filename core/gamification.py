"""XP, levels, streaks, achievements and collections.

Every function here is a pure reducer: it takes a UserProgress, never mutates
it, and returns a Transition holding the next progress together with the
notifications and celebration flags the caller should surface.
"""

import uuid
from dataclasses import dataclass
from datetime import date
from typing import Callable

from .config import AD_FREQUENCY, LEVELS, XP_REWARDS
from .models import (
    Collection, LessonOutcome, Notification, StreakData, Transition,
    UserProgress, WordRecord
)
from .utils import today_and_yesterday

PERFECT_QUIZ_TRIGGER = 'perfect_quiz'


@dataclass(frozen=True)
class Achievement:
    id: str
    name: str
    description: str
    icon: str
    condition: Callable[[UserProgress], bool]


# Declaration order is evaluation order.
ACHIEVEMENTS = [
    Achievement('LEARNED_1', 'First Word', 'Learn your first word.', 'book',
                lambda p: len(p.learned_words) >= 1),
    Achievement('STREAK_7', 'On Fire', 'Keep a 7-day streak.', 'flame',
                lambda p: p.streak.count >= 7),
    # Awarded only through the perfect_quiz trigger
    Achievement('PERFECT_LESSON', 'Flawless', 'Answer a quiz right on the first try.', 'trophy',
                lambda p: False),
    Achievement('PRACTICE_1', 'Conversationalist', 'Finish a practice session.', 'chat',
                lambda p: p.practice_count >= 1),
    Achievement('LEARNED_25', 'Bookworm', 'Learn 25 words.', 'book',
                lambda p: len(p.learned_words) >= 25),
    Achievement('VISUALIZE_5', 'Visionary', 'Visualize 5 words.', 'sparkles',
                lambda p: p.visualize_count >= 5),
    Achievement('REVIEW_10', 'Treasure Keeper', 'Finish 10 review sessions.', 'chest',
                lambda p: p.review_count >= 10),
    Achievement('RELATED_10', 'Explorer', 'Discover 10 related words.', 'trophy',
                lambda p: p.related_word_count >= 10),
]


def level_for_xp(xp: int) -> int:
    """Highest level whose threshold does not exceed xp."""
    current = LEVELS[0][0]
    for level, _name, threshold in LEVELS:
        if threshold <= xp:
            current = level
    return current


def level_info(level: int) -> tuple[int, str, int] | None:
    for entry in LEVELS:
        if entry[0] == level:
            return entry
    return None


def level_progress_percent(progress: UserProgress) -> float:
    """Progress through the current level, 100 at the top level."""
    current = level_info(progress.level) or LEVELS[0]
    nxt = level_info(progress.level + 1)
    if nxt is None:
        return 100.0
    span = nxt[2] - current[2]
    return round(min(max((progress.xp - current[2]) / span, 0.0), 1.0) * 100, 1)


def check_achievements(progress: UserProgress, trigger: str | None = None) -> Transition:
    """Unlock every achievement whose predicate now holds."""
    unlocked = list(progress.unlocked_achievements)
    notifications = []
    for ach in ACHIEVEMENTS:
        if ach.id in unlocked:
            continue
        if ach.id == 'PERFECT_LESSON':
            met = trigger == PERFECT_QUIZ_TRIGGER
        else:
            met = ach.condition(progress)
        if met:
            unlocked.append(ach.id)
            notifications.append(Notification('achievement', f'Achievement unlocked: {ach.name}', icon='medal'))

    if not notifications:
        return Transition(progress)
    return Transition(
        progress=progress.evolve(unlocked_achievements=tuple(unlocked)),
        notifications=tuple(notifications),
        confetti=True,
        haptic=True
    )


def award_xp(progress: UserProgress, amount: int, reason: str | None = None) -> Transition:
    """Add XP, re-derive the level, then re-check achievements with reason as trigger."""
    if amount < 0:
        raise ValueError(f"XP award must be non-negative, got {amount}")

    notifications = [Notification('xp', f'+{amount} XP')]
    celebrate = False
    new_xp = progress.xp + amount

    next_level = level_info(progress.level + 1)
    if next_level and new_xp >= next_level[2]:
        new_level = level_for_xp(new_xp)
        name = level_info(new_level)[1]
        notifications.append(Notification('level', f'Level up! You are now level {new_level}: {name}', icon='trophy'))
        celebrate = True

    updated = progress.evolve(xp=new_xp, level=level_for_xp(new_xp))
    step = Transition(updated, tuple(notifications), confetti=celebrate, haptic=celebrate)
    return step.then(check_achievements(updated, reason))


def should_show_ad(progress: UserProgress) -> bool:
    """True when the next completed lesson is the one that shows an ad."""
    return progress.lessons_completed_since_ad >= AD_FREQUENCY - 1


def complete_lesson(progress: UserProgress, word: WordRecord, is_first_try: bool,
                    today: date | None = None) -> LessonOutcome:
    """Record a finished lesson.

    Streak and XP only move on the first completion of a calendar day. The
    word is always recorded (first write wins) and the ad counter always
    advances.
    """
    show_ad = should_show_ad(progress)
    today_str, yesterday_str = today_and_yesterday(today)
    first_today = progress.streak.last_completion_date != today_str

    changes = {}
    if first_today:
        continuing = progress.streak.last_completion_date == yesterday_str
        count = progress.streak.count + 1 if continuing else 1
        changes['streak'] = StreakData(count=count, last_completion_date=today_str)
        if count > progress.longest_streak:
            changes['longest_streak'] = count

    if word.word not in progress.learned_words:
        learned = dict(progress.learned_words)
        learned[word.word] = word
        changes['learned_words'] = learned

    changes['lessons_completed_since_ad'] = 0 if show_ad else progress.lessons_completed_since_ad + 1

    result = Transition(progress.evolve(**changes))
    if first_today:
        result = result.then(award_xp(result.progress, XP_REWARDS['LESSON_COMPLETE'], 'lesson_complete'))
        if is_first_try:
            result = result.then(award_xp(result.progress, XP_REWARDS['PERFECT_QUIZ'], PERFECT_QUIZ_TRIGGER))

    return LessonOutcome(
        progress=result.progress,
        notifications=result.notifications,
        confetti=result.confetti,
        haptic=result.haptic,
        show_ad=show_ad
    )


def _reward_activity(progress: UserProgress, reward: str, reason: str, counter: str) -> Transition:
    counted = progress.evolve(**{counter: getattr(progress, counter) + 1})
    return award_xp(counted, XP_REWARDS[reward], reason)


def finish_review_session(progress: UserProgress) -> Transition:
    return _reward_activity(progress, 'REVIEW_SESSION', 'review', 'review_count')


def finish_practice_session(progress: UserProgress) -> Transition:
    return _reward_activity(progress, 'PRACTICE_SESSION', 'practice', 'practice_count')


def find_related_word(progress: UserProgress) -> Transition:
    return _reward_activity(progress, 'RELATED_WORD', 'related_word', 'related_word_count')


def visualize_word(progress: UserProgress) -> Transition:
    return _reward_activity(progress, 'VISUALIZE_WORD', 'visualize', 'visualize_count')


def new_collection_id() -> str:
    return uuid.uuid4().hex[:12]


def create_collection(progress: UserProgress, name: str, collection_id: str | None = None) -> Transition:
    """Append an empty collection. Blank names are ignored."""
    name = (name or '').strip()
    if not name:
        return Transition(progress)
    collection = Collection(id=collection_id or new_collection_id(), name=name)
    return Transition(progress.evolve(collections=progress.collections + (collection,)))


def update_collections(progress: UserProgress, word_id: str, selected_ids: list[str],
                       new_name: str | None = None, collection_id: str | None = None) -> Transition:
    """Make word_id a member of exactly the selected collections.

    A non-blank new_name first creates a collection holding the word.
    """
    selected = set(selected_ids)
    collections = list(progress.collections)

    new_name = (new_name or '').strip()
    if new_name:
        created = Collection(id=collection_id or new_collection_id(), name=new_name, word_ids=(word_id,))
        collections.append(created)
        selected.add(created.id)

    updated = []
    for c in collections:
        has_word = word_id in c.word_ids
        wants_word = c.id in selected
        if wants_word and not has_word:
            c = Collection(c.id, c.name, c.word_ids + (word_id,))
        elif has_word and not wants_word:
            c = Collection(c.id, c.name, tuple(w for w in c.word_ids if w != word_id))
        updated.append(c)

    return Transition(progress.evolve(collections=tuple(updated)))
