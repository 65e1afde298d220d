from .models import (
    WordRecord, RelatedWord, SentenceOption, SentenceChallenge, StreakData,
    Collection, UserProgress, Notification, Transition, LessonOutcome
)
from .interfaces import AIProvider, Storage, ContentError, PracticeReply
from .cancellation import CancelToken, FetchCancelled
from .config import AD_FREQUENCY, XP_REWARDS, LEVELS, REVIEW_SESSION_SIZE

__all__ = [
    'WordRecord', 'RelatedWord', 'SentenceOption', 'SentenceChallenge', 'StreakData',
    'Collection', 'UserProgress', 'Notification', 'Transition', 'LessonOutcome',
    'AIProvider', 'Storage', 'ContentError', 'PracticeReply',
    'CancelToken', 'FetchCancelled',
    'AD_FREQUENCY', 'XP_REWARDS', 'LEVELS', 'REVIEW_SESSION_SIZE'
]
