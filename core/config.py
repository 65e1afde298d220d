"""Configuration constants for verbadiem application."""

DEFAULT_NATIVE_LANGUAGE = 'pt'
DEFAULT_TARGET_LANGUAGE = 'en'

# Language code -> name used in Gemini prompts
LANGUAGE_ENGLISH_NAMES = {
    'en': 'English',
    'es': 'Spanish',
    'fr': 'French',
    'de': 'German',
    'pt': 'Portuguese',
    'ru': 'Russian',
    'zh': 'Mandarin Chinese',
}

# Language code -> name shown to the user
LANGUAGE_NATIVE_NAMES = {
    'en': 'English',
    'es': 'Español',
    'fr': 'Français',
    'de': 'Deutsch',
    'pt': 'Português',
    'ru': 'Русский',
    'zh': '中文',
}

# Gamification
AD_FREQUENCY = 3  # Show an ad every 3 lessons

XP_REWARDS = {
    'LESSON_COMPLETE': 20,
    'PERFECT_QUIZ': 10,
    'REVIEW_SESSION': 30,
    'RELATED_WORD': 5,
    'PRACTICE_SESSION': 15,
    'VISUALIZE_WORD': 10,
}

# (level, name, xp threshold), ascending
LEVELS = [
    (1, 'Novice', 0),
    (2, 'Apprentice', 200),
    (3, 'Wordsmith', 500),
    (4, 'Linguist', 1000),
    (5, 'Polyglot', 2000),
]

REVIEW_SESSION_SIZE = 5           # Words per review session
NOTIFICATION_DURATION_SECONDS = 3.0
PRACTICE_END_DELAY_SECONDS = 3    # Client waits this long before leaving the chat

# Gemini
TEXT_MODEL = 'gemini-2.5-flash'
IMAGE_MODEL = 'imagen-4.0-generate-001'
TTS_MODEL = 'gemini-2.5-flash-preview-tts'
GEMINI_REST_URL = 'https://generativelanguage.googleapis.com/v1beta'
AUDIO_SAMPLE_RATE = 24000  # Hz, 16-bit mono PCM from the TTS model

REPORT_EMAIL = 'verbadiemapp@gmail.com'


class StorageKeys:
    """Keys in the durable key-value store."""
    USER_DATA = 'verbaDiemUserData'
    NATIVE_LANGUAGE = 'nativeLanguage'
    TARGET_LANGUAGE = 'targetLanguage'
    HAS_VISITED = 'hasVisitedVerbaDiem'
    HAS_SEEN_ONBOARDING = 'hasSeenVerbaDiemOnboarding'

    # Legacy keys, consumed and deleted by migration
    LEGACY_LEARNED_WORDS = 'verbaDiemLearnedWords'
    LEGACY_STREAK = 'verbaDiemStreak'
    LEGACY_LONGEST_STREAK = 'verbaDiemLongestStreak'
    LEGACY_PRACTICE_COUNT = 'verbaDiemPracticeCount'
    LEGACY_VISUALIZE_COUNT = 'verbaDiemVisualizeCount'
    LEGACY_REVIEW_COUNT = 'verbaDiemReviewCount'
    LEGACY_RELATED_COUNT = 'verbaDiemRelatedCount'

    LEGACY_COUNTERS = {
        'practiceCount': LEGACY_PRACTICE_COUNT,
        'visualizeCount': LEGACY_VISUALIZE_COUNT,
        'reviewCount': LEGACY_REVIEW_COUNT,
        'relatedWordCount': LEGACY_RELATED_COUNT,
    }
    LEGACY_WORD_KEYS = (LEGACY_LEARNED_WORDS, LEGACY_STREAK, LEGACY_LONGEST_STREAK)
