"""Unit tests for verbadiem core module."""

import asyncio
import base64
import io
import json
import random
import unittest
import wave
from datetime import date

from core import gamification
from core.cancellation import CancelToken, FetchCancelled, TokenRegistry
from core.config import AD_FREQUENCY, AUDIO_SAMPLE_RATE, StorageKeys, XP_REWARDS
from core.migration import (
    RawStore, SchemaVersion, _parse_counter, detect_schema, load_progress, migrate, save_progress
)
from core.models import (
    Collection, Notification, SentenceChallenge, SentenceOption, StreakData, Transition, UserProgress
)
from core.offline_deck import OFFLINE_DECK, pick_offline_word
from core.utils import (
    answer_matches, blank_out_word, build_report_link, pcm_to_wav, shuffle_challenge, today_and_yesterday
)
from tests.mocks import MockStorage, make_word

TODAY = date(2024, 5, 10)


# ============================================================================
# Models and utilities
# ============================================================================

class TestUserProgress(unittest.TestCase):
    """Tests for UserProgress serialization."""

    def test_defaults(self):
        progress = UserProgress()
        self.assertEqual(progress.xp, 0)
        self.assertEqual(progress.level, 1)
        self.assertEqual(progress.streak, StreakData())
        self.assertEqual(progress.learned_words, {})
        self.assertEqual(progress.lessons_completed_since_ad, 0)

    def test_to_dict_uses_stored_field_names(self):
        word = make_word("Ephemeral")
        progress = UserProgress(learned_words={"Ephemeral": word}, xp=40,
                                collections=(Collection('c1', 'Fav', ('Ephemeral',)),))
        data = progress.to_dict()
        self.assertEqual(data['learnedWords']['Ephemeral']['exampleTranslation'], word.example_translation)
        self.assertEqual(data['collections'], [{'id': 'c1', 'name': 'Fav', 'wordIds': ['Ephemeral']}])
        self.assertEqual(data['streak'], {'count': 0, 'lastCompletionDate': ''})
        self.assertIn('lessonsCompletedSinceAd', data)

    def test_from_dict_restores_progress(self):
        original = UserProgress(
            streak=StreakData(3, '2024-05-09'), longest_streak=4,
            learned_words={"Ephemeral": make_word("Ephemeral")}, xp=250, level=2,
            unlocked_achievements=('LEARNED_1',), practice_count=2
        )
        self.assertEqual(UserProgress.from_dict(json.loads(json.dumps(original.to_dict()))), original)

    def test_from_dict_dedupes_achievements(self):
        progress = UserProgress.from_dict({'unlockedAchievements': ['LEARNED_1', 'STREAK_7', 'LEARNED_1']})
        self.assertEqual(progress.unlocked_achievements, ('LEARNED_1', 'STREAK_7'))

    def test_evolve_leaves_original_untouched(self):
        progress = UserProgress()
        updated = progress.evolve(xp=10)
        self.assertEqual(progress.xp, 0)
        self.assertEqual(updated.xp, 10)


class TestNotificationsAndTransitions(unittest.TestCase):

    def test_notification_ids_are_unique(self):
        ids = [Notification('xp', '+5 XP').id for _ in range(50)]
        self.assertEqual(len(set(ids)), 50)
        self.assertEqual(ids, sorted(ids))

    def test_then_concatenates_and_ors_flags(self):
        first = Transition(UserProgress(xp=1), (Notification('xp', 'a'),))
        second = Transition(UserProgress(xp=2), (Notification('level', 'b'),), confetti=True)
        chained = first.then(second)
        self.assertEqual(chained.progress.xp, 2)
        self.assertEqual([n.message for n in chained.notifications], ['a', 'b'])
        self.assertTrue(chained.confetti)
        self.assertFalse(chained.haptic)


class TestUtils(unittest.TestCase):
    """Tests for utility functions."""

    def test_today_and_yesterday_crosses_month(self):
        self.assertEqual(today_and_yesterday(date(2024, 3, 1)), ('2024-03-01', '2024-02-29'))

    def test_shuffle_challenge_tracks_correct_option(self):
        options = tuple(SentenceOption(f"s{i}", f"t{i}") for i in range(3))
        challenge = SentenceChallenge(options, correct_index=2)
        for seed in range(20):
            shuffled = shuffle_challenge(challenge, random.Random(seed))
            self.assertEqual(sorted(o.sentence for o in shuffled.options), ['s0', 's1', 's2'])
            self.assertEqual(shuffled.options[shuffled.correct_index].sentence, 's2')

    def test_blank_out_word_is_case_insensitive(self):
        result = blank_out_word("Ephemeral beauty is ephemeral.", "ephemeral")
        self.assertEqual(result, "_________ beauty is _________.")

    def test_blank_out_word_without_match(self):
        self.assertEqual(blank_out_word("Nothing here.", "word"), "Nothing here.")

    def test_answer_matches(self):
        self.assertTrue(answer_matches("  EPHEMERAL ", "Ephemeral"))
        self.assertFalse(answer_matches("", "Ephemeral"))
        self.assertFalse(answer_matches("Ephemera", "Ephemeral"))

    def test_pcm_to_wav(self):
        pcm = b'\x00\x01' * 10
        wav_bytes = pcm_to_wav(base64.b64encode(pcm).decode())
        self.assertTrue(wav_bytes.startswith(b'RIFF'))
        with wave.open(io.BytesIO(wav_bytes), 'rb') as wav:
            self.assertEqual(wav.getframerate(), AUDIO_SAMPLE_RATE)
            self.assertEqual(wav.getnchannels(), 1)
            self.assertEqual(wav.getsampwidth(), 2)
            self.assertEqual(wav.getnframes(), 10)

    def test_build_report_link(self):
        link = build_report_link(make_word("Lethargy"), 'pt', 'en')
        self.assertTrue(link.startswith('mailto:'))
        self.assertIn('Lethargy', link)
        self.assertIn('Native%20Language%3A%20pt', link)


class TestOfflineDeck(unittest.TestCase):

    def test_skips_learned_words(self):
        learned = [w.word for w in OFFLINE_DECK[1:]]
        self.assertEqual(pick_offline_word(learned), OFFLINE_DECK[0])

    def test_exhausted_deck(self):
        self.assertIsNone(pick_offline_word([w.word for w in OFFLINE_DECK]))


# ============================================================================
# Gamification
# ============================================================================

class TestLevels(unittest.TestCase):

    def test_level_for_xp(self):
        self.assertEqual(gamification.level_for_xp(0), 1)
        self.assertEqual(gamification.level_for_xp(199), 1)
        self.assertEqual(gamification.level_for_xp(200), 2)
        self.assertEqual(gamification.level_for_xp(1999), 4)
        self.assertEqual(gamification.level_for_xp(2000), 5)
        self.assertEqual(gamification.level_for_xp(100000), 5)

    def test_level_is_monotonic(self):
        levels = [gamification.level_for_xp(xp) for xp in range(0, 2500, 10)]
        self.assertEqual(levels, sorted(levels))

    def test_level_progress_percent(self):
        self.assertEqual(gamification.level_progress_percent(UserProgress(xp=350, level=2)), 50.0)
        self.assertEqual(gamification.level_progress_percent(UserProgress(xp=5000, level=5)), 100.0)


class TestAwardXp(unittest.TestCase):

    def test_award_without_level_up(self):
        result = gamification.award_xp(UserProgress(xp=10), 20)
        self.assertEqual(result.progress.xp, 30)
        self.assertEqual(result.progress.level, 1)
        self.assertEqual([n.category for n in result.notifications], ['xp'])
        self.assertEqual(result.notifications[0].message, '+20 XP')
        self.assertFalse(result.confetti)

    def test_level_up_celebrates(self):
        result = gamification.award_xp(UserProgress(xp=190, level=1), 20)
        self.assertEqual(result.progress.level, 2)
        self.assertIn('level', [n.category for n in result.notifications])
        self.assertTrue(result.confetti)
        self.assertTrue(result.haptic)

    def test_level_jumps_straight_to_derived_level(self):
        result = gamification.award_xp(UserProgress(), 600)
        self.assertEqual(result.progress.level, 3)

    def test_negative_amount_rejected(self):
        with self.assertRaises(ValueError):
            gamification.award_xp(UserProgress(), -5)

    def test_award_rechecks_achievements(self):
        progress = UserProgress(practice_count=1)
        result = gamification.award_xp(progress, 5)
        self.assertIn('PRACTICE_1', result.progress.unlocked_achievements)


class TestCheckAchievements(unittest.TestCase):

    def test_nothing_new(self):
        progress = UserProgress()
        result = gamification.check_achievements(progress)
        self.assertIs(result.progress, progress)
        self.assertEqual(result.notifications, ())
        self.assertFalse(result.confetti)

    def test_streak_achievement(self):
        result = gamification.check_achievements(UserProgress(streak=StreakData(7, '2024-05-10')))
        self.assertEqual(result.progress.unlocked_achievements, ('STREAK_7',))
        self.assertEqual(len(result.notifications), 1)
        self.assertTrue(result.confetti)

    def test_perfect_lesson_needs_trigger(self):
        progress = UserProgress()
        self.assertNotIn('PERFECT_LESSON', gamification.check_achievements(progress).progress.unlocked_achievements)
        result = gamification.check_achievements(progress, 'perfect_quiz')
        self.assertIn('PERFECT_LESSON', result.progress.unlocked_achievements)

    def test_multiple_unlocks_in_declaration_order(self):
        words = {f"w{i}": make_word(f"w{i}") for i in range(25)}
        progress = UserProgress(learned_words=words, review_count=10)
        result = gamification.check_achievements(progress)
        self.assertEqual(result.progress.unlocked_achievements, ('LEARNED_1', 'LEARNED_25', 'REVIEW_10'))
        self.assertEqual(len(result.notifications), 3)

    def test_unlocked_achievements_stay_unique(self):
        progress = UserProgress(learned_words={"a": make_word("a")}, unlocked_achievements=('LEARNED_1',))
        result = gamification.check_achievements(progress)
        self.assertEqual(result.progress.unlocked_achievements, ('LEARNED_1',))
        self.assertEqual(result.notifications, ())


class TestCompleteLesson(unittest.TestCase):
    """Tests for the lesson reducer."""

    def test_first_lesson_first_try(self):
        word = make_word("Ephemeral")
        progress = UserProgress()
        outcome = gamification.complete_lesson(progress, word, True, today=TODAY)

        p = outcome.progress
        self.assertEqual(p.xp, XP_REWARDS['LESSON_COMPLETE'] + XP_REWARDS['PERFECT_QUIZ'])
        self.assertEqual(p.xp, 30)
        self.assertEqual(p.level, 1)
        self.assertEqual(p.streak, StreakData(1, '2024-05-10'))
        self.assertEqual(p.longest_streak, 1)
        self.assertEqual(p.learned_words, {"Ephemeral": word})
        self.assertIn('LEARNED_1', p.unlocked_achievements)
        self.assertIn('PERFECT_LESSON', p.unlocked_achievements)
        self.assertEqual(p.lessons_completed_since_ad, 1)
        self.assertFalse(outcome.show_ad)
        self.assertTrue(outcome.confetti)
        # Input untouched
        self.assertEqual(progress.xp, 0)

    def test_not_first_try_skips_perfect_bonus(self):
        outcome = gamification.complete_lesson(UserProgress(), make_word("A"), False, today=TODAY)
        self.assertEqual(outcome.progress.xp, 20)
        self.assertNotIn('PERFECT_LESSON', outcome.progress.unlocked_achievements)

    def test_same_day_repeat(self):
        first = gamification.complete_lesson(UserProgress(), make_word("A"), True, today=TODAY).progress
        again = gamification.complete_lesson(first, make_word("B"), True, today=TODAY)
        p = again.progress
        self.assertEqual(p.xp, first.xp)
        self.assertEqual(p.streak, first.streak)
        self.assertIn("B", p.learned_words)
        self.assertEqual(p.lessons_completed_since_ad, 2)
        self.assertEqual(again.notifications, ())

    def test_streak_continues_from_yesterday(self):
        progress = UserProgress(streak=StreakData(3, '2024-05-09'), longest_streak=5)
        p = gamification.complete_lesson(progress, make_word("A"), False, today=TODAY).progress
        self.assertEqual(p.streak.count, 4)
        self.assertEqual(p.longest_streak, 5)

    def test_streak_resets_after_gap(self):
        progress = UserProgress(streak=StreakData(3, '2024-05-01'), longest_streak=3)
        p = gamification.complete_lesson(progress, make_word("A"), False, today=TODAY).progress
        self.assertEqual(p.streak.count, 1)
        self.assertEqual(p.longest_streak, 3)

    def test_longest_streak_follows_current(self):
        progress = UserProgress(streak=StreakData(5, '2024-05-09'), longest_streak=5)
        p = gamification.complete_lesson(progress, make_word("A"), False, today=TODAY).progress
        self.assertEqual(p.streak.count, 6)
        self.assertEqual(p.longest_streak, 6)

    def test_seventh_day_unlocks_streak_achievement(self):
        progress = UserProgress(streak=StreakData(6, '2024-05-09'), longest_streak=6)
        p = gamification.complete_lesson(progress, make_word("A"), False, today=TODAY).progress
        self.assertIn('STREAK_7', p.unlocked_achievements)

    def test_first_write_wins(self):
        stored = make_word("A", translation="original")
        progress = UserProgress(learned_words={"A": stored})
        p = gamification.complete_lesson(progress, make_word("A", translation="changed"), False, today=TODAY).progress
        self.assertEqual(p.learned_words["A"].translation, "original")

    def test_ad_every_third_lesson(self):
        progress = UserProgress()
        flags = []
        for i in range(AD_FREQUENCY * 2):
            outcome = gamification.complete_lesson(progress, make_word(f"w{i}"), False, today=TODAY)
            flags.append(outcome.show_ad)
            progress = outcome.progress
        self.assertEqual(flags, [False, False, True, False, False, True])
        self.assertEqual(progress.lessons_completed_since_ad, 0)

    def test_should_show_ad_matches_outcome(self):
        progress = UserProgress(lessons_completed_since_ad=AD_FREQUENCY - 1)
        self.assertTrue(gamification.should_show_ad(progress))
        outcome = gamification.complete_lesson(progress, make_word("A"), False, today=TODAY)
        self.assertTrue(outcome.show_ad)
        self.assertEqual(outcome.progress.lessons_completed_since_ad, 0)


class TestActivityRewards(unittest.TestCase):

    def test_finish_review_session(self):
        result = gamification.finish_review_session(UserProgress(review_count=9))
        self.assertEqual(result.progress.review_count, 10)
        self.assertEqual(result.progress.xp, XP_REWARDS['REVIEW_SESSION'])
        self.assertIn('REVIEW_10', result.progress.unlocked_achievements)

    def test_finish_practice_session(self):
        result = gamification.finish_practice_session(UserProgress())
        self.assertEqual(result.progress.practice_count, 1)
        self.assertEqual(result.progress.xp, 15)
        self.assertIn('PRACTICE_1', result.progress.unlocked_achievements)

    def test_find_related_word(self):
        result = gamification.find_related_word(UserProgress(related_word_count=2, xp=100))
        self.assertEqual(result.progress.related_word_count, 3)
        self.assertEqual(result.progress.xp, 105)

    def test_visualize_word(self):
        result = gamification.visualize_word(UserProgress(visualize_count=4))
        self.assertEqual(result.progress.visualize_count, 5)
        self.assertEqual(result.progress.xp, 10)
        self.assertIn('VISUALIZE_5', result.progress.unlocked_achievements)


class TestCollections(unittest.TestCase):

    def setUp(self):
        self.progress = UserProgress(learned_words={"A": make_word("A"), "B": make_word("B")})

    def test_create_collection(self):
        result = gamification.create_collection(self.progress, "  Favourites ", collection_id='c1')
        self.assertEqual(result.progress.collections, (Collection('c1', 'Favourites', ()),))

    def test_blank_name_ignored(self):
        result = gamification.create_collection(self.progress, "   ")
        self.assertIs(result.progress, self.progress)

    def test_generated_ids_are_unique(self):
        p = gamification.create_collection(self.progress, "One").progress
        p = gamification.create_collection(p, "Two").progress
        self.assertNotEqual(p.collections[0].id, p.collections[1].id)

    def test_membership_matches_selection(self):
        p = gamification.create_collection(self.progress, "One", collection_id='c1').progress
        p = gamification.create_collection(p, "Two", collection_id='c2').progress

        p = gamification.update_collections(p, "A", ['c1', 'c2']).progress
        self.assertEqual([c.word_ids for c in p.collections], [("A",), ("A",)])

        # Re-selecting does not duplicate
        p = gamification.update_collections(p, "A", ['c1']).progress
        self.assertEqual([c.word_ids for c in p.collections], [("A",), ()])

        p = gamification.update_collections(p, "B", ['c1']).progress
        self.assertEqual(p.collections[0].word_ids, ("A", "B"))

    def test_new_name_creates_collection_with_word(self):
        p = gamification.create_collection(self.progress, "One", collection_id='c1').progress
        p = gamification.update_collections(p, "A", [], new_name="Rainy", collection_id='c9').progress
        self.assertEqual(p.collections[1], Collection('c9', 'Rainy', ("A",)))
        self.assertEqual(p.collections[0].word_ids, ())


# ============================================================================
# Migration
# ============================================================================

class TestMigration(unittest.TestCase):
    """Tests for loading stored progress of every shape."""

    def test_empty_store(self):
        result = migrate(RawStore())
        self.assertEqual(result.schema, SchemaVersion.EMPTY)
        self.assertEqual(result.progress, UserProgress())
        self.assertEqual(result.stale_keys, ())

    def test_current_blob(self):
        progress = UserProgress(xp=250, level=2, practice_count=1,
                                learned_words={"A": make_word("A")})
        raw = RawStore(user_data=json.dumps(progress.to_dict()))
        result = migrate(raw)
        self.assertEqual(result.schema, SchemaVersion.CURRENT)
        self.assertEqual(result.progress, progress)

    def test_stored_level_is_rederived(self):
        data = UserProgress(xp=10).to_dict()
        data['level'] = 5
        result = migrate(RawStore(user_data=json.dumps(data)))
        self.assertEqual(result.progress.level, 1)

    def test_words_as_list(self):
        data = UserProgress(xp=40).to_dict()
        data['learnedWords'] = [make_word("A").to_dict(), make_word("B").to_dict()]
        del data['collections']
        result = migrate(RawStore(user_data=json.dumps(data)))
        self.assertEqual(result.schema, SchemaVersion.WORDS_AS_LIST)
        self.assertEqual(list(result.progress.learned_words), ["A", "B"])
        self.assertEqual(result.progress.learned_words["B"], make_word("B"))
        self.assertEqual(result.progress.collections, ())

    def test_counters_separate(self):
        data = UserProgress(xp=40).to_dict()
        for name in StorageKeys.LEGACY_COUNTERS:
            del data[name]
        raw = RawStore(
            user_data=json.dumps(data),
            legacy_counters={'practiceCount': '3', 'visualizeCount': None,
                             'reviewCount': '7x', 'relatedWordCount': 'junk'}
        )
        result = migrate(raw)
        self.assertEqual(result.schema, SchemaVersion.COUNTERS_SEPARATE)
        self.assertEqual(result.progress.practice_count, 3)
        self.assertEqual(result.progress.visualize_count, 0)
        self.assertEqual(result.progress.review_count, 7)
        self.assertEqual(result.progress.related_word_count, 0)
        self.assertEqual(set(result.stale_keys), set(StorageKeys.LEGACY_COUNTERS.values()))

    def test_single_missing_counter_taken_from_legacy(self):
        data = UserProgress(practice_count=1, visualize_count=2, related_word_count=3).to_dict()
        del data['reviewCount']
        raw = RawStore(
            user_data=json.dumps(data),
            legacy_counters={'practiceCount': '9', 'reviewCount': '7'}
        )
        result = migrate(raw)
        self.assertEqual(result.schema, SchemaVersion.COUNTERS_SEPARATE)
        self.assertEqual(result.progress.review_count, 7)
        # Counters already in the blob win over their legacy keys
        self.assertEqual(result.progress.practice_count, 1)
        self.assertEqual(result.progress.visualize_count, 2)
        self.assertEqual(result.stale_keys, (StorageKeys.LEGACY_REVIEW_COUNT,))

    def test_missing_fields_get_defaults(self):
        data = {'xp': 500, 'practiceCount': 1, 'learnedWords': {}}
        result = migrate(RawStore(user_data=json.dumps(data)))
        self.assertEqual(result.progress.lessons_completed_since_ad, 0)
        self.assertEqual(result.progress.streak, StreakData())
        self.assertEqual(result.progress.level, 3)

    def test_legacy_keys(self):
        words = [make_word("A").to_dict(), make_word("B").to_dict(), make_word("C").to_dict()]
        result = migrate(RawStore(legacy_words=json.dumps(words)))
        self.assertEqual(result.schema, SchemaVersion.LEGACY_KEYS)
        self.assertEqual(set(result.progress.learned_words), {"A", "B", "C"})
        self.assertEqual(result.progress.xp, 60)
        self.assertEqual(result.progress.level, 1)
        self.assertEqual(result.stale_keys, StorageKeys.LEGACY_WORD_KEYS)

    def test_legacy_keys_level_derived(self):
        words = [make_word(f"w{i}").to_dict() for i in range(12)]
        result = migrate(RawStore(legacy_words=json.dumps(words)))
        self.assertEqual(result.progress.xp, 240)
        self.assertEqual(result.progress.level, 2)

    def test_detect_schema_rejects_non_object(self):
        with self.assertRaises(ValueError):
            detect_schema(RawStore(user_data='[1, 2]'))

    def test_parse_counter(self):
        self.assertEqual(_parse_counter(None), 0)
        self.assertEqual(_parse_counter(''), 0)
        self.assertEqual(_parse_counter('12'), 12)
        self.assertEqual(_parse_counter(' 4abc'), 4)
        self.assertEqual(_parse_counter('abc'), 0)
        self.assertEqual(_parse_counter('-3'), 0)


class TestLoadProgress(unittest.TestCase):
    """Tests for load_progress/save_progress against a store."""

    def setUp(self):
        self.storage = MockStorage()

    def test_round_trip_through_store(self):
        progress = UserProgress(xp=30, learned_words={"A": make_word("A")}, unlocked_achievements=('LEARNED_1',))
        save_progress(self.storage, progress)
        self.assertEqual(load_progress(self.storage), progress)

    def test_corrupt_blob_falls_back_to_defaults(self):
        self.storage.set_item(StorageKeys.USER_DATA, '{not json')
        self.assertEqual(load_progress(self.storage), UserProgress())

    def test_corrupt_legacy_list_falls_back_to_defaults(self):
        self.storage.set_item(StorageKeys.LEGACY_LEARNED_WORDS, '{"word": "A"}')
        self.assertEqual(load_progress(self.storage), UserProgress())

    def test_legacy_keys_deleted_after_load(self):
        self.storage.set_item(StorageKeys.LEGACY_LEARNED_WORDS, json.dumps([make_word("A").to_dict()]))
        self.storage.set_item(StorageKeys.LEGACY_STREAK, '{"count": 2}')
        self.storage.set_item(StorageKeys.LEGACY_LONGEST_STREAK, '4')
        progress = load_progress(self.storage)
        self.assertEqual(progress.xp, 20)
        for key in StorageKeys.LEGACY_WORD_KEYS:
            self.assertIsNone(self.storage.get_item(key))

    def test_legacy_counters_deleted_after_load(self):
        data = UserProgress().to_dict()
        del data['practiceCount']
        self.storage.set_item(StorageKeys.USER_DATA, json.dumps(data))
        self.storage.set_item(StorageKeys.LEGACY_PRACTICE_COUNT, '2')
        progress = load_progress(self.storage)
        self.assertEqual(progress.practice_count, 2)
        self.assertIsNone(self.storage.get_item(StorageKeys.LEGACY_PRACTICE_COUNT))

    def test_legacy_keys_migration_survives_reload(self):
        words = [make_word("Alpha").to_dict(), make_word("Beta").to_dict()]
        self.storage.set_item(StorageKeys.LEGACY_LEARNED_WORDS, json.dumps(words))
        first = load_progress(self.storage)
        second = load_progress(self.storage)
        self.assertEqual(list(first.learned_words), ["Alpha", "Beta"])
        self.assertEqual(first.xp, 40)
        self.assertEqual(second, first)
        self.assertIsNotNone(self.storage.get_item(StorageKeys.USER_DATA))

    def test_counter_migration_survives_reload(self):
        data = UserProgress(xp=30).to_dict()
        for name in StorageKeys.LEGACY_COUNTERS:
            del data[name]
        self.storage.set_item(StorageKeys.USER_DATA, json.dumps(data))
        self.storage.set_item(StorageKeys.LEGACY_REVIEW_COUNT, '7')
        self.assertEqual(load_progress(self.storage).review_count, 7)
        self.assertEqual(load_progress(self.storage).review_count, 7)
        self.assertIsNone(self.storage.get_item(StorageKeys.LEGACY_REVIEW_COUNT))

    def test_partly_migrated_counters_in_store(self):
        data = UserProgress(practice_count=1).to_dict()
        del data['reviewCount']
        self.storage.set_item(StorageKeys.USER_DATA, json.dumps(data))
        self.storage.set_item(StorageKeys.LEGACY_REVIEW_COUNT, '7')
        self.assertEqual(load_progress(self.storage).review_count, 7)
        self.assertIsNone(self.storage.get_item(StorageKeys.LEGACY_REVIEW_COUNT))
        self.assertEqual(load_progress(self.storage).practice_count, 1)

    def test_current_store_not_rewritten(self):
        save_progress(self.storage, UserProgress(xp=30))
        self.storage.set_calls.clear()
        load_progress(self.storage)
        self.assertEqual(self.storage.set_calls, [])

    def test_users_are_isolated(self):
        save_progress(self.storage, UserProgress(xp=99), user_id='alice')
        self.assertEqual(load_progress(self.storage, 'bob'), UserProgress())
        self.assertEqual(load_progress(self.storage, 'alice').xp, 99)


# ============================================================================
# Cancellation
# ============================================================================

class TestCancelToken(unittest.IsolatedAsyncioTestCase):

    async def test_run_returns_result(self):
        async def work():
            return 42
        self.assertEqual(await CancelToken('word').run(work()), 42)

    async def test_cancelled_before_run(self):
        token = CancelToken('word')
        token.cancel()

        async def work():
            return 42
        coro = work()
        with self.assertRaises(FetchCancelled):
            await token.run(coro)
        coro.close()

    async def test_cancel_while_waiting_discards_result(self):
        token = CancelToken('word')
        finished = []

        async def slow():
            await asyncio.sleep(5)
            finished.append(True)
            return 'late'

        async def cancel_soon():
            await asyncio.sleep(0.01)
            token.cancel()

        canceller = asyncio.ensure_future(cancel_soon())
        with self.assertRaises(FetchCancelled):
            await token.run(slow())
        await canceller
        self.assertEqual(finished, [])

    def test_registry_renew_cancels_previous(self):
        registry = TokenRegistry()
        first = registry.renew('word')
        second = registry.renew('word')
        self.assertTrue(first.cancelled)
        self.assertFalse(second.cancelled)
        other = registry.renew('audio')
        registry.cancel_all()
        self.assertTrue(second.cancelled)
        self.assertTrue(other.cancelled)

    def test_registry_cancel_covers_sub_scopes(self):
        registry = TokenRegistry()
        first = registry.renew('audio:Alpha')
        second = registry.renew('audio:Beta')
        unrelated = registry.renew('audiobook')
        self.assertFalse(first.cancelled)
        registry.cancel('audio')
        self.assertTrue(first.cancelled)
        self.assertTrue(second.cancelled)
        self.assertFalse(unrelated.cancelled)


if __name__ == '__main__':
    unittest.main()
