"""Utility functions for verbadiem application."""

import base64
import io
import random
import re
import wave
from datetime import date, timedelta
from urllib.parse import quote

from .config import AUDIO_SAMPLE_RATE, REPORT_EMAIL
from .models import SentenceChallenge, WordRecord


def iso_day(day: date) -> str:
    return day.isoformat()


def today_and_yesterday(today: date | None = None) -> tuple[str, str]:
    """Return (today, yesterday) as ISO date strings in local time."""
    today = today or date.today()
    return iso_day(today), iso_day(today - timedelta(days=1))


def shuffle_challenge(challenge: SentenceChallenge, rng: random.Random = None) -> SentenceChallenge:
    """Fisher-Yates shuffle of the options, recomputing the correct index."""
    rng = rng or random
    options = list(challenge.options)
    correct = options[challenge.correct_index]
    for i in range(len(options) - 1, 0, -1):
        j = rng.randint(0, i)
        options[i], options[j] = options[j], options[i]
    new_index = next(i for i, opt in enumerate(options) if opt == correct)
    return SentenceChallenge(options=tuple(options), correct_index=new_index)


def blank_out_word(sentence: str, word: str) -> str:
    """Replace every case-insensitive occurrence of word with underscores."""
    if not word:
        return sentence
    pattern = re.compile(re.escape(word), re.IGNORECASE)
    return pattern.sub(lambda m: '_' * len(m.group(0)), sentence)


def answer_matches(answer: str, word: str) -> bool:
    answer = (answer or '').strip()
    return bool(answer) and answer.lower() == word.lower()


def pcm_to_wav(base64_pcm: str, sample_rate: int = AUDIO_SAMPLE_RATE, channels: int = 1) -> bytes:
    """Wrap base64 16-bit PCM from the TTS model in a WAV container."""
    pcm = base64.b64decode(base64_pcm)
    buf = io.BytesIO()
    with wave.open(buf, 'wb') as wav:
        wav.setnchannels(channels)
        wav.setsampwidth(2)
        wav.setframerate(sample_rate)
        wav.writeframes(pcm)
    return buf.getvalue()


def build_report_link(word: WordRecord, native_language: str, target_language: str) -> str:
    """mailto: link for reporting a problem with a word."""
    subject = f'VerbaDiem Content Report: "{word.word}"'
    body = (
        f'I would like to report an issue with the word "{word.word}" ({word.translation}).\n\n'
        f'Please describe the issue:\n\n\n---\n'
        f'App Details:\nNative Language: {native_language}\nTarget Language: {target_language}'
    )
    return f'mailto:{REPORT_EMAIL}?subject={quote(subject)}&body={quote(body)}'
