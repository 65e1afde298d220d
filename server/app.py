"""FastAPI server for verbadiem application."""

import logging
import os

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel
from typing import Optional

from core.cancellation import FetchCancelled
from core.config import (
    AD_FREQUENCY, LANGUAGE_ENGLISH_NAMES, LANGUAGE_NATIVE_NAMES, TEXT_MODEL, XP_REWARDS
)
from core.interfaces import AIProvider, ContentError, Storage
from core.models import WordRecord
from core.utils import blank_out_word

from server.gemini_provider import GeminiProvider
from server.file_storage import FileStorage
from server.postgres_storage import PostgresStorage
from server.session import InvalidTransition, SessionOrchestrator, View

logger = logging.getLogger(__name__)


# Pydantic models for API
class UserRequest(BaseModel):
    user_id: str = "default"


class NavigateRequest(UserRequest):
    view: str


class WordModel(BaseModel):
    word: str
    pronunciation: str = ''
    translation: str = ''
    etymology: str = ''
    example: str = ''
    exampleTranslation: str = ''


class CompleteLessonRequest(UserRequest):
    word: WordModel
    is_first_try: bool = False


class AnswerRequest(UserRequest):
    index: int


class ReviewStartRequest(UserRequest):
    word_ids: Optional[list[str]] = None


class ReviewAnswerRequest(UserRequest):
    index: int
    answer: str


class PracticeMessageRequest(UserRequest):
    message: str


class CreateCollectionRequest(UserRequest):
    name: str


class UpdateCollectionsRequest(UserRequest):
    word_id: str
    selected_ids: list[str] = []
    new_name: Optional[str] = None


class LanguagesRequest(UserRequest):
    native_language: Optional[str] = None
    target_language: Optional[str] = None


class ResetRequest(UserRequest):
    confirm: bool = False


class ReportRequest(UserRequest):
    word_id: Optional[str] = None


class StateResponse(BaseModel):
    view: str
    native_language: str
    target_language: str
    show_onboarding: bool
    ad_pending: bool
    daily_word: Optional[dict]
    progress: dict
    notifications: list[dict]
    confetti: bool
    haptic: bool


# Global state (in production, use proper DI)
storage: Storage = None
ai_provider: AIProvider = None
sessions: dict[str, SessionOrchestrator] = {}


app = FastAPI(title="VerbaDiem API", description="Word-of-the-day language learning API")


@app.exception_handler(InvalidTransition)
async def invalid_transition_handler(request: Request, exc: InvalidTransition):
    return JSONResponse(status_code=400, content={"detail": str(exc)})


@app.exception_handler(FetchCancelled)
async def fetch_cancelled_handler(request: Request, exc: FetchCancelled):
    return JSONResponse(status_code=409, content={"detail": str(exc)})


@app.exception_handler(ContentError)
async def content_error_handler(request: Request, exc: ContentError):
    return JSONResponse(status_code=502, content={"detail": str(exc)})


def get_session(user_id: str = "default") -> SessionOrchestrator:
    """Get or create the orchestrator for a user."""
    if user_id not in sessions:
        sessions[user_id] = SessionOrchestrator(storage, ai_provider, user_id=user_id)
    return sessions[user_id]


def state_response(session: SessionOrchestrator) -> StateResponse:
    effects = session.take_effects()
    return StateResponse(
        **session.snapshot(),
        notifications=[n.to_dict() for n in session.active_notifications()],
        confetti=effects['confetti'],
        haptic=effects['haptic']
    )


def parse_view(name: str) -> View:
    try:
        return View(name)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Unknown view: {name}")


@app.on_event("startup")
async def startup():
    """Initialize storage and AI provider on startup."""
    global storage, ai_provider

    # Set VERBADIEM_STORAGE=postgres to use PostgreSQL
    storage_type = os.environ.get('VERBADIEM_STORAGE', 'file')
    if storage_type == 'postgres':
        storage = PostgresStorage()
        print("Using PostgreSQL storage")
    else:
        storage = FileStorage()
        print("Using file storage")

    # Get API key from environment variable first, then fall back to config file
    api_key = os.environ.get('GEMINI_API_KEY')
    if not api_key:
        try:
            config = storage.load_config()
            api_key = config.get('gemini_api_key')
        except FileNotFoundError:
            pass

    if not api_key:
        raise RuntimeError(
            "GEMINI_API_KEY environment variable not set and config file not found. "
            "Set GEMINI_API_KEY or create ~/.config/verbadiem/config.json"
        )

    ai_provider = GeminiProvider(api_key, model_name=TEXT_MODEL)
    print(f"AI provider initialized: {TEXT_MODEL}")


@app.get("/")
async def root():
    return {"service": "verbadiem", "status": "ok"}


@app.get("/api/config")
async def get_config():
    """Static tables the client needs for rendering."""
    return {
        "languages": [
            {"code": code, "name": LANGUAGE_NATIVE_NAMES[code], "english_name": name}
            for code, name in LANGUAGE_ENGLISH_NAMES.items()
        ],
        "xp_rewards": XP_REWARDS,
        "ad_frequency": AD_FREQUENCY
    }


@app.get("/api/state", response_model=StateResponse)
async def get_state(user_id: str = "default"):
    return state_response(get_session(user_id))


@app.get("/api/statistics")
async def get_statistics(user_id: str = "default"):
    return get_session(user_id).statistics()


@app.post("/api/start", response_model=StateResponse)
async def start(request: UserRequest):
    """Leave the welcome screen."""
    session = get_session(request.user_id)
    session.start()
    return state_response(session)


@app.post("/api/onboarding/complete", response_model=StateResponse)
async def complete_onboarding(request: UserRequest):
    session = get_session(request.user_id)
    session.complete_onboarding()
    return state_response(session)


@app.post("/api/navigate", response_model=StateResponse)
async def navigate(request: NavigateRequest):
    session = get_session(request.user_id)
    session.navigate(parse_view(request.view))
    return state_response(session)


@app.post("/api/back")
async def back(request: UserRequest):
    """Platform back button. intercepted=False means the client may exit."""
    session = get_session(request.user_id)
    intercepted = session.back()
    return {"intercepted": intercepted, "state": state_response(session)}


@app.get("/api/events")
async def get_events(user_id: str = "default", event: Optional[str] = None, limit: int = 50):
    """Recent activity for a user. Only the Postgres store keeps an event log."""
    if not hasattr(storage, 'get_user_events'):
        return []
    return storage.get_user_events(user_id, event_type=event, limit=limit)


# Learning
@app.post("/api/lesson/word")
async def fetch_word(request: UserRequest):
    session = get_session(request.user_id)
    try:
        word = await session.fetch_daily_word()
    except ContentError as e:
        raise HTTPException(status_code=503, detail=str(e))
    return {"word": word.to_dict(), "state": state_response(session)}


@app.post("/api/lesson/challenge")
async def fetch_challenge(request: UserRequest):
    session = get_session(request.user_id)
    challenge = await session.fetch_sentence_challenge()
    return challenge.to_dict()


@app.post("/api/lesson/answer")
async def answer_challenge(request: AnswerRequest):
    session = get_session(request.user_id)
    correct, show_ad = session.answer_challenge(request.index)
    logger.info(f"[{request.user_id}] Quiz answer {request.index}: correct={correct}")
    return {"correct": correct, "show_ad": show_ad, "state": state_response(session)}


@app.post("/api/lesson/complete")
async def complete_lesson(request: CompleteLessonRequest):
    session = get_session(request.user_id)
    word = WordRecord.from_dict(request.word.model_dump())
    show_ad = session.complete_lesson(word, request.is_first_try)
    return {"show_ad": show_ad, "state": state_response(session)}


@app.post("/api/ad/dismiss", response_model=StateResponse)
async def dismiss_ad(request: UserRequest):
    session = get_session(request.user_id)
    session.dismiss_ad()
    return state_response(session)


@app.post("/api/lesson/related")
async def related_word(request: UserRequest):
    session = get_session(request.user_id)
    related = await session.fetch_related_word()
    return {"related_word": related.to_dict(), "state": state_response(session)}


@app.post("/api/lesson/visualize")
async def visualize(request: UserRequest):
    session = get_session(request.user_id)
    image = await session.fetch_mnemonic_image()
    return {"image_base64": image, "mime_type": "image/jpeg", "state": state_response(session)}


@app.get("/api/audio")
async def pronunciation(word: str, user_id: str = "default"):
    session = get_session(user_id)
    wav = await session.fetch_pronunciation(word)
    return Response(content=wav, media_type="audio/wav")


@app.post("/api/report")
async def report_word(request: ReportRequest):
    session = get_session(request.user_id)
    link = session.report_word(request.word_id)
    return {"mailto": link, "state": state_response(session)}


# Practice
@app.post("/api/practice/start")
async def start_practice(request: UserRequest):
    session = get_session(request.user_id)
    reply = await session.start_practice()
    return {"text": reply.text, "ended": reply.ended}


@app.post("/api/practice/message")
async def practice_message(request: PracticeMessageRequest):
    session = get_session(request.user_id)
    reply = await session.send_practice_message(request.message)
    return {"text": reply.text, "ended": reply.ended}


@app.post("/api/practice/finish", response_model=StateResponse)
async def finish_practice(request: UserRequest):
    session = get_session(request.user_id)
    session.finish_practice()
    return state_response(session)


# Review
@app.post("/api/review/start")
async def start_review(request: ReviewStartRequest):
    session = get_session(request.user_id)
    words = session.start_review(request.word_ids)
    if not words:
        raise HTTPException(status_code=400, detail="No words to review")
    return {
        "items": [
            {"index": i, "sentence": blank_out_word(w.example, w.word), "translation": w.example_translation}
            for i, w in enumerate(words)
        ],
        "state": state_response(session)
    }


@app.post("/api/review/answer")
async def review_answer(request: ReviewAnswerRequest):
    session = get_session(request.user_id)
    correct = session.check_review_answer(request.index, request.answer)
    return {"correct": correct, "word": session.review_words[request.index].word}


@app.post("/api/review/finish", response_model=StateResponse)
async def finish_review(request: UserRequest):
    session = get_session(request.user_id)
    session.finish_review()
    return state_response(session)


# Collections
@app.post("/api/collections", response_model=StateResponse)
async def create_collection(request: CreateCollectionRequest):
    session = get_session(request.user_id)
    session.create_collection(request.name)
    return state_response(session)


@app.post("/api/collections/update", response_model=StateResponse)
async def update_collections(request: UpdateCollectionsRequest):
    session = get_session(request.user_id)
    session.update_collections(request.word_id, request.selected_ids, request.new_name)
    return state_response(session)


# Settings
@app.post("/api/settings/languages", response_model=StateResponse)
async def set_languages(request: LanguagesRequest):
    session = get_session(request.user_id)
    if request.native_language:
        session.set_native_language(request.native_language)
    if request.target_language:
        session.set_target_language(request.target_language)
    return state_response(session)


@app.post("/api/settings/reset", response_model=StateResponse)
async def reset_progress(request: ResetRequest):
    session = get_session(request.user_id)
    session.reset_progress(request.confirm)
    return state_response(session)


def create_app():
    """Factory function for creating the app (useful for testing)."""
    return app
