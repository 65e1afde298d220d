"""REST API client for verbadiem server."""

import requests
from typing import Optional


class VerbaDiemAPIClient:
    """Client for communicating with the verbadiem REST API."""

    def __init__(self, base_url: str = "http://localhost:8000", user_id: str = "default"):
        self.base_url = base_url.rstrip('/')
        self.user_id = user_id
        self.session = requests.Session()

    def _get(self, endpoint: str, params: dict = None) -> dict:
        """Make a GET request."""
        if params is None:
            params = {}
        params['user_id'] = self.user_id
        response = self.session.get(f"{self.base_url}{endpoint}", params=params)
        response.raise_for_status()
        return response.json()

    def _post(self, endpoint: str, data: dict = None) -> dict:
        """Make a POST request."""
        data = dict(data or {})
        data['user_id'] = self.user_id
        response = self.session.post(f"{self.base_url}{endpoint}", json=data)
        response.raise_for_status()
        return response.json()

    def health_check(self) -> dict:
        """Check if the server is running."""
        response = self.session.get(f"{self.base_url}/")
        response.raise_for_status()
        return response.json()

    def get_state(self) -> dict:
        return self._get("/api/state")

    def get_statistics(self) -> dict:
        return self._get("/api/statistics")

    def start(self) -> dict:
        return self._post("/api/start")

    def complete_onboarding(self) -> dict:
        return self._post("/api/onboarding/complete")

    def navigate(self, view: str) -> dict:
        return self._post("/api/navigate", {'view': view})

    def back(self) -> dict:
        return self._post("/api/back")

    def fetch_word(self) -> dict:
        return self._post("/api/lesson/word")

    def fetch_challenge(self) -> dict:
        return self._post("/api/lesson/challenge")

    def answer_challenge(self, index: int) -> dict:
        return self._post("/api/lesson/answer", {'index': index})

    def dismiss_ad(self) -> dict:
        return self._post("/api/ad/dismiss")

    def find_related_word(self) -> dict:
        return self._post("/api/lesson/related")

    def start_practice(self) -> dict:
        return self._post("/api/practice/start")

    def send_practice_message(self, message: str) -> dict:
        return self._post("/api/practice/message", {'message': message})

    def finish_practice(self) -> dict:
        return self._post("/api/practice/finish")

    def start_review(self, word_ids: Optional[list[str]] = None) -> dict:
        return self._post("/api/review/start", {'word_ids': word_ids})

    def answer_review(self, index: int, answer: str) -> dict:
        return self._post("/api/review/answer", {'index': index, 'answer': answer})

    def finish_review(self) -> dict:
        return self._post("/api/review/finish")

    def create_collection(self, name: str) -> dict:
        return self._post("/api/collections", {'name': name})

    def set_languages(self, native: str = None, target: str = None) -> dict:
        return self._post("/api/settings/languages", {'native_language': native, 'target_language': target})

    def reset_progress(self) -> dict:
        return self._post("/api/settings/reset", {'confirm': True})
