"""File-based storage implementation."""

import json
import os

from core.interfaces import Storage


class FileStorage(Storage):
    """Key-value store kept as one JSON object per user on disk."""

    def __init__(self, config_file: str = None, state_dir: str = None):
        self.config_file = config_file or os.path.expanduser('~/.config/verbadiem/config.json')
        # Project root is one level up from server/
        project_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
        self.state_dir = state_dir or os.environ.get('VERBADIEM_STATE_DIR') or project_root

    def _get_state_file(self, user_id: str) -> str:
        """Get state file path for a user."""
        if user_id == "default":
            return os.path.join(self.state_dir, 'verbadiem_state.json')
        return os.path.join(self.state_dir, f'verbadiem_state_{user_id}.json')

    def load_config(self) -> dict:
        if not os.path.exists(self.config_file):
            raise FileNotFoundError(
                f"Config file not found at {self.config_file}\n"
                f'Please create it with: {{"gemini_api_key": "YOUR_API_KEY_HERE"}}'
            )
        with open(self.config_file, 'r') as f:
            return json.load(f)

    def _load(self, user_id: str) -> dict:
        state_file = self._get_state_file(user_id)
        if os.path.exists(state_file):
            try:
                with open(state_file, 'r') as f:
                    data = json.load(f)
                return data if isinstance(data, dict) else {}
            except (OSError, ValueError):
                return {}
        return {}

    def _save(self, items: dict, user_id: str) -> None:
        os.makedirs(self.state_dir, exist_ok=True)
        state_file = self._get_state_file(user_id)
        tmp_file = state_file + '.tmp'
        with open(tmp_file, 'w') as f:
            json.dump(items, f, indent=2, ensure_ascii=False)
        os.replace(tmp_file, state_file)

    def get_item(self, key: str, user_id: str = "default") -> str | None:
        return self._load(user_id).get(key)

    def set_item(self, key: str, value: str, user_id: str = "default") -> None:
        items = self._load(user_id)
        items[key] = value
        self._save(items, user_id)

    def remove_item(self, key: str, user_id: str = "default") -> None:
        items = self._load(user_id)
        if key in items:
            del items[key]
            self._save(items, user_id)

    def clear(self, user_id: str = "default") -> None:
        state_file = self._get_state_file(user_id)
        if os.path.exists(state_file):
            os.remove(state_file)
