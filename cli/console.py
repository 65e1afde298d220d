"""Console UI for verbadiem application."""

import time

from core.config import PRACTICE_END_DELAY_SECONDS
from cli.api_client import VerbaDiemAPIClient


class ConsoleUI:
    """Console user interface for verbadiem application."""

    def __init__(self, client: VerbaDiemAPIClient):
        self.client = client

    def print_notifications(self, state: dict):
        """Print toasts and celebrations carried by a state response."""
        for note in state.get('notifications', []):
            marker = {'xp': '+', 'level': '^', 'achievement': '*'}.get(note['type'], '-')
            print(f"  [{marker}] {note['message']}")
        if state.get('confetti'):
            print('  *** \\o/ ***')

    def print_word(self, word: dict):
        print('\n' + '=' * 60)
        print(f"  {word['word']}  [{word['pronunciation']}]")
        print(f"  {word['translation']}")
        print('-' * 60)
        print(f"  {word['etymology']}")
        print(f"\n  \"{word['example']}\"")
        print(f"  - {word['exampleTranslation']}")
        print('=' * 60)

    def print_home(self, state: dict):
        progress = state['progress']
        print('\n' + '=' * 50)
        print(f"Streak: {progress['streak']['count']} | Level {progress['level']} | "
              f"{progress['xp']} XP | {len(progress['learnedWords'])} words")
        print('=' * 50)
        print('Commands: "lesson", "review", "stats", "chest", "lang", "reset", "exit"')

    def print_statistics(self, stats: dict):
        print('\n' + '=' * 50)
        print('STATISTICS')
        print('=' * 50)
        print(f"Current streak: {stats['streak']} (longest {stats['longest_streak']})")
        print(f"Words learned: {stats['words_learned']}")
        print(f"Level {stats['level']} ({stats['level_name']}), {stats['xp']} XP, "
              f"{stats['level_progress']}% to next level")
        print('\nAchievements:')
        for ach in stats['achievements']:
            mark = 'x' if ach['unlocked'] else ' '
            print(f"  [{mark}] {ach['name']}: {ach['description']}")
        print('=' * 50 + '\n')

    def show_ad(self):
        """Stand-in for the interstitial: wait for the learner, then dismiss."""
        print('\n' + '#' * 40)
        print('#  Advertisement - press Enter to skip  #')
        print('#' * 40)
        input()
        return self.client.dismiss_ad()

    def run_lesson(self):
        self.client.navigate('learning')
        print("Fetching today's word...")
        try:
            data = self.client.fetch_word()
        except Exception as e:
            print(f"Error getting word: {e}")
            self.client.navigate('home')
            return
        self.print_notifications(data['state'])
        self.print_word(data['word'])
        input('Press Enter for the quiz...')

        try:
            challenge = self.client.fetch_challenge()
        except Exception as e:
            print(f"Error getting challenge: {e}")
            self.client.navigate('home')
            return

        while True:
            print('\nWhich sentence uses the word correctly?')
            for i, option in enumerate(challenge['options']):
                print(f"  {i + 1}. {option['sentence']}")
                print(f"     ({option['translation']})")
            choice = input('==> ').strip()
            if not choice.isdigit() or not 1 <= int(choice) <= len(challenge['options']):
                continue
            result = self.client.answer_challenge(int(choice) - 1)
            if result['correct']:
                break
            print('Not quite, try again.')

        state = result['state']
        if result['show_ad']:
            state = self.show_ad()
        print('\nLesson complete!')
        self.print_notifications(state)
        self.after_lesson()

    def after_lesson(self):
        while True:
            cmd = input('"related", "practice" or "home" ==> ').strip().lower()
            if cmd == 'related':
                try:
                    data = self.client.find_related_word()
                    related = data['related_word']
                    print(f"\n  {related['word']} = {related['translation']}")
                    print(f"  {related['reason']}")
                    self.print_notifications(data['state'])
                except Exception as e:
                    print(f"Error finding related word: {e}")
            elif cmd == 'practice':
                self.client.navigate('practice')
                self.run_practice()
                return
            elif cmd == 'home':
                self.client.navigate('home')
                return

    def run_practice(self):
        try:
            reply = self.client.start_practice()
        except Exception as e:
            print(f"Error starting practice: {e}")
            self.client.navigate('home')
            return
        print(f"\nDiem: {reply['text']}")
        while not reply['ended']:
            message = input('==> ').strip()
            if message.lower() == 'exit':
                self.client.navigate('home')
                return
            if not message:
                continue
            reply = self.client.send_practice_message(message)
            print(f"\nDiem: {reply['text']}")
        time.sleep(PRACTICE_END_DELAY_SECONDS)
        self.print_notifications(self.client.finish_practice())

    def run_review(self):
        try:
            data = self.client.start_review()
        except Exception as e:
            print(f"Nothing to review yet: {e}")
            return
        items = data['items']
        for item in items:
            print(f"\n({item['index'] + 1}/{len(items)}) \"{item['sentence']}\"")
            print(f"  - {item['translation']}")
            answer = input('==> ').strip()
            result = self.client.answer_review(item['index'], answer)
            if result['correct']:
                print('Correct!')
            else:
                print(f"The answer was: {result['word']}")
        self.print_notifications(self.client.finish_review())

    def run(self):
        """Run the main application loop."""
        # Check server connection
        try:
            health = self.client.health_check()
            print(f"Connected to verbadiem server ({health['service']})")
        except Exception:
            print(f"Error: Cannot connect to server at {self.client.base_url}")
            print("Make sure the server is running: python run_server.py")
            return

        state = self.client.get_state()
        if state['view'] == 'welcome':
            print('\nWelcome to VerbaDiem: one curious word a day.')
            input('Press Enter to start...')
            state = self.client.start()
        if state['show_onboarding']:
            print('Tip: start with "lesson" to learn today\'s word, and come back every day to keep your streak.')
            self.client.complete_onboarding()
        if state['view'] != 'home':
            state = self.client.navigate('home')

        while True:
            self.print_home(self.client.get_state())
            cmd = input('==> ').strip().lower()

            if cmd == 'exit':
                print('Goodbye!')
                return
            elif cmd == 'lesson':
                self.run_lesson()
            elif cmd == 'review':
                self.run_review()
            elif cmd == 'stats':
                self.print_statistics(self.client.get_statistics())
            elif cmd == 'chest':
                progress = self.client.get_state()['progress']
                for word in progress['learnedWords'].values():
                    print(f"  {word['word']} - {word['translation']}")
                for collection in progress['collections']:
                    print(f"  [{collection['name']}] {', '.join(collection['wordIds'])}")
            elif cmd == 'lang':
                native = input('Native language code: ').strip() or None
                target = input('Target language code: ').strip() or None
                try:
                    self.client.set_languages(native, target)
                except Exception as e:
                    print(f"Error changing languages: {e}")
            elif cmd == 'reset':
                if input('This erases all progress. Type "yes" to confirm: ').strip().lower() == 'yes':
                    self.client.reset_progress()
                    print('Progress reset.')
                    return
