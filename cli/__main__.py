"""Entry point for verbadiem CLI client."""

import argparse
import sys

from cli.api_client import VerbaDiemAPIClient
from cli.console import ConsoleUI


def main():
    parser = argparse.ArgumentParser(description='VerbaDiem - one new word every day')
    parser.add_argument(
        '--server',
        default='http://localhost:8000',
        help='Server URL (default: http://localhost:8000)'
    )
    parser.add_argument(
        '--user',
        default='default',
        help='Learner ID (default: default)'
    )
    args = parser.parse_args()

    ui = ConsoleUI(VerbaDiemAPIClient(base_url=args.server, user_id=args.user))

    try:
        ui.run()
    except KeyboardInterrupt:
        print('\nSee you tomorrow!')
        sys.exit(0)


if __name__ == '__main__':
    main()
