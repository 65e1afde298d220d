#!/usr/bin/env python3
"""Run the verbadiem API server."""

import logging
import os

import uvicorn


def main():
    host = os.environ.get('VERBADIEM_HOST', '0.0.0.0')
    port = int(os.environ.get('VERBADIEM_PORT', '8000'))
    logging.basicConfig(level=logging.INFO, format='%(asctime)s %(levelname)s %(name)s: %(message)s')
    print("Starting VerbaDiem API server...")
    print(f"API documentation available at: http://localhost:{port}/docs")
    uvicorn.run(
        "server.app:app",
        host=host,
        port=port,
        reload=os.environ.get('VERBADIEM_RELOAD', '1') == '1'
    )


if __name__ == "__main__":
    main()
