#!/usr/bin/env python3
"""
CLI tool to start the Volunteer Hub FastAPI web server.

Starts the backend with uvicorn after checking that bearer token
verification is configured.

Usage:
    python3 web_server.py                    # Start with defaults
    python3 web_server.py --host 0.0.0.0     # Listen on all interfaces
    python3 web_server.py --port 8080        # Use custom port
    python3 web_server.py --reload           # Enable auto-reload for development

Environment Variables:
    VHUB_JWT_SECRET_KEY: Secret key for verifying bearer tokens (required)
    VHUB_DB_URL: PostgreSQL database URL
    VHUB_AI_SUMMARY_API_KEY: API key for AI event summaries (optional)
    VHUB_LOG_LEVEL: Log level (DEBUG/INFO/WARNING/ERROR/CRITICAL)
"""

import argparse
import os
import sys
from pathlib import Path

import uvicorn
from dotenv import load_dotenv


def validate_jwt_secret() -> None:
    """
    Exit with code 1 when VHUB_JWT_SECRET_KEY is not set.

    Every API route requires a bearer token, so the server is unusable
    without it.
    """
    if not os.environ.get("VHUB_JWT_SECRET_KEY"):
        print(
            "\n" + "=" * 70,
            "\nERROR: VHUB_JWT_SECRET_KEY environment variable is not set.",
            "\n\nThe key verifies the bearer tokens sent to every API route.",
            "\nUse a random value of at least 32 characters, for example:",
            "\n  export VHUB_JWT_SECRET_KEY=\"$(openssl rand -hex 32)\"",
            "\n\nOr add it to backend/.env:",
            "\n  VHUB_JWT_SECRET_KEY=your-key-here",
            "\n" + "=" * 70 + "\n",
            file=sys.stderr
        )
        sys.exit(1)


def parse_arguments() -> argparse.Namespace:
    """
    Parse command-line arguments.

    Arguments:
        --host: Host to bind (default: 127.0.0.1)
        --port: Port to bind (default: 8000)
        --reload: Enable auto-reload for development (default: False)
    """
    parser = argparse.ArgumentParser(
        description="Start the Volunteer Hub FastAPI web server",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Start development server with auto-reload
  python3 web_server.py --reload

  # Production configuration
  python3 web_server.py --host 0.0.0.0 --port 8000
        """
    )

    parser.add_argument(
        "--host",
        type=str,
        default="127.0.0.1",
        help="Host to bind the server to (default: 127.0.0.1). "
             "Use 0.0.0.0 to listen on all interfaces."
    )
    parser.add_argument(
        "--port",
        type=int,
        default=8000,
        help="Port to bind the server to (default: 8000)"
    )
    parser.add_argument(
        "--reload",
        action="store_true",
        help="Restart automatically when code changes. Not for production."
    )

    return parser.parse_args()


def main() -> None:
    """
    Main entry point for the web server CLI tool.

    Exit Codes:
        0: Server stopped normally
        1: VHUB_JWT_SECRET_KEY missing
    """
    args = parse_arguments()

    # Ensure the repo root is on sys.path so "backend.src.main" is importable
    repo_root = str(Path(__file__).parent)
    if repo_root not in sys.path:
        sys.path.insert(0, repo_root)

    # Explicit environment variables take precedence over backend/.env
    env_path = Path(__file__).parent / "backend" / ".env"
    if env_path.exists():
        load_dotenv(dotenv_path=env_path, override=False)

    validate_jwt_secret()

    print("\nStarting Volunteer Hub web server...")
    print(f"Host: {args.host}")
    print(f"Port: {args.port}")
    print(f"Auto-reload: {'enabled' if args.reload else 'disabled'}")
    print(f"\nAPI documentation: http://{args.host}:{args.port}/docs")
    print(f"Health check: http://{args.host}:{args.port}/health")
    print("\nPress CTRL+C to stop the server\n")

    try:
        uvicorn.run(
            "backend.src.main:app",
            host=args.host,
            port=args.port,
            reload=args.reload,
            log_level="info",
        )
    except KeyboardInterrupt:
        print("\n\nServer stopped by user (CTRL+C)")
        sys.exit(0)


if __name__ == "__main__":
    main()
