from __future__ import annotations

import argparse
import logging
import os
import sys
import uuid

import uvicorn

from classroom.api.http_app import build_app
from classroom.clients.ffmpeg import FfmpegRunner
from classroom.domain.errors import ConfigError
from classroom.logging_setup import configure_logging
from classroom.services.bootstrap import build_runtime_container
from classroom.settings import settings_from_env


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Classroom jobs service")
    parser.add_argument("--host", default=os.getenv("APP_HOST", "0.0.0.0"))
    parser.add_argument("--port", type=int, default=int(os.getenv("APP_PORT", "8000")))
    parser.add_argument(
        "--dry-run-startup",
        action="store_true",
        help="Validate configuration and wiring, then exit",
    )
    parser.add_argument(
        "--reload",
        action="store_true",
        help="Enable code reload (dev mode)",
    )
    return parser.parse_args(argv)


def create_runtime_app() -> object:
    run_id = str(uuid.uuid4())
    configure_logging()
    container = build_runtime_container()
    return build_app(run_id=run_id, api_deps=container.api_deps, mode=container.settings.provider_mode)


def run(argv: list[str] | None = None) -> int:
    args = parse_args(argv)

    configure_logging()
    run_id = str(uuid.uuid4())
    logger = logging.getLogger("runtime")

    try:
        settings = settings_from_env()
        container = build_runtime_container(settings)
    except (ConfigError, ValueError) as exc:
        sys.stderr.write(f"ERROR: {exc}\n")
        return 2

    logger.info(
        "runtime initialized",
        extra={"service": "classroom-jobs", "run_id": run_id, "status": settings.provider_mode},
    )
    if not FfmpegRunner().available():
        logger.warning(
            "ffmpeg not found on PATH; transcription jobs will fail at the split stage",
            extra={"service": "classroom-jobs", "run_id": run_id},
        )

    if args.dry_run_startup:
        logger.info("dry-run startup complete", extra={"service": "classroom-jobs", "run_id": run_id})
        return 0

    if args.reload:
        uvicorn.run(
            "classroom.main:create_runtime_app",
            host=args.host,
            port=args.port,
            log_level="warning",
            reload=True,
            factory=True,
        )
    else:
        app = build_app(run_id=run_id, api_deps=container.api_deps, mode=settings.provider_mode)
        uvicorn.run(app, host=args.host, port=args.port, log_level="warning")
    return 0


if __name__ == "__main__":
    raise SystemExit(run())
