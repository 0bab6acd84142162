from __future__ import annotations

import asyncio
import logging
import sys
import threading
import traceback

from livetrans.app.config import resolve_args
from livetrans.app.diagnostics import hint_for_exception, summarize_exception
from livetrans.app.logging_setup import setup_app_logger
from livetrans.app.services import build_live_session_services
from livetrans.app.state import SessionState
from livetrans.audio.mic import SoundDeviceMicSource
from livetrans.errors import LiveTransError

_RUNNING = (SessionState.CONNECTING, SessionState.ACTIVE, SessionState.INTERRUPTED)


def _start_stdin_reader(loop: asyncio.AbstractEventLoop, commands: "asyncio.Queue[str]") -> None:
    def _reader() -> None:
        for line in sys.stdin:
            loop.call_soon_threadsafe(commands.put_nowait, line.strip().lower())
        loop.call_soon_threadsafe(commands.put_nowait, "q")

    threading.Thread(target=_reader, name="livetrans-stdin", daemon=True).start()


async def _command_loop(services, logger: logging.Logger) -> None:
    controller = services.controller
    mic = services.mic
    commands: "asyncio.Queue[str]" = asyncio.Queue()
    _start_stdin_reader(asyncio.get_running_loop(), commands)

    while controller.state in _RUNNING:
        try:
            cmd = await asyncio.wait_for(commands.get(), timeout=0.25)
        except asyncio.TimeoutError:
            continue
        if cmd in ("q", "quit", "stop"):
            break
        if cmd in ("p", "pause", "resume"):
            if mic.suspended:
                mic.resume()
                print("Resuming...")
            else:
                mic.suspend()
                print("Paused. Press p to resume.")
            logger.info("pause_toggled", extra={"suspended": mic.suspended})


async def _run(args, logger: logging.Logger) -> int:
    services = build_live_session_services(args, logger=logger)
    if not services.credentials.has_credential():
        await services.credentials.request_credential()

    controller = services.controller
    await controller.start()
    if controller.state != SessionState.ACTIVE:
        summary = summarize_exception(controller.last_error or "")
        print(f"Failed to start: {summary}")
        print(hint_for_exception(summary))
        return 1

    print(f"Listening. Translating into {controller.target_lang}. Commands: p = pause/resume, q = quit")
    try:
        await _command_loop(services, logger)
    finally:
        await controller.stop()

    if controller.last_error:
        summary = summarize_exception(controller.last_error)
        print(f"Session ended: {summary}")
        print(hint_for_exception(summary))
        return 1
    return 0


def main(argv: list[str] | None = None) -> int:
    args = resolve_args(argv)
    logger, _log_dir, log_path = setup_app_logger(debug=bool(args.debug))
    logger.info("app_start", extra={"config_path": str(getattr(args, "config", "")), "argv": argv or []})

    if args.list_devices:
        print(SoundDeviceMicSource.list_devices())
        return 0

    try:
        return asyncio.run(_run(args, logger))
    except KeyboardInterrupt:
        logger.info("app_keyboard_interrupt")
        return 0
    except LiveTransError:
        detail = traceback.format_exc()
        logger.exception("app_start_failed")
        summary = summarize_exception(detail)
        print(summary)
        print(hint_for_exception(summary))
        print(f"Logs: {log_path}")
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
