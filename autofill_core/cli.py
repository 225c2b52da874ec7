#!/usr/bin/env python3
"""
Autofill CLI - fill web forms from a document store

Usage:
    autofill run <url>
    autofill fields <url> [--include-sensitive]
    autofill probe <url>
    autofill hover <url>
    autofill check-key
"""

import argparse
import asyncio
import functools
import json
import logging
import sys
import threading
from collections import deque
from typing import Deque, Optional

from .availability import AvailabilityMonitor
from .browser import open_page
from .config import Config
from .diagnostics import enable_diagnostics
from .error_handler import format_user_friendly_error
from .events import StatusReporter
from .exceptions import AutofillError, ConfigurationError
from .orchestrator import AutofillEngine
from .page import PageSession
from .retrieval import RetrievalClient
from .single_field import HoverTrigger, SingleFieldFlow

logger = logging.getLogger(__name__)

URL_ARG_HELP = "Page URL to open"


def _configure_diagnostics(args, debug: bool = False):
    if args.verbose or (debug and not args.quiet):
        enable_diagnostics("DEBUG")
    elif args.quiet:
        enable_diagnostics("ERROR")
    else:
        enable_diagnostics("WARNING")


def _load_config(args) -> Config:
    config = Config.from_env(args.env_file)
    if args.headless:
        config.headless = True
    return config


def _print_event(event):
    stream = sys.stderr if event.error else sys.stdout
    print(event.message, file=stream)


def _reporter() -> StatusReporter:
    return StatusReporter([_print_event])


def _client(config: Config) -> RetrievalClient:
    return RetrievalClient(api_base=config.api_base, timeout=config.request_timeout)


def _report_failure(error: Exception) -> int:
    info = format_user_friendly_error(error)
    logger.error(info["message"])
    logger.debug(info["technical"])
    return 1


async def _wait_for_enter(prompt: str) -> None:
    await asyncio.get_running_loop().run_in_executor(None, input, prompt)


async def _run(args, config: Config) -> int:
    async with open_page(args.url, headless=config.headless) as page:
        session = PageSession.for_page(page)
        async with _client(config) as client:
            engine = AutofillEngine.from_config(config, session, client, _reporter())
            summary = await engine.run(config.credentials())
        if args.keep_open and not config.headless:
            await _wait_for_enter("Press Enter to close the browser...")
    return 0 if summary.state == "completed" else 1


async def _fields(args, config: Config) -> int:
    async with open_page(args.url, headless=config.headless) as page:
        fields = await PageSession.for_page(page).list_fields(args.include_sensitive)
    print(json.dumps([f.to_dict() for f in fields], indent=2, ensure_ascii=False))
    return 0


async def _probe(args, config: Config) -> int:
    async with open_page(args.url, headless=config.headless) as page:
        monitor = AvailabilityMonitor(PageSession.for_page(page), _reporter())
        has_form = await monitor.refresh()
    return 0 if has_form else 1


class TerminalInput:
    """
    Reads stdin on one background thread and routes each line.

    A line answers the oldest open prompt; with no prompt open it asks to
    quit. End of input also quits and declines any open prompt.
    """

    def __init__(self, stream=None):
        self.stream = stream if stream is not None else sys.stdin
        self.quit = asyncio.Event()
        self._prompts: Deque[asyncio.Future] = deque()
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    def start(self) -> None:
        self._loop = asyncio.get_running_loop()
        threading.Thread(target=self._read, name="autofill-stdin", daemon=True).start()

    def _read(self) -> None:
        for line in self.stream:
            if not self._post(line.rstrip("\r\n")):
                return
        self._post(None)

    def _post(self, line: Optional[str]) -> bool:
        loop = self._loop
        if loop is None or loop.is_closed():
            return False
        try:
            loop.call_soon_threadsafe(self._route, line)
        except RuntimeError:
            # loop closed between the check and the call
            return False
        return True

    def _route(self, line: Optional[str]) -> None:
        if line is None:
            self.close()
            return
        while self._prompts:
            future = self._prompts.popleft()
            if not future.done():
                future.set_result(line)
                return
        self.quit.set()

    async def ask(self, prompt: str) -> str:
        """Print ``prompt`` and return the next line, or "" once input is closed."""
        if self.quit.is_set():
            return ""
        future = asyncio.get_running_loop().create_future()
        self._prompts.append(future)
        print(prompt, end="", flush=True)
        return await future

    def close(self) -> None:
        self.quit.set()
        while self._prompts:
            future = self._prompts.popleft()
            if not future.done():
                future.set_result("")


async def _terminal_confirm(terminal: TerminalInput, descriptor, reason) -> bool:
    prompt = f"'{descriptor.display_name}' looks sensitive ({reason}). Fill it? [y/N] "
    answer = await terminal.ask(prompt)
    return answer.strip().lower() in ("y", "yes")


async def _hover(args, config: Config) -> int:
    terminal = TerminalInput()
    async with open_page(args.url, headless=False) as page:
        session = PageSession.for_page(page)
        async with _client(config) as client:
            flow = SingleFieldFlow(
                session,
                client,
                config.credentials,
                confirm=functools.partial(_terminal_confirm, terminal),
                reporter=_reporter(),
            )
            trigger = HoverTrigger(session, flow, debounce_ms=config.hover_debounce_ms)
            await trigger.install()
            print("Hover over a field to fill it. Press Enter to quit.")
            terminal.start()
            try:
                await terminal.quit.wait()
            finally:
                terminal.close()
                await trigger.close()
    return 0


async def _check_key(args, config: Config) -> int:
    api_key = config.credentials().api_key
    if not api_key:
        raise ConfigurationError("API key is missing. Set AUTOFILL_API_KEY or OPENAI_API_KEY.")
    async with _client(config) as client:
        await client.validate_api_key(api_key)
    print("API key is valid.")
    return 0


COMMANDS = {
    "run": _run,
    "fields": _fields,
    "probe": _probe,
    "hover": _hover,
    "check-key": _check_key,
}


def dispatch(args) -> int:
    _configure_diagnostics(args)
    try:
        config = _load_config(args)
        if config.debug:
            _configure_diagnostics(args, debug=True)
        return asyncio.run(COMMANDS[args.command](args, config))
    except AutofillError as e:
        return _report_failure(e)
    except KeyboardInterrupt:
        logger.warning("Interrupted")
        return 1
    except Exception as e:
        logger.debug("Unexpected failure", exc_info=True)
        return _report_failure(e)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Autofill CLI - fill web forms from a document store",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Verbose output")
    parser.add_argument("--quiet", "-q", action="store_true", help="Quiet mode")
    parser.add_argument("--headless", action="store_true", help="Run the browser headless")
    parser.add_argument("--env-file", default=None, help="Path to a .env file")

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    run_parser = subparsers.add_parser("run", help="Autofill every supported field on a page")
    run_parser.add_argument("url", help=URL_ARG_HELP)
    run_parser.add_argument("--keep-open", action="store_true",
                            help="Keep the browser open until Enter is pressed")

    fields_parser = subparsers.add_parser("fields", help="Print the page's field descriptors")
    fields_parser.add_argument("url", help=URL_ARG_HELP)
    fields_parser.add_argument("--include-sensitive", action="store_true",
                               help="Include fields classified as sensitive")

    probe_parser = subparsers.add_parser("probe", help="Check whether a page has a fillable form")
    probe_parser.add_argument("url", help=URL_ARG_HELP)

    hover_parser = subparsers.add_parser("hover", help="Fill the field under the pointer")
    hover_parser.add_argument("url", help=URL_ARG_HELP)

    subparsers.add_parser("check-key", help="Validate the configured API key")
    return parser


def main(argv=None):
    """Main CLI entry point"""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    return dispatch(args)


if __name__ == "__main__":
    sys.exit(main())
