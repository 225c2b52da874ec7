"""Chromium launch helpers for the command line tools."""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

logger = logging.getLogger(__name__)

LAUNCH_ARGS = [
    "--no-sandbox",
    "--disable-dev-shm-usage",
]


@asynccontextmanager
async def open_page(url: str, headless: bool = False, timeout_ms: int = 30000) -> AsyncIterator:
    """
    Launch Chromium, open ``url`` and yield the Playwright page.

    The browser is closed when the context exits.
    """
    from playwright.async_api import async_playwright

    async with async_playwright() as playwright:
        browser = await playwright.chromium.launch(headless=headless, args=list(LAUNCH_ARGS))
        try:
            context = await browser.new_context()
            page = await context.new_page()
            logger.info(f"Opening {url}")
            await page.goto(url, wait_until="domcontentloaded", timeout=timeout_ms)
            yield page
        finally:
            await browser.close()
