"""
HTML to PDF rendering.

Two engines are supported, selected by PDF_CONVERSION_MODE:

- "chromium": a local headless Chromium driven by Playwright. A browser is
  launched per render and always closed, including on failure.
- "gotenberg": the HTML is posted to a Gotenberg service, which runs
  Chromium remotely.
"""
import asyncio
import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Optional, Union

import httpx
from playwright.async_api import async_playwright

from app.config import Settings, get_settings
from app.exceptions import RenderError

logger = logging.getLogger(__name__)

# A4 landscape at 96 dpi
VIEWPORT = {"width": 1123, "height": 794}
DEVICE_SCALE_FACTOR = 2

DEFAULT_PDF_OPTIONS = {
    "format": "A4",
    "landscape": True,
    "print_background": True,
    "prefer_css_page_size": True,
    "margin": {"top": "0", "right": "0", "bottom": "0", "left": "0"},
}

CHROMIUM_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--font-render-hinting=none",
]


class PdfRenderer:
    """Render certificate HTML to PDF bytes."""

    def __init__(self, settings: Optional[Settings] = None, playwright_factory=async_playwright):
        self.settings = settings or get_settings()
        self._playwright_factory = playwright_factory

    async def render(
        self,
        source: str,
        output_path: Optional[Union[str, Path]] = None,
        options: Optional[dict] = None,
    ) -> bytes:
        """
        Render an HTML string or an HTML file to PDF.

        Args:
            source: HTML markup (must start with "<") or the path of an existing file
            output_path: If set, the PDF is also written here (parents created)
            options: Overrides for the page.pdf() options

        Returns:
            The PDF bytes

        Raises:
            RenderError: Invalid input or any engine failure
        """
        html, file_path = self._resolve_source(source)
        pdf_options = {**DEFAULT_PDF_OPTIONS, **(options or {})}

        try:
            if self.settings.PDF_CONVERSION_MODE == "gotenberg":
                if html is None:
                    html = Path(file_path).read_text(encoding="utf-8")
                pdf_bytes = await self._render_via_gotenberg(html, pdf_options)
            else:
                pdf_bytes = await self._render_via_chromium(html, file_path, pdf_options)

            if output_path:
                target = Path(output_path)
                target.parent.mkdir(parents=True, exist_ok=True)
                target.write_bytes(pdf_bytes)
                logger.debug(f"Wrote PDF to {target}")
        except RenderError:
            raise
        except Exception as e:
            logger.error(f"PDF generation failed: {e}")
            raise RenderError(f"PDF generation failed: {e}") from e

        return pdf_bytes

    def _resolve_source(self, source) -> tuple[Optional[str], Optional[str]]:
        if isinstance(source, str):
            if source.lstrip().startswith("<"):
                return source, None
            if os.path.isfile(source):
                return None, source
        raise RenderError("Invalid HTML input: expected HTML markup or an existing file path")

    @asynccontextmanager
    async def _browser(self) -> AsyncIterator:
        """Launch a headless Chromium for one render and close it on every exit path."""
        async with self._playwright_factory() as playwright:
            browser = await playwright.chromium.launch(headless=True, args=CHROMIUM_ARGS)
            try:
                yield browser
            finally:
                await browser.close()

    async def _render_via_chromium(
        self, html: Optional[str], file_path: Optional[str], pdf_options: dict
    ) -> bytes:
        string_timeout = self.settings.PDF_RENDER_TIMEOUT_MS
        # Local files have no remote assets to wait for beyond fonts
        file_timeout = string_timeout // 2

        async with self._browser() as browser:
            page = await browser.new_page(
                viewport=VIEWPORT,
                device_scale_factor=DEVICE_SCALE_FACTOR,
            )
            if html is not None:
                await page.set_content(html, wait_until="networkidle", timeout=string_timeout)
            else:
                await page.goto(
                    Path(file_path).resolve().as_uri(),
                    wait_until="networkidle",
                    timeout=file_timeout,
                )

            await page.evaluate("document.fonts.ready")
            await page.wait_for_timeout(self.settings.PDF_SETTLE_DELAY_MS)

            return await page.pdf(**pdf_options)

    async def _render_via_gotenberg(self, html: str, pdf_options: dict) -> bytes:
        """Convert HTML to PDF via the Gotenberg Chromium route.

        Retries on ConnectError to ride out a Gotenberg container that is
        still starting.
        """
        gotenberg_url = self.settings.GOTENBERG_URL
        if not gotenberg_url:
            raise RenderError("GOTENBERG_URL is not configured")

        landscape = bool(pdf_options.get("landscape", True))
        form = {
            "paperWidth": "8.27",
            "paperHeight": "11.69",
            "landscape": "true" if landscape else "false",
            "printBackground": "true" if pdf_options.get("print_background", True) else "false",
            "marginTop": "0",
            "marginBottom": "0",
            "marginLeft": "0",
            "marginRight": "0",
            "waitDelay": f"{self.settings.PDF_SETTLE_DELAY_MS}ms",
        }

        max_retries = 3
        retry_delay = 3  # seconds
        timeout = self.settings.PDF_RENDER_TIMEOUT_MS / 1000

        async with httpx.AsyncClient() as client:
            for attempt in range(max_retries + 1):
                try:
                    response = await client.post(
                        f"{gotenberg_url.rstrip('/')}/forms/chromium/convert/html",
                        files={"files": ("index.html", html.encode("utf-8"), "text/html")},
                        data=form,
                        timeout=timeout,
                    )
                    response.raise_for_status()
                    return response.content
                except httpx.ConnectError:
                    if attempt < max_retries:
                        logger.warning(
                            f"Gotenberg not reachable (attempt {attempt + 1}/{max_retries + 1}), "
                            f"retrying in {retry_delay}s"
                        )
                        await asyncio.sleep(retry_delay)
                    else:
                        logger.error("Gotenberg not reachable after all retries")
                        raise
