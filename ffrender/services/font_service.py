"""Font catalog and family -> file resolution.

Fonts come from the google/fonts GitHub repository and are downloaded once
into ``settings.fonts_dir`` at startup. Resolution never fails: a missing
family falls back to the default families and finally the system font.
"""

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path

import httpx

from ffrender.config import get_settings

logger = logging.getLogger(__name__)

_GF = "https://github.com/google/fonts/raw/main/ofl"

# Smaller files are treated as failed/partial downloads
MIN_FONT_BYTES = 1000

FALLBACK_FAMILIES = ("poppins_regular", "inter_regular")


@dataclass(frozen=True)
class FontEntry:
    url: str
    family: str  # name libass matches on
    category: str


FONT_CATALOG: dict[str, FontEntry] = {
    "inter_regular": FontEntry(f"{_GF}/inter/Inter%5Bopsz%2Cwght%5D.ttf", "Inter", "sans-serif"),
    "inter_bold": FontEntry(f"{_GF}/inter/Inter%5Bopsz%2Cwght%5D.ttf", "Inter", "sans-serif"),
    "roboto_regular": FontEntry(f"{_GF}/roboto/Roboto%5Bwdth%2Cwght%5D.ttf", "Roboto", "sans-serif"),
    "roboto_bold": FontEntry(f"{_GF}/roboto/Roboto%5Bwdth%2Cwght%5D.ttf", "Roboto", "sans-serif"),
    "opensans_regular": FontEntry(f"{_GF}/opensans/OpenSans%5Bwdth%2Cwght%5D.ttf", "Open Sans", "sans-serif"),
    "montserrat_regular": FontEntry(f"{_GF}/montserrat/Montserrat%5Bwght%5D.ttf", "Montserrat", "sans-serif"),
    "montserrat_bold": FontEntry(f"{_GF}/montserrat/Montserrat%5Bwght%5D.ttf", "Montserrat", "sans-serif"),
    "poppins_regular": FontEntry(f"{_GF}/poppins/Poppins-Regular.ttf", "Poppins", "sans-serif"),
    "poppins_bold": FontEntry(f"{_GF}/poppins/Poppins-Bold.ttf", "Poppins", "sans-serif"),
    "poppins_semibold": FontEntry(f"{_GF}/poppins/Poppins-SemiBold.ttf", "Poppins SemiBold", "sans-serif"),
    "playfair_regular": FontEntry(f"{_GF}/playfairdisplay/PlayfairDisplay%5Bwght%5D.ttf", "Playfair Display", "serif"),
    "playfair_bold": FontEntry(f"{_GF}/playfairdisplay/PlayfairDisplay%5Bwght%5D.ttf", "Playfair Display", "serif"),
    "playfair_italic": FontEntry(
        f"{_GF}/playfairdisplay/PlayfairDisplay-Italic%5Bwght%5D.ttf", "Playfair Display", "serif"
    ),
    "lora_regular": FontEntry(f"{_GF}/lora/Lora%5Bwght%5D.ttf", "Lora", "serif"),
    "lora_italic": FontEntry(f"{_GF}/lora/Lora-Italic%5Bwght%5D.ttf", "Lora", "serif"),
    "merriweather_regular": FontEntry(f"{_GF}/merriweather/Merriweather%5Bwght%5D.ttf", "Merriweather", "serif"),
    "bebasneue": FontEntry(f"{_GF}/bebasneue/BebasNeue-Regular.ttf", "Bebas Neue", "display"),
    "oswald_regular": FontEntry(f"{_GF}/oswald/Oswald%5Bwght%5D.ttf", "Oswald", "display"),
    "anton": FontEntry(f"{_GF}/anton/Anton-Regular.ttf", "Anton", "display"),
    "permanent_marker": FontEntry(
        f"{_GF}/permanentmarker/PermanentMarker-Regular.ttf", "Permanent Marker", "display"
    ),
    "bangers": FontEntry(f"{_GF}/bangers/Bangers-Regular.ttf", "Bangers", "display"),
    "righteous": FontEntry(f"{_GF}/righteous/Righteous-Regular.ttf", "Righteous", "display"),
    "dancing_script": FontEntry(f"{_GF}/dancingscript/DancingScript%5Bwght%5D.ttf", "Dancing Script", "handwriting"),
    "pacifico": FontEntry(f"{_GF}/pacifico/Pacifico-Regular.ttf", "Pacifico", "handwriting"),
    "caveat": FontEntry(f"{_GF}/caveat/Caveat%5Bwght%5D.ttf", "Caveat", "handwriting"),
    "satisfy": FontEntry(f"{_GF}/satisfy/Satisfy-Regular.ttf", "Satisfy", "handwriting"),
    "firacode": FontEntry(f"{_GF}/firacode/FiraCode%5Bwght%5D.ttf", "Fira Code", "monospace"),
    "jetbrains_mono": FontEntry(f"{_GF}/jetbrainsmono/JetBrainsMono%5Bwght%5D.ttf", "JetBrains Mono", "monospace"),
}


def font_categories() -> dict[str, list[str]]:
    categories: dict[str, list[str]] = {}
    for name, entry in FONT_CATALOG.items():
        categories.setdefault(entry.category, []).append(name)
    return categories


class FontService:
    """Resolves catalog font names to local font files."""

    def __init__(
        self,
        fonts_dir: str | None = None,
        default_font_path: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        settings = get_settings()
        self.fonts_dir = Path(fonts_dir or settings.fonts_dir)
        self.default_font_path = default_font_path or settings.default_font_path
        self.timeout = settings.font_download_timeout_seconds
        self.batch_size = settings.font_download_batch_size
        self._transport = transport

    def font_path(self, name: str) -> Path:
        return self.fonts_dir / f"{name}.ttf"

    def is_cached(self, name: str) -> bool:
        path = self.font_path(name)
        return path.exists() and path.stat().st_size > MIN_FONT_BYTES

    def resolve(self, name: str | None) -> str:
        """Resolve a font name to a file path.

        Falls back through the default families, then the system font.
        """
        for candidate in (name, *FALLBACK_FAMILIES):
            if candidate and candidate in FONT_CATALOG and self.is_cached(candidate):
                return str(self.font_path(candidate))
        if name:
            logger.debug(f"[FONTS] {name} unavailable, using system font")
        return self.default_font_path

    def family_name(self, name: str | None) -> str:
        """Family name to reference from ASS styles (falls back like resolve)."""
        for candidate in (name, *FALLBACK_FAMILIES):
            if candidate and candidate in FONT_CATALOG and self.is_cached(candidate):
                return FONT_CATALOG[candidate].family
        return "Arial"

    def available(self) -> dict[str, str]:
        return {name: str(self.font_path(name)) for name in FONT_CATALOG if self.is_cached(name)}

    async def _download(self, client: httpx.AsyncClient, name: str) -> bool:
        entry = FONT_CATALOG[name]
        response = await client.get(entry.url)
        response.raise_for_status()
        self.font_path(name).write_bytes(response.content)
        return True

    async def init_fonts(self) -> dict[str, int]:
        """Download every catalog font that is not cached yet.

        Returns:
            Counts of downloaded, cached and failed fonts.
        """
        self.fonts_dir.mkdir(parents=True, exist_ok=True)
        missing = [name for name in FONT_CATALOG if not self.is_cached(name)]
        cached = len(FONT_CATALOG) - len(missing)
        if not missing:
            logger.info(f"[FONTS] All {cached} fonts cached")
            return {"downloaded": 0, "cached": cached, "failed": 0}

        logger.info(f"[FONTS] Downloading {len(missing)} missing fonts")
        downloaded = failed = 0
        async with httpx.AsyncClient(
            timeout=self.timeout,
            follow_redirects=True,
            headers={"User-Agent": "ffrender/0.1"},
            transport=self._transport,
        ) as client:
            for i in range(0, len(missing), self.batch_size):
                batch = missing[i : i + self.batch_size]
                results = await asyncio.gather(
                    *(self._download(client, name) for name in batch), return_exceptions=True
                )
                for name, result in zip(batch, results):
                    if isinstance(result, Exception):
                        failed += 1
                        logger.warning(f"[FONTS] Download failed: {name} - {result}")
                    else:
                        downloaded += 1

        logger.info(f"[FONTS] {downloaded} downloaded, {cached} cached, {failed} failed")
        return {"downloaded": downloaded, "cached": cached, "failed": failed}


_font_service: FontService | None = None


def get_font_service() -> FontService:
    global _font_service
    if _font_service is None:
        _font_service = FontService()
    return _font_service
