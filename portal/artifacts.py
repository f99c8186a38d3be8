from __future__ import annotations

import asyncio
import base64
import logging
import random
from dataclasses import dataclass
from io import BytesIO
from pathlib import Path

import redis
from PIL import Image, ImageDraw, ImageFont

from portal.api.models import SessionState

logger = logging.getLogger(__name__)

CERTIFICATE_KEY = "portal:certificate"
DATA_URL_PREFIX = "data:image/png;base64,"

WIDTH, HEIGHT = 1400, 900

_PARCHMENT = (255, 246, 248)
_GOLD = (215, 163, 119)
_TITLE = (75, 17, 49)
_NAME = (47, 8, 32)
_BODY = (59, 23, 40)
_SEAL = (255, 179, 230)
_SEAL_TEXT = (74, 21, 52)

DEFAULT_MESSAGE = (
    "This certifies that {name} is forcefully enrolled in this Princess Friendship. "
    "Escape is not an option. The bracelet of white beads (with one black bead) is "
    "recognized as a heritage token and must be kept safe."
)


def _font(size: int) -> ImageFont.ImageFont | ImageFont.FreeTypeFont:
    for name in ("DejaVuSerif.ttf", "Georgia.ttf"):
        try:
            return ImageFont.truetype(name, size)
        except OSError:
            continue
    return ImageFont.load_default()


def _wrap(draw: ImageDraw.ImageDraw, text: str, font: ImageFont.ImageFont | ImageFont.FreeTypeFont, max_w: float) -> list[str]:
    lines: list[str] = []
    line = ""
    for word in text.split():
        test = f"{line} {word}".strip()
        if line and draw.textlength(test, font=font) > max_w:
            lines.append(line)
            line = word
        else:
            line = test
    if line:
        lines.append(line)
    return lines


def _centered(draw: ImageDraw.ImageDraw, y: float, text: str, font, fill: tuple[int, int, int], cx: float = WIDTH / 2) -> None:
    w = draw.textlength(text, font=font)
    draw.text((cx - w / 2, y), text, font=font, fill=fill)


@dataclass(frozen=True, slots=True)
class CertificateSpec:
    recipient: str = "SHUB"
    title: str = "Certificate of Unescapable Friendship"
    message: str = DEFAULT_MESSAGE
    emblem_path: Path | None = None
    seed: int | None = None


def render_certificate(spec: CertificateSpec, *, coins: int) -> bytes:
    """Draw the certificate and return PNG bytes."""

    img = Image.new("RGB", (WIDTH, HEIGHT), _PARCHMENT)
    draw = ImageDraw.Draw(img)

    # Speckle texture.
    rng = random.Random(spec.seed)
    for _ in range(800):
        x, y = rng.randrange(WIDTH), rng.randrange(HEIGHT)
        draw.point((x, y), fill=(232, 224, 226))

    draw.rounded_rectangle((30, 30, WIDTH - 30, HEIGHT - 30), radius=24, outline=_GOLD, width=10)

    _centered(draw, 95, spec.title, _font(36), _TITLE)
    _centered(draw, 180, spec.recipient, _font(48), _NAME)

    body_font = _font(20)
    for row, line in enumerate(_wrap(draw, spec.message.format(name=spec.recipient), body_font, WIDTH - 240)):
        _centered(draw, 270 + row * 28, line, body_font, _BODY)

    _centered(draw, 420, f"Mystic coins collected: {coins}", _font(24), _TITLE)

    if spec.emblem_path is not None:
        _paste_emblem(img, spec.emblem_path)

    # Seal.
    sx, sy, sr = WIDTH / 2 - 260, HEIGHT - 140, 54
    draw.ellipse((sx - sr, sy - sr, sx + sr, sy + sr), fill=_SEAL)
    _centered(draw, sy - 8, "PRINCESS SEAL", _font(16), _SEAL_TEXT, cx=sx)

    buf = BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


def _paste_emblem(img: Image.Image, path: Path, size: int = 180) -> None:
    # A missing or unreadable emblem just leaves the spot empty.
    try:
        with Image.open(path) as src:
            emblem = src.convert("RGB").resize((size, size))
    except (OSError, ValueError) as e:
        logger.info("emblem %s not used: %s", path, e)
        return

    mask = Image.new("L", (size, size), 0)
    ImageDraw.Draw(mask).ellipse((0, 0, size, size), fill=255)
    img.paste(emblem, (WIDTH // 2 - size // 2, HEIGHT - 180 - size // 2), mask)


class CertificateGenerator:
    """Final artifact: a PNG certificate stored in Redis as a data URL."""

    def __init__(self, *, r: redis.Redis, spec: CertificateSpec | None = None, key: str = CERTIFICATE_KEY) -> None:
        self._r = r
        self.spec = spec or CertificateSpec()
        self.key = key

    async def generate(self, state: SessionState) -> str:
        png = await asyncio.to_thread(render_certificate, self.spec, coins=state.ledger_total)
        data_url = DATA_URL_PREFIX + base64.b64encode(png).decode("ascii")
        self._r.set(self.key, data_url)
        logger.info("certificate for session %s saved under %s (%d bytes)", state.session_id, self.key, len(png))
        return self.key


def load_certificate(*, r: redis.Redis, key: str = CERTIFICATE_KEY) -> str | None:
    raw = r.get(key)
    return str(raw) if raw else None
