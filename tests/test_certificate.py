from __future__ import annotations

import base64
from io import BytesIO
from pathlib import Path

import fakeredis
import pytest
from PIL import Image

from portal.api.models import SessionState
from portal.artifacts import (
    CERTIFICATE_KEY,
    DATA_URL_PREFIX,
    HEIGHT,
    WIDTH,
    CertificateGenerator,
    CertificateSpec,
    load_certificate,
    render_certificate,
)


def _decode(data_url: str) -> Image.Image:
    assert data_url.startswith(DATA_URL_PREFIX)
    return Image.open(BytesIO(base64.b64decode(data_url[len(DATA_URL_PREFIX) :])))


@pytest.mark.asyncio
async def test_generate_stores_a_png_data_url(r: fakeredis.FakeRedis) -> None:
    gen = CertificateGenerator(r=r, spec=CertificateSpec(recipient="Tester", seed=1))
    key = await gen.generate(SessionState(ledger_total=12))

    assert key == CERTIFICATE_KEY
    data_url = load_certificate(r=r)
    assert data_url is not None
    img = _decode(data_url)
    assert img.format == "PNG"
    assert img.size == (WIDTH, HEIGHT)


def test_missing_emblem_is_skipped(tmp_path: Path) -> None:
    png = render_certificate(CertificateSpec(emblem_path=tmp_path / "nope.jpg", seed=3), coins=0)
    assert Image.open(BytesIO(png)).size == (WIDTH, HEIGHT)


def test_emblem_is_embedded_when_present(tmp_path: Path) -> None:
    emblem = tmp_path / "bracelet.png"
    Image.new("RGB", (64, 64), (0, 0, 0)).save(emblem)

    plain = Image.open(BytesIO(render_certificate(CertificateSpec(seed=5), coins=1))).convert("RGB")
    with_emblem = Image.open(
        BytesIO(render_certificate(CertificateSpec(emblem_path=emblem, seed=5), coins=1))
    ).convert("RGB")

    # Center of the emblem circle.
    center = (WIDTH // 2, HEIGHT - 180)
    assert with_emblem.getpixel(center) == (0, 0, 0)
    assert plain.getpixel(center) != (0, 0, 0)


def test_no_certificate_before_generation(r: fakeredis.FakeRedis) -> None:
    assert load_certificate(r=r) is None
