"""Resolve photo references (URLs, data URIs, paths) into PIL images."""

from __future__ import annotations

import base64
import binascii
import io
import logging
from pathlib import Path

import requests
from PIL import Image, UnidentifiedImageError

from petmatch.errors import ProviderError

logger = logging.getLogger(__name__)


def _read_bytes(photo_ref: str, timeout: float, session: requests.Session | None) -> bytes:
    if photo_ref.startswith(("http://", "https://")):
        http = session or requests
        response = http.get(photo_ref, timeout=timeout)
        response.raise_for_status()
        return response.content

    if photo_ref.startswith("data:image"):
        _, _, payload = photo_ref.partition(",")
        if not payload:
            raise ProviderError("Inline photo has no payload")
        return base64.b64decode(payload, validate=True)

    path = Path(photo_ref)
    if path.is_file():
        return path.read_bytes()

    raise ProviderError(f"Unsupported photo reference: {photo_ref[:40]!r}")


def load_photo(
    photo_ref: str,
    timeout: float = 10.0,
    session: requests.Session | None = None,
) -> Image.Image:
    """Load a photo from a remote URL, an inline data URI or a local path.

    Args:
        photo_ref: ``http(s)://`` URL, ``data:image/...;base64,`` URI or file path.
        timeout: HTTP timeout in seconds for remote photos.
        session: Optional requests session to reuse connections.

    Returns:
        RGB PIL image.

    Raises:
        ProviderError: If the photo cannot be fetched or decoded.
    """
    try:
        data = _read_bytes(photo_ref, timeout, session)
        image = Image.open(io.BytesIO(data))
        image.load()
        rgb = image.convert("RGB")
    except ProviderError:
        raise
    except (
        requests.RequestException,
        binascii.Error,
        UnidentifiedImageError,
        Image.DecompressionBombError,
        OSError,
        ValueError,
    ) as exc:
        raise ProviderError(f"Failed to load photo {photo_ref[:40]!r}: {exc}") from exc

    return rgb
