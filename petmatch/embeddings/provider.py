"""Shared, lazily initialized embedding provider."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor

import requests

from petmatch.config import Config
from petmatch.data.schemas import Embedding
from petmatch.embeddings.clip_encoder import CLIPEncoder
from petmatch.embeddings.photos import load_photo
from petmatch.errors import ProviderError

logger = logging.getLogger(__name__)

EncoderFactory = Callable[[], CLIPEncoder]


class EmbeddingProvider:
    """Turn photo references into embeddings with a lazily loaded CLIP model.

    One instance is built per process and injected wherever embeddings are
    needed. The model is loaded on first use: concurrent first callers block
    on a lock while a single load runs, then all reuse the same encoder. A
    failed load leaves the provider uninitialized so the next call retries.

    Model invocations are capped by a bounded semaphore of
    ``max_concurrency`` slots, shared by every caller of this instance.

    Args:
        config: Application configuration (model, workers, timeouts).
        encoder_factory: Builds the encoder; defaults to a CLIPEncoder from config.
        session: Optional requests session for remote photos.
    """

    def __init__(
        self,
        config: Config,
        encoder_factory: EncoderFactory | None = None,
        session: requests.Session | None = None,
    ) -> None:
        self.config = config
        self.version = config.provider_version
        self.max_concurrency = max(1, config.embedding_workers)
        self._factory = encoder_factory or (
            lambda: CLIPEncoder(
                model_name=config.clip_model_name,
                pretrained=config.clip_pretrained,
                embedding_dim=config.embedding_dim,
            )
        )
        self._session = session
        self._encoder: CLIPEncoder | None = None
        self._init_lock = threading.Lock()
        self._slots = threading.BoundedSemaphore(self.max_concurrency)

    @property
    def initialized(self) -> bool:
        return self._encoder is not None

    def _get_encoder(self) -> CLIPEncoder:
        encoder = self._encoder
        if encoder is not None:
            return encoder

        with self._init_lock:
            if self._encoder is None:
                logger.info("Initializing embedding provider %s", self.version)
                try:
                    self._encoder = self._factory()
                except Exception as exc:
                    raise ProviderError(f"Could not load embedding model: {exc}") from exc
            return self._encoder

    def extract(self, photo_ref: str) -> Embedding:
        """Embed one photo.

        Raises:
            ProviderError: If the photo cannot be loaded or encoded.
        """
        image = load_photo(
            photo_ref,
            timeout=self.config.photo_timeout_seconds,
            session=self._session,
        )
        encoder = self._get_encoder()

        with self._slots:
            try:
                vector = encoder.encode_photo(image)
            except Exception as exc:
                raise ProviderError(f"Encoding failed: {exc}") from exc

        return Embedding(vector=vector, provider_version=self.version)

    def extract_all(self, photo_refs: Sequence[str]) -> list[Embedding]:
        """Embed several photos concurrently, skipping the ones that fail.

        Args:
            photo_refs: Photo references of one report.

        Returns:
            Embeddings of the photos that succeeded, in input order.
        """
        if not photo_refs:
            return []

        def _safe_extract(ref: str) -> Embedding | None:
            try:
                return self.extract(ref)
            except ProviderError as exc:
                logger.warning("Skipping photo %.40s: %s", ref, exc)
                return None

        workers = min(len(photo_refs), self.max_concurrency)
        with ThreadPoolExecutor(max_workers=workers) as executor:
            results = list(executor.map(_safe_extract, photo_refs))

        return [e for e in results if e is not None]
