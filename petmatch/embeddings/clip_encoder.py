"""CLIP image encoder producing photo embeddings."""

from __future__ import annotations

import logging

import torch
from PIL import Image

logger = logging.getLogger(__name__)


class CLIPEncoder:
    """Encode pet photos into CLIP embedding space.

    Uses a ViT-B-32 image tower producing L2-normalized vectors, so the
    Euclidean distance between two photos stays within [0, 2].

    Args:
        model_name: CLIP model architecture name.
        pretrained: Pretrained weights identifier.
        embedding_dim: Output dimensionality of the image tower.
        device: Device to run model on (auto-detected if None).
    """

    def __init__(
        self,
        model_name: str = "ViT-B-32",
        pretrained: str = "laion2b_s34b_b79k",
        embedding_dim: int = 512,
        device: str | None = None,
    ) -> None:
        import open_clip

        self.device = device or ("cuda" if torch.cuda.is_available() else "cpu")
        logger.info(
            "Loading CLIP model %s (%s) on %s",
            model_name,
            pretrained,
            self.device,
        )

        self.model, _, self.preprocess = open_clip.create_model_and_transforms(
            model_name, pretrained=pretrained
        )
        self.model = self.model.to(self.device).eval()
        self.embedding_dim = embedding_dim

        logger.info("CLIP model loaded successfully")

    def encode_photo(self, image: Image.Image) -> list[float]:
        """Encode a single photo.

        Raises:
            ValueError: If the model output does not match ``embedding_dim``.
        """
        img_tensor = self.preprocess(image.convert("RGB")).unsqueeze(0).to(self.device)

        with torch.no_grad():
            features = self.model.encode_image(img_tensor)
            features = features / features.norm(dim=-1, keepdim=True)

        vector = features.cpu().numpy().tolist()[0]
        if len(vector) != self.embedding_dim:
            raise ValueError(
                f"Model produced {len(vector)}-dim vectors, expected {self.embedding_dim}"
            )
        return vector
