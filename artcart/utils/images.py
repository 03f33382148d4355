# artcart/utils/images.py
from typing import Optional

# schemes we leave untouched when canonicalizing
_REMOTE_PREFIXES = ("http://", "https://", "data:", "//")


def canonical_image_path(image: Optional[str]) -> str:
    """
    Make a catalog image reference absolute so the cart panel resolves it the
    same way from any page: "images/red-bird.webp" -> "/images/red-bird.webp".
    """
    if not image:
        return ""
    image = str(image).strip()
    if image.startswith("/") or image.lower().startswith(_REMOTE_PREFIXES):
        return image
    return f"/{image}"
