"""Random short-code generation.

Codes are fixed-length strings drawn uniformly from the 62 alphanumeric
symbols. ``nanoid`` draws its randomness from ``os.urandom``, so codes of
unpublished links cannot be predicted from earlier ones.

Key Behaviours
===============
- Stateless; one instance is shared by every request.
- A failing random source raises ``CodeGenerationError``. Retrying is the
  service's job, not the generator's.
- With the configured length of 7 there are 62**7 (about 3.5e12) codes, so
  collisions are rare but possible.
"""

from nanoid import generate

from shortlink.errors import CodeGenerationError

__all__ = ["ALPHABET", "DEFAULT_SHORT_CODE_LENGTH", "ShortCodeGenerator"]

ALPHABET = "abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789"
DEFAULT_SHORT_CODE_LENGTH = 6


class ShortCodeGenerator:
    """Produces random candidate short codes of a configured length."""

    def __init__(self, length: int = DEFAULT_SHORT_CODE_LENGTH):
        if length <= 0:
            length = DEFAULT_SHORT_CODE_LENGTH
        self._length = length

    @property
    def length(self) -> int:
        return self._length

    def generate(self) -> str:
        try:
            return generate(ALPHABET, self._length)
        except (OSError, NotImplementedError) as exc:
            raise CodeGenerationError("failed to generate random short code", original_error=exc) from exc
