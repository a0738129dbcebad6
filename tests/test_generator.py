"""Short code generator tests."""

from unittest.mock import patch

import pytest

from shortlink.errors import CodeGenerationError
from shortlink.generator import ALPHABET, DEFAULT_SHORT_CODE_LENGTH, ShortCodeGenerator


class TestShortCodeGenerator:
    def test_codes_have_configured_length(self) -> None:
        generator = ShortCodeGenerator(9)
        assert generator.length == 9
        assert all(len(generator.generate()) == 9 for _ in range(50))

    @pytest.mark.parametrize("length", [0, -3])
    def test_non_positive_length_uses_default(self, length: int) -> None:
        generator = ShortCodeGenerator(length)
        assert generator.length == DEFAULT_SHORT_CODE_LENGTH
        assert len(generator.generate()) == DEFAULT_SHORT_CODE_LENGTH

    def test_codes_use_alphanumeric_alphabet(self) -> None:
        generator = ShortCodeGenerator(7)
        assert len(ALPHABET) == 62
        for _ in range(200):
            assert set(generator.generate()) <= set(ALPHABET)

    def test_codes_are_not_repeated(self) -> None:
        generator = ShortCodeGenerator(7)
        codes = {generator.generate() for _ in range(1000)}
        assert len(codes) == 1000

    def test_random_source_failure_raises_generation_error(self) -> None:
        generator = ShortCodeGenerator(7)
        with patch("shortlink.generator.generate", side_effect=OSError("entropy source unavailable")):
            with pytest.raises(CodeGenerationError) as exc_info:
                generator.generate()

        assert isinstance(exc_info.value.original_error, OSError)
        assert exc_info.value.public_message != "failed to generate random short code"
