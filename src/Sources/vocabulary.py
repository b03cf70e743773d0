# Loads the newline-delimited word list once at startup.
# Any failure here is fatal: ConfigurationError before workers are spawned.

import logging
import os
from typing import Tuple

from Utils.errors import ConfigurationError

logger = logging.getLogger(__name__)


def load_vocabulary(path: str) -> Tuple[str, ...]:
    if not path or not os.path.isfile(path):
        raise ConfigurationError(f"Vocabulary file not found: {path}")
    try:
        with open(path, "r", encoding="utf-8") as fh:
            words = tuple(line.strip() for line in fh if line.strip())
    except (OSError, UnicodeDecodeError) as e:
        raise ConfigurationError(f"Cannot read vocabulary file {path}: {e}") from e

    if not words:
        raise ConfigurationError(f"Vocabulary file is empty: {path}")
    for w in words:
        if " " in w or "\t" in w:
            raise ConfigurationError(f"Vocabulary entry contains whitespace: {w!r}")
    # words are distinct, first occurrence wins
    distinct = tuple(dict.fromkeys(words))
    if len(distinct) != len(words):
        logger.warning("[Vocabulary] %s: dropped %d repeated word(s)", path, len(words) - len(distinct))
        words = distinct
    logger.info("[Vocabulary] Loaded %d words from %s", len(words), path)
    return words
