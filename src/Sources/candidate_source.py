from typing import AbstractSet, Sequence, Union

import numpy as np

from Utils.errors import InvalidConfiguration, MalformedCandidate

Candidate = str

SeedLike = Union[None, int, np.random.SeedSequence]


class CandidateSource:
    """
    Produces uniformly random k-of-N word selections without repetition and
    renders them in canonical form (words joined by a single space).

    Not thread-safe: each worker gets its own stream through fork().
    """
    def __init__(self, vocabulary: Sequence[str], length: int, seed: SeedLike = None):
        self.vocabulary = tuple(dict.fromkeys(vocabulary))
        self.length = int(length)
        if self.length < 1:
            raise InvalidConfiguration(f"Phrase length must be >= 1, got {self.length}")
        if self.length > len(self.vocabulary):
            raise InvalidConfiguration(
                f"Phrase length {self.length} exceeds vocabulary size {len(self.vocabulary)}")
        self._seed_seq = seed if isinstance(seed, np.random.SeedSequence) else np.random.SeedSequence(seed)
        self._rng = np.random.default_rng(self._seed_seq)
        self._index = None

    def fork(self) -> "CandidateSource":
        """Independent source for another thread, sharing the vocabulary."""
        child = self._seed_seq.spawn(1)[0]
        return CandidateSource(self.vocabulary, self.length, seed=child)

    def generate(self) -> Candidate:
        indices = self._rng.choice(len(self.vocabulary), size=self.length, replace=False)
        return " ".join(self.vocabulary[i] for i in indices)

    @staticmethod
    def is_known(candidate: Candidate, tried: AbstractSet[str]) -> bool:
        return candidate in tried

    def validate(self, candidate: Candidate) -> Candidate:
        if self._index is None:
            self._index = frozenset(self.vocabulary)
        words = candidate.split(" ")
        if len(words) != self.length:
            raise MalformedCandidate(f"Expected {self.length} words, got {len(words)}")
        unknown = [w for w in words if w not in self._index]
        if unknown:
            raise MalformedCandidate(f"Unknown word(s): {', '.join(unknown)}")
        if len(set(words)) != len(words):
            raise MalformedCandidate("Candidate repeats a word")
        return candidate
