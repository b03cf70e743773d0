from Probes.identity import DigestDeriver
from Sources.candidate_source import CandidateSource


def test_derive_is_deterministic(vocab_words):
    deriver = DigestDeriver()
    source = CandidateSource(vocab_words, 12, seed=5)
    for _ in range(20):
        candidate = source.generate()
        assert deriver.derive(candidate) == deriver.derive(candidate)
        assert deriver.derive(candidate) == DigestDeriver().derive(candidate)


def test_derivation_path_namespaces_identities():
    assert DigestDeriver("m/1").derive("a b c") != DigestDeriver("m/2").derive("a b c")


def test_distinct_candidates_get_distinct_identities():
    deriver = DigestDeriver()
    assert deriver.derive("a b c") != deriver.derive("a c b")
    assert len(deriver.derive("a b c")) == 64
