import pytest

from app.services.patterns import compile_glob, compile_pattern, matches


def test_exec_suffix_pattern() -> None:
    predicate = compile_pattern("*/exec")

    assert predicate("http://x:8083/exec")
    assert predicate("http://X:8083/EXEC")
    assert not predicate("http://x:8083/run")


def test_trailing_wildcard_matches_any_port_and_path() -> None:
    assert matches("localhost:*", "http://localhost:3000/foo")
    assert not matches("localhost:*", "http://example.com/foo")


def test_match_is_unanchored_substring() -> None:
    assert matches("*/exec", "http://x:8083/exec2/other")
    assert matches("/api/oracle/proc", "/api/oracle/procedure")


def test_regex_metacharacters_are_literal() -> None:
    assert matches("*10.6.46.114:8081*", "http://10.6.46.114:8081/batch")
    assert not matches("*10.6.46.114:8081*", "http://10x6y46z114:8081/batch")
    assert matches("a?b", "xa?by")
    assert not matches("a?b", "ab")
    assert matches("(x)+", "(x)+")


def test_compiled_patterns_are_cached() -> None:
    assert compile_glob("*/cached") is compile_glob("*/cached")


def test_empty_pattern_is_rejected() -> None:
    with pytest.raises(ValueError):
        compile_pattern("")
