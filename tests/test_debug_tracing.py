from deriv import deriv_combinators as d
from deriv.deriv_cache import cache


def test_tracing_is_silent_by_default(monkeypatch, capsys):
    monkeypatch.delenv("DERIV_DEBUG", raising=False)
    compiled = d.input(lambda given: cache(given, lambda key: key))
    assert compiled(1) == 1
    captured = capsys.readouterr()
    assert captured.err == ""
    assert captured.out == ""


def test_tracing_reports_compile_call_and_cache(monkeypatch, capsys):
    monkeypatch.setenv("DERIV_DEBUG", "1")
    compiled = d.input(lambda given: cache(given, lambda key: key))
    compiled("a")
    compiled("a")
    err = capsys.readouterr().err
    lines = err.splitlines()
    assert all(line.startswith("[DBG]") for line in lines)
    assert "input compiled may_defer False" in err
    assert repr(compiled) in err
    assert "CompiledSpec call cache" in err
    assert sum("cache miss" in line for line in lines) == 1
    assert sum("cache hit" in line for line in lines) == 1
