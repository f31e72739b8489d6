"""Tests for compilation error classes."""

from mip_dsl.exceptions import DslError, MissingKey, UndefinedSymbol


class TestDslError:
    """Test cases for error context."""

    def test_kind(self):
        """Test the short error name."""
        assert UndefinedSymbol("x").kind == "UndefinedSymbol"
        assert isinstance(MissingKey("k"), DslError)

    def test_str_includes_context(self):
        """Test the rendered message lists every known context field."""
        err = MissingKey(
            "Key 'S9' not found in 'cost'",
            expression="cost[s]",
            declaration="constraints 'supply_{s}'",
            bindings={"s": "S9", "k": 2},
        )
        assert str(err) == (
            "MissingKey: Key 'S9' not found in 'cost'\n"
            "  in expression: cost[s]\n"
            "  in declaration: constraints 'supply_{s}'\n"
            "  with bindings: s='S9', k=2"
        )

    def test_str_without_context(self):
        """Test a bare error renders as its kind and message."""
        assert str(UndefinedSymbol("Undefined symbol 'q'")) == "UndefinedSymbol: Undefined symbol 'q'"

    def test_with_context_keeps_innermost(self):
        """Test that existing context is not overwritten."""
        err = UndefinedSymbol("missing", expression="q", bindings={"i": 1})
        same = err.with_context(expression="q + 1", declaration="objective 'minimize'", bindings={"i": 9})
        assert same is err
        assert err.expression == "q"
        assert err.declaration == "objective 'minimize'"
        assert err.bindings == {"i": 1}

    def test_bindings_are_copied(self):
        """Test that the error owns its bindings."""
        bindings = {"i": 1}
        err = UndefinedSymbol("missing", bindings=bindings)
        bindings["i"] = 2
        assert err.bindings == {"i": 1}
