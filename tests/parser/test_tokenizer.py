"""Tests for the expression tokenizer."""

import pytest

from decexpr.core.errors import LexError
from decexpr.parser.tokenizer import Token, TokenType, Tokenizer

OPERATORS = ["+", "-", "*", "/", "^", "<", "<=", ">", ">=", "<>", "||", "&&"]


def kinds(source, **kwargs):
    return [token.type for token in Tokenizer(source, OPERATORS, **kwargs)]


def values(source, **kwargs):
    return [token.value for token in Tokenizer(source, OPERATORS, **kwargs)][:-1]


class TestBasicTokens:
    """Test recognition of each token kind."""

    def test_simple_expression(self):
        """Test tokens, values and positions of a small expression."""
        tokens = Tokenizer("3 + 4.5*x", OPERATORS).tokenize()
        assert tokens == [
            Token(TokenType.NUMBER, "3", 0),
            Token(TokenType.OPERATOR, "+", 2),
            Token(TokenType.NUMBER, "4.5", 4),
            Token(TokenType.OPERATOR, "*", 7),
            Token(TokenType.IDENTIFIER, "x", 8),
            Token(TokenType.EOF, "", 9),
        ]

    def test_delimiters(self):
        """Test parentheses and commas."""
        assert kinds("max(a, b)") == [
            TokenType.IDENTIFIER,
            TokenType.LPAREN,
            TokenType.IDENTIFIER,
            TokenType.COMMA,
            TokenType.IDENTIFIER,
            TokenType.RPAREN,
            TokenType.EOF,
        ]

    def test_whitespace_is_skipped(self):
        """Test that tabs, newlines and spaces separate tokens only."""
        assert values(" 1\t+\n2 ") == ["1", "+", "2"]

    def test_empty_source_yields_only_eof(self):
        """Test that an empty source produces a single EOF token."""
        assert kinds("   ") == [TokenType.EOF]


class TestNumbers:
    """Test numeric literal forms."""

    @pytest.mark.parametrize(
        "source",
        ["42", "3.14", ".5", "2.", "1e10", "1E-10", "2.5e+3", "0xcafe", "0XFF"],
    )
    def test_number_literal(self, source):
        """Test that each literal form is a single NUMBER token."""
        tokens = Tokenizer(source, OPERATORS).tokenize()
        assert tokens[0] == Token(TokenType.NUMBER, source, 0)
        assert tokens[1].type == TokenType.EOF

    def test_sign_is_an_operator(self):
        """Test that a leading sign is tokenized as an operator."""
        assert values("-3") == ["-", "3"]

    def test_lone_dot_is_not_a_number(self):
        """Test that a dot without digits cannot start a token."""
        with pytest.raises(LexError):
            Tokenizer("1 + .", OPERATORS).tokenize()


class TestIdentifiers:
    """Test identifier recognition and configurable characters."""

    def test_identifier_with_digits_and_underscore(self):
        """Test that letters, digits and underscores continue a name."""
        assert values("x1_y + _tmp") == ["x1_y", "+", "_tmp"]

    def test_custom_first_variable_character(self):
        """Test that an extra first character is accepted."""
        assert values("$a+b", first_variable_chars="$") == ["$a", "+", "b"]

    def test_custom_variable_character(self):
        """Test that an extra inner character is accepted."""
        assert values("a.b*2", variable_chars=".") == ["a.b", "*", "2"]

    def test_unconfigured_character_is_rejected(self):
        """Test that '$' is invalid unless configured."""
        with pytest.raises(LexError) as exc_info:
            Tokenizer("$a", OPERATORS).tokenize()
        assert exc_info.value.character == "$"
        assert exc_info.value.position == 0


class TestOperators:
    """Test operator matching against registered symbols."""

    def test_longest_match_wins(self):
        """Test that '<=' is preferred over '<'."""
        assert values("a<=b") == ["a", "<=", "b"]

    def test_operator_followed_by_sign(self):
        """Test that a run is split at its longest registered prefix."""
        assert values("a<-b") == ["a", "<", "-", "b"]
        assert values("2*-3") == ["2", "*", "-", "3"]
        assert values("4^-0.5") == ["4", "^", "-", "0.5"]

    def test_unregistered_run_is_kept_whole(self):
        """Test that a run with no registered prefix becomes one token."""
        tokens = Tokenizer("1 |*| 2", OPERATORS).tokenize()
        assert tokens[1] == Token(TokenType.OPERATOR, "|*|", 2)

    def test_only_registered_alphabet_is_operator(self):
        """Test that characters outside every symbol raise LexError."""
        with pytest.raises(LexError) as exc_info:
            Tokenizer("7#9", OPERATORS).tokenize()
        assert exc_info.value.character == "#"
        assert exc_info.value.position == 1
        assert exc_info.value.details == {"character": "#", "position": 1}

    def test_operators_follow_the_given_symbols(self):
        """Test that a newly registered symbol is recognized."""
        tokens = Tokenizer("a ** b", ["*", "**"]).tokenize()
        assert tokens[1].value == "**"


class TestLaziness:
    """Test that tokenization is lazy and restartable."""

    def test_error_is_raised_on_reaching_the_character(self):
        """Test that tokens before an invalid character are produced."""
        stream = iter(Tokenizer("1 + #", OPERATORS))
        assert next(stream).value == "1"
        assert next(stream).value == "+"
        with pytest.raises(LexError):
            next(stream)

    def test_iteration_restarts(self):
        """Test that iterating twice yields the same tokens."""
        tokenizer = Tokenizer("a + b", OPERATORS)
        assert list(tokenizer) == list(tokenizer)
