"""
Hexit Lexer Test Suite

Tests tokenization:
1. Hex pairs and unpaired digits
2. Comments and stray characters
3. Bracketed forms (decimal, binary, float, timestamp, IP)
4. Strings and escapes
5. Labels and the label separator
6. Positions across lines
"""

import os
import sys

import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from hexit.compiler import LexError, LexErrorKind, TokenType, tokenize


def types(source):
    return [t.type for t in tokenize(source)][:-1]


def values(source):
    return [t.value for t in tokenize(source)][:-1]


# ============================================================================
# 1. Hex pairs
# ============================================================================

def test_hex_pairs():
    tokens = tokenize("12 34 AB CD")
    assert [t.type for t in tokens] == [TokenType.HEX] * 4 + [TokenType.EOF]
    assert [t.value for t in tokens[:-1]] == ["12", "34", "AB", "CD"]


def test_hex_run_is_split_into_pairs():
    tokens = tokenize("1234abcd")
    assert values("1234abcd") == ["12", "34", "ab", "cd"]
    assert [t.col for t in tokens[:-1]] == [0, 2, 4, 6]


def test_lone_digit_is_unpaired():
    with pytest.raises(LexError) as exc:
        tokenize("0 1")
    assert exc.value.kind == LexErrorKind.UNPAIRED_HEX_DIGIT
    assert (exc.value.line, exc.value.col) == (1, 0)


def test_odd_run_points_at_final_digit():
    with pytest.raises(LexError) as exc:
        tokenize("AB 123")
    assert exc.value.kind == LexErrorKind.UNPAIRED_HEX_DIGIT
    assert exc.value.col == 5


def test_empty_source_has_only_eof():
    assert [t.type for t in tokenize("")] == [TokenType.EOF]


# ============================================================================
# 2. Comments and stray characters
# ============================================================================

def test_comment_runs_to_end_of_line():
    assert values("12 # 34 56\n78") == ["12", "78"]


def test_comment_directly_after_hex():
    assert values("12#34") == ["12"]


def test_stray_character():
    with pytest.raises(LexError) as exc:
        tokenize("12 $")
    assert exc.value.kind == LexErrorKind.STRAY_CHARACTER
    assert exc.value.col == 3


def test_non_hex_letter_after_digit_is_stray():
    with pytest.raises(LexError) as exc:
        tokenize("12 3G")
    assert exc.value.kind == LexErrorKind.STRAY_CHARACTER
    assert exc.value.col == 4


def test_words_become_identifiers():
    assert types("TCP_SYN be16 x12 and not") == [TokenType.IDENTIFIER] * 5


def test_word_before_paren_is_identifier():
    tokens = tokenize("ab(12)")
    assert [t.type for t in tokens[:-1]] == [
        TokenType.IDENTIFIER, TokenType.LPAREN, TokenType.HEX, TokenType.RPAREN,
    ]


def test_hex_looking_word_with_space_before_paren_is_hex():
    assert types("ab (") == [TokenType.HEX, TokenType.LPAREN]


# ============================================================================
# 3. Bracketed forms
# ============================================================================

@pytest.mark.parametrize("source, ttype", [
    ("[180]", TokenType.DECIMAL),
    ("[b0101_1010]", TokenType.BINARY),
    ("[f1.5]", TokenType.FLOAT),
    ("[f-0.25]", TokenType.FLOAT),
    ("[2020-06-07T13:14:17Z]", TokenType.TIMESTAMP),
    ("[2017-12-31T21:36:45]", TokenType.TIMESTAMP),
    ("[192.168.0.1]", TokenType.IP),
    ("[::1]", TokenType.IP),
])
def test_form_classification(source, ttype):
    tokens = tokenize(source)
    assert tokens[0].type == ttype
    assert tokens[0].value == source[1:-1]
    assert tokens[0].col == 0


@pytest.mark.parametrize("source", [
    "[]",
    "[hello]",
    "[b]",
    "[b012]",
    "[fx]",
    "[12:30]",
    "[1.2.3]",
    "[256.0.0.1]",
    "[2020-13-45T99:00:00]",
])
def test_malformed_forms(source):
    with pytest.raises(LexError) as exc:
        tokenize(source)
    assert exc.value.kind == LexErrorKind.MALFORMED_LITERAL


def test_binary_form_is_at_most_64_bits():
    assert types("[b" + "1" * 64 + "]") == [TokenType.BINARY]
    with pytest.raises(LexError):
        tokenize("[b" + "1" * 65 + "]")


def test_unclosed_form():
    with pytest.raises(LexError) as exc:
        tokenize("12 [34")
    assert exc.value.kind == LexErrorKind.MALFORMED_LITERAL
    assert exc.value.col == 3


def test_hash_inside_form_is_not_a_comment():
    with pytest.raises(LexError) as exc:
        tokenize("[1#2]")
    assert exc.value.kind == LexErrorKind.MALFORMED_LITERAL


# ============================================================================
# 4. Strings
# ============================================================================

def test_string():
    tokens = tokenize('"GIF89a"')
    assert tokens[0].type == TokenType.STRING
    assert tokens[0].value == "GIF89a"


def test_string_escapes():
    assert values(r'"a\"b\\c\n\r\t\x"') == ['a"b\\c\n\r\tx']


def test_hash_and_colon_inside_string():
    tokens = tokenize('"a # b : c"')
    assert [t.type for t in tokens[:-1]] == [TokenType.STRING]
    assert tokens[0].value == "a # b : c"


def test_unterminated_string():
    with pytest.raises(LexError) as exc:
        tokenize('12 "abc')
    assert exc.value.kind == LexErrorKind.UNTERMINATED_STRING
    assert exc.value.col == 3


def test_escaped_quote_does_not_close_string():
    with pytest.raises(LexError) as exc:
        tokenize(r'"abc\"')
    assert exc.value.kind == LexErrorKind.UNTERMINATED_STRING


# ============================================================================
# 5. Labels
# ============================================================================

def test_label_is_split_off():
    tokens = tokenize("Magic number: 03")
    assert [t.type for t in tokens[:-1]] == [TokenType.LABEL, TokenType.COLON, TokenType.HEX]
    assert tokens[0].value == "Magic number"


def test_label_may_contain_anything():
    tokens = tokenize("[Magic] number $%!: 03")
    assert tokens[0].type == TokenType.LABEL
    assert tokens[0].value == "[Magic] number $%!"
    assert tokens[2].value == "03"


def test_colons_in_quoted_label_are_not_separators():
    tokens = tokenize('"Magic:::number": 03')
    assert [t.type for t in tokens[:-1]] == [TokenType.LABEL, TokenType.COLON, TokenType.HEX]
    assert tokens[1].col == 16


def test_last_colon_wins():
    tokens = tokenize("a: b: 03")
    assert tokens[0].value == "a: b"
    assert tokens[1].col == 4


def test_timestamp_colon_is_not_a_label_separator():
    assert types("be32[2020-06-07T13:14:17Z]") == [TokenType.IDENTIFIER, TokenType.TIMESTAMP]


def test_label_before_timestamp():
    assert types("When: be32[2020-06-07T13:14:17Z]") == [
        TokenType.LABEL, TokenType.COLON, TokenType.IDENTIFIER, TokenType.TIMESTAMP,
    ]


def test_comment_colon_is_not_a_label_separator():
    assert types("12 # note: this") == [TokenType.HEX]


# ============================================================================
# 6. Positions
# ============================================================================

def test_positions_across_lines():
    tokens = tokenize("12\n  34\r\n56")
    assert [(t.line, t.col) for t in tokens[:-1]] == [(1, 0), (2, 2), (3, 0)]


def test_error_line_number():
    with pytest.raises(LexError) as exc:
        tokenize("12\n34\n  5")
    assert (exc.value.line, exc.value.col) == (3, 2)
    assert str(exc.value).startswith("Line 3, Col 2:")
