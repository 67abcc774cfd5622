import pytest

from nako.nako_prepare import NakoPrepare
from nako.nako_lexer import NakoLexer, split_fragments
from nako.nako_datatypes import (
    NakoLexerError, NUMBER, STRING, CODE, WORD, FUNC, EOL, RESERVED_WORDS, OPERATORS,
)


def lex(code, funclist=None, is_first=True, line=0):
    lexer = NakoLexer()
    lexer.set_func_list(funclist if funclist is not None else {})
    return lexer.tokenize(NakoPrepare().convert(code), is_first, line)


def kinds(tokens):
    return [t.kind for t in tokens]


# --- preprocessor ---

def test_prepare_converts_full_width_outside_strings():
    assert NakoPrepare().convert("Ａ＝５") == "A=5"
    assert NakoPrepare().convert("A=1。B=2") == "A=1;B=2"
    assert NakoPrepare().convert("A　B") == "A B"


def test_prepare_keeps_string_bodies():
    assert NakoPrepare().convert("「Ａ。」") == "「Ａ。」"
    assert NakoPrepare().convert("『１、２』＋") == "『１、２』+"


def test_prepare_normalizes_newlines():
    assert NakoPrepare().convert("a\r\nb\rc") == "a\nb\nc"


# --- tokenizer ---

def test_assignment_tokens_and_trailing_eol():
    toks = lex("A=5")
    assert kinds(toks) == [WORD, "=", NUMBER, EOL]
    assert toks[2].value == 5


def test_josi_split_from_words_numbers_and_strings():
    toks = lex("Aを3に「x」と", is_first=False)
    assert [(t.kind, t.value, t.josi) for t in toks] == [
        (WORD, "A", "を"), (NUMBER, 3, "に"), (STRING, "x", "と"),
    ]


def test_longest_josi_wins():
    toks = lex("Aならば", is_first=False)
    assert toks[0].josi == "ならば"


def test_catalogue_words_become_func_tokens():
    toks = lex("Aを表示", {"表示": {"type": "func", "josi": [["を"]]}})
    assert kinds(toks) == [WORD, FUNC, EOL]


def test_repeat_marker_versus_word_starting_with_it():
    toks = lex("N回", is_first=False)
    assert kinds(toks) == [WORD, "回"]
    toks = lex("回数を表示", is_first=False)
    assert toks[0].kind == WORD and toks[0].value == "回数"


def test_comments_are_skipped_and_lines_counted():
    toks = lex("# c\nA=1 // tail\n/* a\nb */B=2")
    words = [t for t in toks if t.kind == WORD]
    assert [(t.value, t.line) for t in words] == [("A", 1), ("B", 3)]


def test_line_offset_argument():
    toks = lex("A\nB", is_first=False, line=10)
    assert [t.line for t in toks if t.kind == WORD] == [10, 11]


def test_interpolating_string_emits_code_tokens():
    toks = lex("「a{B}c」を", is_first=False)
    assert kinds(toks) == ["(", STRING, "&", "(", CODE, ")", "&", STRING, ")"]
    assert toks[4].value == "B"
    assert toks[-1].josi == "を"


def test_fragment_first_string_starts_with_empty_literal():
    toks = lex("「{B}」", is_first=False)
    assert toks[1].kind == STRING and toks[1].value == ""


def test_code_token_records_its_line():
    toks = lex("\n\n「x\n{B}」", is_first=False)
    code = [t for t in toks if t.kind == CODE][0]
    assert code.line == 3


def test_raw_strings_do_not_interpolate():
    toks = lex("『a{b}』", is_first=False)
    assert kinds(toks) == [STRING]
    assert toks[0].value == "a{b}"


def test_split_fragments_keeps_blank_braces_literal():
    assert split_fragments("a{ }b") == [(False, "a", 0), (False, "{ }", 0), (False, "b", 0)]


def test_unterminated_string_is_a_lexer_error():
    with pytest.raises(NakoLexerError) as ei:
        lex("A=1\n「abc")
    assert ei.value.line == 2


def test_unknown_character():
    with pytest.raises(NakoLexerError):
        lex("A=1 @")


def test_user_functions_are_predefined_on_first_pass():
    funclist = {}
    toks = lex("1と2を加算\n●(AとBを)加算とは\nここまで", funclist)
    assert funclist["加算"]["josi"] == [["と"], ["を"]]
    assert funclist["加算"]["user"] is True
    assert toks[2].kind == FUNC


def test_name_first_definition_form():
    funclist = {}
    lex("●倍(Aを)\nここまで", funclist)
    assert funclist["倍"]["josi"] == [["を"]]


def test_reserved_words_and_operators_are_their_own_kinds():
    for word in RESERVED_WORDS:
        toks = lex(word, is_first=False)
        assert kinds(toks) == [word], word
    for op in OPERATORS:
        toks = lex(f"A{op}B", is_first=False)
        assert toks[1].kind == ("!=" if op == "<>" else op), op


def test_words_stop_before_reserved_words():
    toks = lex("Aもし", is_first=False)
    assert [(t.kind, t.value) for t in toks] == [(WORD, "A"), ("もし", "もし")]


def test_unclosed_block_comment_is_a_lexer_error():
    with pytest.raises(NakoLexerError) as ei:
        lex("A=1\n/* 終わらない")
    assert ei.value.line == 2


def test_nested_interpolation_stays_one_string_literal():
    toks = lex("「a{「b{1}」}」", is_first=False)
    code = [t for t in toks if t.kind == CODE]
    assert [t.value for t in code] == ["「b{1}」"]


def test_empty_source():
    assert lex("", is_first=False) == []
    assert kinds(lex("")) == [EOL]


def test_multiline_raw_string_advances_lines():
    toks = lex("『a\nb』\nC", is_first=False)
    assert toks[0].value == "a\nb"
    assert toks[-1].kind == WORD and toks[-1].line == 2
