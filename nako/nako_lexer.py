"""
Splits normalized nadesiko source into tokens.

The lexical grammar lives in grammar/nako_tokens.yaml and is run by koine.
It yields a flat run of leaves that together cover the whole input; this
module turns those leaves into Tokens, attaching particles, counting lines
and breaking interpolating strings into code fragments.
"""

from dataclasses import replace
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Tuple

from koine import Parser

from nako.nako_datatypes import (
    Token, NakoLexerError,
    NUMBER, STRING, CODE, WORD, FUNC, EOL, DEF_FUNC
)
from nako.nako_prepare import STRING_QUOTES

GRAMMAR_PATH = Path(__file__).parent / "grammar" / "nako_tokens.yaml"

# Leaves that carry no token
_SKIPPED = ('space', 'line_comment', 'block_comment')

# Leaves whose text is the token kind
_PUNCT = ('def_func', 'reserved', 'open', 'comma', 'close')


def split_fragments(body: str) -> List[Tuple[bool, str, int]]:
    """Splits an interpolating string body into (is_code, text, line_offset) parts."""
    raw = []
    depth = 0
    start = 0
    for i, c in enumerate(body):
        if c == '{':
            if depth == 0:
                raw.append((False, body[start:i], body.count('\n', 0, start)))
                start = i + 1
            depth += 1
        elif c == '}' and depth > 0:
            depth -= 1
            if depth == 0:
                raw.append((True, body[start:i], body.count('\n', 0, start)))
                start = i + 1
    if depth > 0:
        # Unbalanced '{' stays literal
        raw.append((False, body[start - 1:], body.count('\n', 0, start - 1)))
    else:
        raw.append((False, body[start:], body.count('\n', 0, start)))

    parts = []
    for is_code, text, offset in raw:
        if is_code and not text.strip():
            is_code, text = False, '{' + text + '}'
        if not is_code and text == '':
            continue
        parts.append((is_code, text, offset))
    return parts


def iter_leaves(node: Any) -> Iterator[Dict[str, Any]]:
    """Yields the leaf nodes of a koine AST in source order."""
    if node is None:
        return
    if isinstance(node, list):
        for child in node:
            yield from iter_leaves(child)
    elif isinstance(node, dict):
        if 'children' in node:
            yield from iter_leaves(node['children'])
        elif 'tag' in node:
            yield node


class NakoLexer:
    """Tokenizer for the nadesiko dialect.

    The function catalogue installed by set_func_list is shared with the
    parser and the code generator; words naming a catalogue function come
    out as FUNC tokens.
    """

    _parser: Optional[Parser] = None

    def __init__(self):
        if NakoLexer._parser is None:
            NakoLexer._parser = Parser.from_file(str(GRAMMAR_PATH))
        self.parser = NakoLexer._parser
        self.funclist: Dict[str, Any] = {}
        self.line = 0

    def set_func_list(self, funclist: Dict[str, Any]):
        self.funclist = funclist

    def tokenize(self, code: str, is_first: bool, line: int = 0) -> List[Token]:
        self.line = line
        tokens: List[Token] = []
        for leaf in self._leaves(code):
            self._add_leaf(tokens, leaf.get('tag'), leaf.get('text', ''))
        if is_first:
            tokens.append(Token(EOL, None, self.line))
            self._predefine_functions(tokens)
        return [self._classify(t) for t in tokens]

    def _leaves(self, code: str) -> List[Dict[str, Any]]:
        if code == '':
            return []
        parse_out = self.parser.parse(code)
        if not isinstance(parse_out, dict) or parse_out.get('status') != 'success':
            msg = parse_out.get('error_message') if isinstance(parse_out, dict) else None
            raise NakoLexerError(f'字句解析に失敗しました: {msg or parse_out}', self.line)
        return list(iter_leaves(parse_out.get('ast')))

    def _classify(self, tok: Token) -> Token:
        if tok.kind == WORD:
            entry = self.funclist.get(tok.value)
            if entry and entry.get('type') == 'func':
                return replace(tok, kind=FUNC)
        return tok

    def _predefine_functions(self, tokens: List[Token]):
        """Registers '●' definitions so calls may precede them in the source."""
        n = len(tokens)
        i = 0
        while i < n:
            if tokens[i].kind != DEF_FUNC:
                i += 1
                continue
            i += 1
            params: List[Token] = []
            if i < n and tokens[i].kind == '(':
                i = self._collect_params(tokens, i + 1, params)
            if i < n and tokens[i].kind in (WORD, FUNC):
                name = tokens[i].value
                i += 1
                if not params and i < n and tokens[i].kind == '(':
                    i = self._collect_params(tokens, i + 1, params)
                self.funclist[name] = {
                    'type': 'func',
                    'josi': [[p.josi] for p in params],
                    'fn': None,
                    'user': True,
                }

    def _collect_params(self, tokens: List[Token], i: int, params: List[Token]) -> int:
        while i < len(tokens) and tokens[i].kind not in (')', EOL):
            if tokens[i].kind in (WORD, FUNC):
                params.append(tokens[i])
            i += 1
        return i + 1

    # --- leaves to tokens ---

    def _add_leaf(self, tokens: List[Token], tag: str, text: str):
        match tag:
            case 'newline':
                tokens.append(Token(EOL, None, self.line))
                self.line += 1
            case 'eol':
                tokens.append(Token(EOL, None, self.line))
            case 'josi':
                # The grammar only produces a particle right after the token it belongs to
                tokens[-1] = replace(tokens[-1], josi=text)
            case 'number':
                value = float(text) if '.' in text else int(text)
                tokens.append(Token(NUMBER, value, self.line))
            case 'name':
                tokens.append(Token(WORD, text, self.line))
            case 'operator':
                op = '!=' if text == '<>' else text
                tokens.append(Token(op, op, self.line))
            case 'istring':
                tokens.extend(self._string_tokens(text[1:-1]))
            case 'rstring':
                tokens.append(Token(STRING, text[1:-1], self.line))
                self.line += text.count('\n')
            case 'unclosed_comment':
                raise NakoLexerError('コメントの終わり『*/』がありません', self.line)
            case 'unknown':
                if text in STRING_QUOTES:
                    close = STRING_QUOTES[text][0]
                    raise NakoLexerError(f'文字列の終わり『{close}』がありません', self.line)
                raise NakoLexerError(f'不明な文字『{text}』があります', self.line)
            case _ if tag in _PUNCT:
                tokens.append(Token(text, text, self.line))
            case _ if tag in _SKIPPED:
                self.line += text.count('\n')

    def _string_tokens(self, body: str) -> List[Token]:
        start_line = self.line
        self.line += body.count('\n')
        parts = split_fragments(body)
        if not any(is_code for is_code, _, _ in parts):
            return [Token(STRING, body, start_line)]

        # ( "lit" & ( code ) & "lit" ... ) so the result is always a string
        if parts[0][0]:
            parts.insert(0, (False, '', 0))
        tokens = [Token('(', '(', start_line)]
        for k, (is_code, text, offset) in enumerate(parts):
            ln = start_line + offset
            if k > 0:
                tokens.append(Token('&', '&', ln))
            if is_code:
                tokens.append(Token('(', '(', ln))
                tokens.append(Token(CODE, text, ln))
                tokens.append(Token(')', ')', ln))
            else:
                tokens.append(Token(STRING, text, ln))
        tokens.append(Token(')', ')', self.line))
        return tokens
