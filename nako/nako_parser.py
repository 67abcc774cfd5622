"""
Builds the AST from a fully expanded token sequence.

Sentences are subject-object-verb: values carrying particles (josi) pile
up on a stack and a function word consumes as many of them as its josi
pattern declares.
"""

from typing import Any, Dict, List, Optional

from nako.nako_datatypes import (
    Token, Node, NakoSyntaxError,
    WORD, FUNC, EOL, DEF_FUNC
)

# Tokens that end a sentence without being part of it
SENTENCE_STOP = (EOL, 'ここまで', '違えば', ')', ',', '回', '繰り返す', '戻る',
                 '抜ける', '続ける', 'もし', DEF_FUNC)

# Lowest precedence first
BINARY_LEVELS = (
    ('=', '==', '!=', '<', '>', '<=', '>='),
    ('&',),
    ('+', '-'),
    ('*', '/', '%'),
    ('^',),
)

IF_JOSI = ('ならば', 'なら', 'でなければ')


def describe(tok: Token) -> str:
    """Text naming a token in messages; end-of-line tokens carry no value."""
    if tok.value is None:
        return '改行' if tok.kind == EOL else tok.kind
    return str(tok.value)


class NakoParser:
    def __init__(self):
        self.funclist: Dict[str, Any] = {}
        self.debug = False
        self.tokens: List[Token] = []
        self.index = 0

    def set_func_list(self, funclist: Dict[str, Any]):
        self.funclist = funclist

    def parse(self, tokens: List[Token]) -> Node:
        self.tokens = list(tokens)
        self.index = 0
        block = self._block(())
        if not self._eof():
            tok = self._peek()
            raise NakoSyntaxError(f'『{describe(tok)}』の使い方が正しくありません', tok.line)
        return block

    # --- token helpers ---

    def _eof(self) -> bool:
        return self.index >= len(self.tokens)

    def _peek(self, offset: int = 0) -> Optional[Token]:
        i = self.index + offset
        return self.tokens[i] if i < len(self.tokens) else None

    def _next(self) -> Optional[Token]:
        tok = self._peek()
        if tok is not None:
            self.index += 1
        return tok

    def _last_line(self) -> int:
        return self.tokens[-1].line if self.tokens else 0

    def _check(self, kind: str) -> bool:
        tok = self._peek()
        return tok is not None and tok.kind == kind

    def _expect(self, kind: str) -> Token:
        tok = self._next()
        if tok is None or tok.kind != kind:
            line = tok.line if tok is not None else self._last_line()
            raise NakoSyntaxError(f'『{kind}』がありません', line)
        return tok

    # --- statements ---

    def _block(self, terminators: tuple) -> Node:
        first = self._peek()
        block = Node('block', first.line if first else self._last_line())
        while not self._eof() and self._peek().kind not in terminators:
            node = self._statement()
            if node is not None:
                block.children.append(node)
        return block

    def _statement(self) -> Optional[Node]:
        tok = self._peek()
        if tok is None:
            raise NakoSyntaxError('文が途中で終わっています', self._last_line())
        match tok.kind:
            case 'eol':
                self.index += 1
                return None
            case '●':
                return self._def_func()
            case 'もし':
                return self._if()
            case '抜ける' | '続ける':
                self.index += 1
                return Node('break' if tok.kind == '抜ける' else 'continue', tok.line)
            case 'word' if self._is_assignment():
                return self._let()
            case 'ここまで' | '違えば' | ')' | ',':
                raise NakoSyntaxError(f'『{describe(tok)}』に対応する文がありません', tok.line)
        return self._sentence()

    def _is_assignment(self) -> bool:
        tok = self._peek()
        if tok.josi == 'は':
            return True
        return tok.josi == '' and self._peek(1) is not None and self._peek(1).kind == '='

    def _let(self) -> Node:
        tok = self._next()
        if tok.josi != 'は':
            self._expect('=')
        stack = self._sentence_terms()
        if len(stack) != 1:
            raise NakoSyntaxError(f'『{tok.value}』に代入する値が正しくありません', tok.line)
        return Node('let', tok.line, name=tok.value, children=[stack[0]])

    def _params(self) -> List[Token]:
        params = []
        while not self._eof() and not self._check(')'):
            tok = self._next()
            if tok.kind == EOL:
                raise NakoSyntaxError('引数の定義が閉じられていません', tok.line)
            if tok.kind in (WORD, FUNC):
                params.append(tok)
        self._expect(')')
        return params

    def _def_func(self) -> Node:
        tok = self._next()
        params: List[Token] = []
        if self._check('('):
            self.index += 1
            params = self._params()
        name_tok = self._next()
        if name_tok is None or name_tok.kind not in (WORD, FUNC):
            raise NakoSyntaxError('関数名がありません', tok.line)
        if not params and self._check('('):
            self.index += 1
            params = self._params()
        body = self._block(('ここまで',))
        self._expect('ここまで')
        return Node(
            'def_func', tok.line,
            name=name_tok.value,
            value=[p.value for p in params],
            josi_pattern=[[p.josi] for p in params],
            children=[body],
        )

    def _if(self) -> Node:
        tok = self._next()
        cond = self._expr()
        if cond.josi == 'が':
            right = self._expr()
            cond = Node('op', cond.line, value='==', children=[cond, right], josi=right.josi)
        if cond.josi not in IF_JOSI:
            raise NakoSyntaxError('もし文で『ならば』がありません', tok.line)
        if cond.josi == 'でなければ':
            cond = Node('not', cond.line, children=[cond])

        else_block = None
        if self._check(EOL):
            self.index += 1
            then_block = self._block(('違えば', 'ここまで'))
            if self._check('違えば'):
                self.index += 1
                else_block = self._block(('ここまで',))
            self._expect('ここまで')
        else:
            then_block = self._single_block(tok.line)
            if self._check('違えば'):
                self.index += 1
                else_block = self._single_block(tok.line)
        return Node('if', tok.line, children=[cond, then_block, else_block])

    def _single_block(self, line: int) -> Node:
        node = self._statement()
        return Node('block', line, children=[node] if node is not None else [])

    def _loop_body(self, tok: Token) -> Node:
        if self._check(EOL):
            self.index += 1
            body = self._block(('ここまで',))
            self._expect('ここまで')
            return body
        return self._single_block(tok.line)

    # --- sentences ---

    def _sentence(self) -> Node:
        line = self._peek().line
        stack = self._sentence_terms()
        tok = self._peek()
        if tok is not None:
            match tok.kind:
                case '回':
                    return self._repeat(stack, line)
                case '繰り返す':
                    return self._for(stack, line)
                case '戻る':
                    return self._return(stack)
        if not stack:
            bad = describe(tok) if tok is not None else ''
            raise NakoSyntaxError(f'『{bad}』の使い方が正しくありません', tok.line if tok else line)
        if len(stack) > 1:
            raise NakoSyntaxError('文の解釈に失敗しました。使われていない値があります', line)
        return Node('stmt', stack[0].line, children=[stack[0]])

    def _sentence_terms(self) -> List[Node]:
        stack: List[Node] = []
        while not self._eof():
            tok = self._peek()
            if tok.kind in SENTENCE_STOP:
                break
            if tok.kind == FUNC and not self._is_c_call():
                self.index += 1
                stack.append(self._call_with_stack(tok, stack))
                continue
            stack.append(self._expr())
        return stack

    def _is_c_call(self) -> bool:
        nxt = self._peek(1)
        return self._peek().josi == '' and nxt is not None and nxt.kind == '('

    def _call_with_stack(self, tok: Token, stack: List[Node]) -> Node:
        entry = self.funclist.get(tok.value) or {}
        arity = len(entry.get('josi') or [])
        take = min(arity, len(stack))
        args = stack[len(stack) - take:]
        del stack[len(stack) - take:]
        # Missing leading arguments default to the last result
        while len(args) < arity:
            args.insert(0, Node('word', tok.line, value='それ'))
        return Node('call', tok.line, name=tok.value, children=args, josi=tok.josi)

    def _repeat(self, stack: List[Node], line: int) -> Node:
        tok = self._next()
        if len(stack) != 1:
            raise NakoSyntaxError('『回』の前に回数がありません', tok.line)
        body = self._loop_body(tok)
        return Node('repeat', line, children=[stack[0], body])

    def _for(self, stack: List[Node], line: int) -> Node:
        tok = self._next()
        start = end = None
        counter = 'それ'
        for node in stack:
            if node.josi == 'から':
                start = node
            elif node.josi == 'まで':
                end = node
            elif node.josi == 'を' and node.type == 'word':
                counter = node.value
            else:
                raise NakoSyntaxError('『繰り返す』の引数が正しくありません', node.line)
        if start is None or end is None:
            raise NakoSyntaxError('『AからBまで繰り返す』の形で書いてください', tok.line)
        body = self._loop_body(tok)
        return Node('for', line, name=counter, children=[start, end, body])

    def _return(self, stack: List[Node]) -> Node:
        tok = self._next()
        if len(stack) > 1:
            raise NakoSyntaxError('『戻る』の値が正しくありません', tok.line)
        return Node('return', tok.line, children=stack[:1])

    # --- expressions ---

    def _expr(self) -> Node:
        return self._binary(0)

    def _binary(self, level: int) -> Node:
        if level == len(BINARY_LEVELS):
            return self._unary()
        left = self._binary(level + 1)
        # A particle ends the expression it is attached to
        while not left.josi and not self._eof() and self._peek().kind in BINARY_LEVELS[level]:
            op = self._next()
            right = self._binary(level + 1)
            left = Node('op', op.line, value=op.kind, children=[left, right], josi=right.josi)
        return left

    def _unary(self) -> Node:
        if self._check('-'):
            tok = self._next()
            operand = self._unary()
            return Node('neg', tok.line, children=[operand], josi=operand.josi)
        return self._primary()

    def _primary(self) -> Node:
        tok = self._next()
        if tok is None:
            raise NakoSyntaxError('式が途中で終わっています', self._last_line())
        match tok.kind:
            case 'number':
                return Node('number', tok.line, value=tok.value, josi=tok.josi)
            case 'string':
                return Node('string', tok.line, value=tok.value, josi=tok.josi)
            case 'word':
                return Node('word', tok.line, value=tok.value, josi=tok.josi)
            case 'func':
                if tok.josi == '' and self._check('('):
                    return self._c_call(tok)
                return self._call_with_stack(tok, [])
            case '(':
                stack = self._sentence_terms()
                close = self._expect(')')
                if len(stack) != 1:
                    raise NakoSyntaxError('括弧の中の式が正しくありません', tok.line)
                node = stack[0]
                node.josi = close.josi
                return node
            case 'code':
                raise NakoSyntaxError('展開されていない埋め込みコードがあります', tok.line)
        raise NakoSyntaxError(f'『{describe(tok)}』の使い方が正しくありません', tok.line)

    def _c_call(self, tok: Token) -> Node:
        self._expect('(')
        args = []
        if not self._check(')'):
            while True:
                args.append(self._expr())
                if not self._check(','):
                    break
                self.index += 1
        close = self._expect(')')
        return Node('call', tok.line, name=tok.value, children=args, josi=close.josi)
