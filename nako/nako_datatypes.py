"""
Defines the core data types shared by the nadesiko toolchain.

Tokens are produced by the lexer, nodes by the parser, and every stage
reports failures through the NakoError family defined at the bottom.
"""

from dataclasses import dataclass, field, asdict
from typing import Any, List, Optional

# =================================================================
# Token kinds
# =================================================================

NUMBER = 'number'
STRING = 'string'
CODE = 'code'          # embedded fragment; re-tokenized before parsing
WORD = 'word'
FUNC = 'func'          # a word registered as a function in the catalogue
EOL = 'eol'
DEF_FUNC = '●'

RESERVED_WORDS = ('もし', '違えば', 'ここまで', '回', '繰り返す', '戻る', '抜ける', '続ける')

OPERATORS = ('==', '!=', '<>', '<=', '>=', '+', '-', '*', '/', '%', '^', '&', '=', '<', '>')


@dataclass(frozen=True)
class Token:
    """A single lexical unit. Immutable once produced."""
    kind: str
    value: Any = None
    line: int = 0
    josi: str = ''

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class Node:
    """
    A node of the parser's AST.

    `type` selects the meaning of the other fields:
      - block:      children = statements
      - number/string: value = literal
      - word:       value = variable name
      - op:         value = operator, children = [left, right]
      - neg/not:    children = [operand]
      - call:       name = function key, children = arguments
      - let:        name = variable, children = [value]
      - stmt:       children = [expression]
      - def_func:   name, value = parameter names, josi_pattern, children = [block]
      - if:         children = [cond, then_block, else_block or None]
      - repeat:     children = [count, block]
      - for:        name = counter variable, children = [start, end, block]
      - return:     children = [value] or []
      - break/continue
    """
    type: str
    line: int = 0
    value: Any = None
    children: List[Any] = field(default_factory=list)
    name: Optional[str] = None
    josi: str = ''
    josi_pattern: Optional[List[List[str]]] = None

    def to_dict(self) -> dict:
        out = {'type': self.type, 'line': self.line}
        if self.name is not None:
            out['name'] = self.name
        if self.value is not None:
            out['value'] = self.value
        if self.josi:
            out['josi'] = self.josi
        if self.children:
            out['children'] = [c.to_dict() if isinstance(c, Node) else c for c in self.children]
        return out


# =================================================================
# Errors
# =================================================================

class NakoError(Exception):
    """Base class for every error raised by the toolchain.

    `line` is 1-based for display; constructors take the 0-based line
    recorded on tokens and nodes.
    """
    title = '[エラー]'

    def __init__(self, message: str, line: Optional[int] = None):
        self.raw_message = message
        self.line = line + 1 if line is not None and line >= 0 else None
        if self.line is not None:
            text = f"{self.title}({self.line}) {message}"
        else:
            text = f"{self.title} {message}"
        super().__init__(text)
        self.message = text


class NakoLexerError(NakoError):
    title = '[字句解析エラー]'


class NakoExpandError(NakoLexerError):
    """Embedded-code expansion went deeper than the configured limit."""


class NakoSyntaxError(NakoError):
    title = '[文法エラー]'


class NakoGenError(NakoError):
    title = '[生成エラー]'


class NakoRuntimeError(NakoError):
    """Wraps any exception raised while generated program text runs."""
    title = '[実行時エラー]'

    def __init__(self, message: str, line: Optional[int] = None, original: Optional[BaseException] = None):
        super().__init__(message, line)
        self.original = original
