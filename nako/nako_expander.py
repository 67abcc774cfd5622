"""
Inlines embedded-code tokens into a flat token sequence.
"""

from typing import Callable, List

from nako.nako_datatypes import Token, NakoExpandError, CODE

DEFAULT_MAX_DEPTH = 32

TokenizeFn = Callable[[str, bool, int], List[Token]]


class TokenExpander:
    """Re-tokenizes CODE tokens in place until none remain.

    `tokenize(text, is_first, line)` is the tokenizer to call. Each
    fragment is tokenized at the line its CODE token was recorded on, and
    the scan resumes at the same index so fragments nested inside the
    expansion are expanded too. A fragment nested deeper than `max_depth`
    raises NakoExpandError; this also stops a tokenizer that keeps
    producing CODE tokens for the same text.
    """

    def __init__(self, tokenize: TokenizeFn, max_depth: int = DEFAULT_MAX_DEPTH):
        self.tokenize = tokenize
        self.max_depth = max_depth

    def expand(self, source: str) -> List[Token]:
        tokens = list(self.tokenize(source, True, 0))
        depths = [0] * len(tokens)
        i = 0
        while i < len(tokens):
            tok = tokens[i]
            if tok.kind != CODE:
                i += 1
                continue
            depth = depths[i] + 1
            if depth > self.max_depth:
                raise NakoExpandError(
                    f'埋め込みコードの展開が深すぎます(上限{self.max_depth})', tok.line)
            sub = list(self.tokenize(tok.value, False, tok.line))
            tokens[i:i + 1] = sub
            depths[i:i + 1] = [depth] * len(sub)
        return tokens
