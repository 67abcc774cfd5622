"""
Source normalization applied before tokenizing.
"""

# Opening quote -> (closing quote, interpolates {fragments})
STRING_QUOTES = {
    '「': ('」', True),
    '"': ('"', True),
    '『': ('』', False),
    "'": ("'", False),
}

_SPECIAL = {
    '　': ' ',
    '。': ';',
    '、': ',',
}


def find_string_end(code: str, start: int, close: str, interpolate: bool) -> int:
    """Returns the index of the closing quote for a literal whose body starts at `start`.

    Inside interpolating strings, quotes nested in `{...}` fragments do not
    close the outer literal. Returns -1 when the literal is unterminated.
    """
    depth = 0
    i = start
    n = len(code)
    while i < n:
        c = code[i]
        if interpolate and c == '{':
            depth += 1
        elif interpolate and c == '}' and depth > 0:
            depth -= 1
        elif c == close and depth == 0:
            return i
        i += 1
    return -1


def to_half_width(c: str) -> str:
    code = ord(c)
    if 0xFF01 <= code <= 0xFF5E:
        return chr(code - 0xFEE0)
    return _SPECIAL.get(c, c)


class NakoPrepare:
    """Normalizes full-width characters outside of string literals."""

    def convert(self, code: str) -> str:
        code = code.replace('\r\n', '\n').replace('\r', '\n')
        out = []
        i = 0
        n = len(code)
        while i < n:
            c = code[i]
            quote = STRING_QUOTES.get(c)
            if quote:
                close, interpolate = quote
                end = find_string_end(code, i + 1, close, interpolate)
                if end < 0:
                    # Unterminated; the lexer reports it with a line number
                    out.append(code[i:])
                    break
                out.append(code[i:end + 1])
                i = end + 1
                continue
            out.append(to_half_width(c))
            i += 1
        return ''.join(out)
