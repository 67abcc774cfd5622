"""
Built-in functions and constants available to every program.

Each function takes its josi arguments followed by `sys`, the running
compiler, which is None when generated text runs standalone.
"""

import math

from nako.nako_support import to_str, to_int


def _display(s, sys):
    text = to_str(s)
    if sys is None:
        print(text)
        return None
    sys.append_log(text + '\n')
    return None


def _clear_log(sys):
    if sys is not None:
        sys.clear_log()


def _nadesiko(code, sys):
    # Runs against the caller's scope; L2 is shared with the outer program
    sys.run(to_str(code))
    return sys.log


PluginSystem = {
    # Constants
    'はい': {'type': 'const', 'value': True},
    'いいえ': {'type': 'const', 'value': False},
    '改行': {'type': 'const', 'value': '\n'},
    'タブ': {'type': 'const', 'value': '\t'},
    '空': {'type': 'const', 'value': ''},
    'PI': {'type': 'const', 'value': math.pi},

    # Output
    '表示': {'type': 'func', 'josi': [['を', 'と']], 'fn': _display},
    '表示ログクリア': {'type': 'func', 'josi': [], 'fn': _clear_log},

    # Arithmetic
    '足す': {'type': 'func', 'josi': [['に', 'と'], ['を']], 'fn': lambda a, b, sys: a + b},
    '引く': {'type': 'func', 'josi': [['から'], ['を']], 'fn': lambda a, b, sys: a - b},
    '掛ける': {'type': 'func', 'josi': [['に', 'と'], ['を']], 'fn': lambda a, b, sys: a * b},
    '割る': {'type': 'func', 'josi': [['を'], ['で']], 'fn': lambda a, b, sys: a / b},

    # Strings
    '連結': {'type': 'func', 'josi': [['と'], ['を']], 'fn': lambda a, b, sys: to_str(a) + to_str(b)},
    '文字数': {'type': 'func', 'josi': [['の']], 'fn': lambda s, sys: len(to_str(s))},
    '整数変換': {'type': 'func', 'josi': [['を']], 'fn': lambda v, sys: to_int(v)},
    '文字列変換': {'type': 'func', 'josi': [['を']], 'fn': lambda v, sys: to_str(v)},

    # Evaluation
    'ナデシコする': {'type': 'func', 'josi': [['を', 'で']], 'fn': _nadesiko},
}
