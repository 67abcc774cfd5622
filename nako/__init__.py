from nako.nako_scope import NAKO_VERSION as __version__
from nako.nako_datatypes import (
    Token, Node,
    NakoError, NakoLexerError, NakoExpandError, NakoSyntaxError, NakoGenError, NakoRuntimeError,
)
from nako.nako_scope import ScopeEnvironment, ScopeManager
from nako.nako_runtime import NakoCompiler, nako_api_function
from nako.plugin_system import PluginSystem
