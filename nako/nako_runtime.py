"""
NakoCompiler: turns nadesiko source into Python program text and runs it
against a three-tier scope that persists for the life of the instance.
"""

import inspect
import os
import sys
from typing import Any, Callable, Dict, List, Optional, Tuple

import nako.nako_support as nako_support
from nako.nako_datatypes import Token, Node, NakoRuntimeError
from nako.nako_prepare import NakoPrepare
from nako.nako_lexer import NakoLexer
from nako.nako_parser import NakoParser
from nako.nako_expander import TokenExpander, DEFAULT_MAX_DEPTH
from nako.nako_gen import NakoGen, plugin_default_levels
from nako.nako_interpreter import ProgramEvaluator, PythonEvaluator
from nako.nako_scope import ScopeManager, ScopeEnvironment
from nako.nako_serialize import serialize
from nako.plugin_system import PluginSystem


def nako_api_function(*josi, name: Optional[str] = None):
    """Marks a host method as callable from nadesiko programs.

    Each positional argument is the josi accepted by one parameter, either
    a string or a list of alternatives. The method receives its arguments
    followed by `sys`, the running compiler:

        @nako_api_function('を')
        def 挨拶(self, who, sys): ...
    """
    def decorator(func):
        func._nako_josi = [list(j) if isinstance(j, (list, tuple)) else [j] for j in josi]
        func._nako_name = name
        return func
    return decorator


def plugin_from_host(host: Any) -> Dict[str, Dict[str, Any]]:
    """Builds a plugin object from the @nako_api_function methods of `host`."""
    po: Dict[str, Dict[str, Any]] = {}
    for attr, member in inspect.getmembers(host):
        if not callable(member):
            continue
        # Decorator may mark the bound method or the underlying function
        josi = getattr(member, "_nako_josi", None)
        if josi is None:
            func = getattr(member, "__func__", None)
            if func is not None:
                josi = getattr(func, "_nako_josi", None)
        if josi is None:
            continue
        key = getattr(member, "_nako_name", None) or attr
        po[key] = {'type': 'func', 'josi': josi, 'fn': member}
    return po


def _env_max_expand_depth() -> int:
    try:
        return int(os.environ.get("NAKO_MAX_EXPAND_DEPTH", str(DEFAULT_MAX_DEPTH)))
    except ValueError:
        return DEFAULT_MAX_DEPTH


class NakoCompiler:
    """Pipeline orchestrator and execution engine.

    The preprocessor, lexer and parser hold no per-program state beyond a
    single call and are shared by every instance; the generator, the scope
    and the debug switches belong to each instance.
    """

    _prepare: Optional[NakoPrepare] = None
    _lexer: Optional[NakoLexer] = None
    _parser: Optional[NakoParser] = None

    def __init__(self,
                 debug: Optional[bool] = None,
                 silent: bool = True,
                 max_expand_depth: Optional[int] = None,
                 filename: str = 'inline',
                 evaluator: Optional[ProgramEvaluator] = None):
        self._ensure_collaborators()
        env_debug = bool(os.environ.get("NAKO_DEBUG"))
        self.debug = env_debug if debug is None else bool(debug)
        self.debug_lexer = env_debug
        self.debug_parser = env_debug
        self.debug_code = True
        self.dump_format = 'yaml'
        self.silent = silent
        self.filename = filename
        self.last_program: Optional[str] = None

        depth = _env_max_expand_depth() if max_expand_depth is None else max_expand_depth
        self.expander = TokenExpander(self.tokenize, max_depth=depth)
        self.evaluator = evaluator or PythonEvaluator()
        self.gen = NakoGen(self)
        self.scope = ScopeManager(owner=self)
        self.reset()
        self.add_plugin_file('PluginSystem', 'nako.plugin_system', PluginSystem)

    @classmethod
    def _ensure_collaborators(cls):
        if cls._lexer is None:
            cls._prepare = NakoPrepare()
            cls._lexer = NakoLexer()
            cls._parser = NakoParser()

    # --- configuration ---

    def use_debug(self, flag: bool = True):
        self.debug = bool(flag)

    def set_debug_flags(self,
                        show_generated_code: Optional[bool] = None,
                        show_tokens: Optional[bool] = None,
                        show_ast: Optional[bool] = None,
                        dump_format: Optional[str] = None):
        if show_generated_code is not None:
            self.debug_code = show_generated_code
        if show_tokens is not None:
            self.debug_lexer = show_tokens
        if show_ast is not None:
            self.debug_parser = show_ast
        if dump_format is not None:
            self.dump_format = dump_format

    def _dbg(self, *parts):
        if os.environ.get("NAKO_DEBUG"):
            print("[DBG]", *parts, file=sys.stderr)

    def _debug_dump(self, title: str, text: str):
        print(f"--- {title} ---", file=sys.stderr)
        print(text, file=sys.stderr)

    # --- scope ---

    @property
    def env(self) -> ScopeEnvironment:
        return self.scope.env

    def reset(self):
        """Discards L1, L2 and user functions; L0 keeps its identity."""
        self.scope.reset()
        self.gen.reset()

    def clear_log(self):
        self.scope.clear_log()

    def append_log(self, text: str):
        self.scope.append_log(text)
        if not self.silent:
            print(text, end='')

    @property
    def log(self) -> str:
        return self.scope.log

    def get_scope_snapshot(self) -> Tuple[Dict[str, Any], Dict[str, Any], List[Any]]:
        """The generator's defaults for L0 and L1, plus an empty L2."""
        l0, l1 = self.gen.get_default_vars_levels()
        return l0, l1, []

    def get_scope_bootstrap_text(self) -> str:
        return self.gen.get_vars_code()

    @classmethod
    def get_header_text(cls) -> str:
        return NakoGen.get_header_text()

    # --- pipeline ---

    @classmethod
    def tokenize(cls, code: str, is_first: bool, line: int = 0) -> List[Token]:
        cls._ensure_collaborators()
        return cls._lexer.tokenize(cls._prepare.convert(code), is_first, line)

    def parse(self, code: str) -> Node:
        self._lexer.set_func_list(self.gen.funclist)
        self._parser.set_func_list(self.gen.funclist)
        self._parser.debug = self.debug
        tokens = self.expander.expand(code)
        if self.debug and self.debug_lexer:
            self._debug_dump('lex', serialize(tokens, fmt=self.dump_format))
        ast = self._parser.parse(tokens)
        if self.debug and self.debug_parser:
            self._debug_dump('ast', serialize(ast, fmt=self.dump_format))
        return ast

    def generate(self, ast: Node) -> str:
        self.gen.register_function(ast)
        body = self.gen.convert(ast)
        program = self.gen.get_definitions_text() + body
        if self.debug and self.debug_code:
            self._debug_dump('generate', program)
        return program

    def compile(self, code: str) -> str:
        return self.generate(self.parse(code))

    def _namespace(self) -> Dict[str, Any]:
        env = self.scope.env
        return {
            '__env': env,
            '__vars': env.local,
            '__self': self,
            '__nako': nako_support,
        }

    def _run(self, code: str, is_reset: bool) -> 'NakoCompiler':
        if is_reset:
            self.reset()
        if not self.scope.has_version_marker():
            self._dbg("materialize defaults")
            self.scope.materialize_defaults(*self.gen.get_default_vars_levels())
        program = self.compile(code)
        # A nested run (ナデシコする) must hand the caller's line back
        outer_line = self.scope.current_line()
        self.scope.set_current_line(-1)
        try:
            self.evaluator.evaluate(program, self._namespace(), self.filename)
        except NakoRuntimeError:
            # Already attributed by the run that raised it
            self.last_program = program
            raise
        except Exception as e:
            self.last_program = program
            line = self.scope.current_line()
            self._dbg("runtime error", type(e).__name__, "line", line)
            raise NakoRuntimeError(f"{type(e).__name__}:{e}", line, original=e) from e
        finally:
            self.scope.set_current_line(outer_line)
        return self

    def run(self, code: str) -> 'NakoCompiler':
        """Runs `code` in the current session, keeping L1 and L2."""
        return self._run(code, False)

    def run_reset(self, code: str) -> 'NakoCompiler':
        """Resets the session, then runs `code`."""
        return self._run(code, True)

    # --- plugins ---

    def _push_live(self, keys):
        # Only after lazy seeding; before it, the defaults carry these entries
        if not self.scope.initialized or not self.scope.has_version_marker():
            return
        po = {k: self.gen.funclist[k] for k in keys if k in self.gen.funclist}
        l0, l1 = plugin_default_levels(po)
        self.env.persistent.update(l0)
        self.env.system.update(l1)

    def add_plugin_object(self, name: str, po: Dict[str, Any]):
        self.gen.add_plugin_object(name, po)
        self._push_live(po.keys())

    def add_plugin_file(self, obj_name: str, path: str, po: Optional[Dict[str, Any]] = None):
        po = self.gen.add_plugin_file(obj_name, path, po)
        self._push_live(po.keys())

    def add_plugin_host(self, name: str, host: Any):
        self.add_plugin_object(name, plugin_from_host(host))

    def add_func(self, key: str, josi: List[List[str]], fn: Callable):
        self.gen.add_func(key, josi, fn)
        self._push_live([key])

    def set_func(self, key: str, fn: Callable):
        self.gen.set_func(key, fn)
        self._push_live([key])

    def get_func(self, key: str) -> Optional[Dict[str, Any]]:
        return self.gen.get_func(key)
