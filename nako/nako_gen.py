"""
Translates the parser's AST into Python program text.

Generated code expects these names in its global namespace:

    __env    the ScopeEnvironment (persistent / system / local tiers)
    __vars   the local tier of the code being run
    __self   the owning compiler, passed as the trailing `sys` argument
    __nako   the nako_support helper module
"""

import copy
import importlib
import importlib.util
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

import pystache

from nako.nako_datatypes import Node, NakoGenError
from nako.nako_scope import NAKO_VERSION, VERSION_KEY, LOG_KEY, LINE_KEY

HEADER_TEMPLATE = """\
# Generated by nadesiko for Python {{version}}
import nako.nako_support as __nako
from nako.nako_scope import ScopeEnvironment
__env = ScopeEnvironment()
__vars = __env.local
__self = None
"""

BOOTSTRAP_TEMPLATE = """\
from nako.nako_gen import load_plugin, plugin_default_levels
__env.persistent.update({{markers}})
{{#plugins}}
__l0, __l1 = plugin_default_levels(load_plugin({{path}}, {{name}}))
__env.persistent.update(__l0)
__env.system.update(__l1)
{{/plugins}}
{{#unbound}}
# {{name}}: registered in memory only; bind it into __env before running
{{/unbound}}
"""

DEF_FUNC_TEMPLATE = """\
def {{py_name}}({{args}}):
    __vars = {{local_init}}
{{body}}
    return __vars['それ']
__env.system[{{key}}] = {{py_name}}
"""

_renderer = pystache.Renderer(escape=lambda u: u)

INDENT = '    '


def load_plugin(path: str, obj_name: str) -> Dict[str, Any]:
    """Imports a plugin object from a dotted module path or a .py file path."""
    if path.endswith('.py'):
        mod_name = f"nako_plugin_{Path(path).stem}"
        spec = importlib.util.spec_from_file_location(mod_name, path)
        if spec is None or spec.loader is None:
            raise ImportError(f"cannot load plugin file: {path}")
        module = importlib.util.module_from_spec(spec)
        spec.loader.exec_module(module)
    else:
        module = importlib.import_module(path)
    return getattr(module, obj_name)


def plugin_default_levels(po: Dict[str, Any]) -> Tuple[Dict[str, Any], Dict[str, Any]]:
    """Splits a plugin object into persistent (funcs, consts) and system (vars) bindings."""
    l0: Dict[str, Any] = {}
    l1: Dict[str, Any] = {}
    for key, entry in po.items():
        if entry.get('user'):
            continue
        match entry.get('type'):
            case 'func':
                l0[key] = entry.get('fn')
            case 'const':
                l0[key] = entry.get('value')
            case 'var':
                l1[key] = copy.deepcopy(entry.get('value'))
    return l0, l1


class NakoGen:
    """Code generator and owner of the function catalogue.

    `funclist` is shared by reference with the lexer and parser so that
    user functions pre-registered while tokenizing are visible everywhere.
    """

    def __init__(self, com: Any = None):
        self.com = com
        self.plugins: Dict[str, Dict[str, Any]] = {}
        self.funclist: Dict[str, Dict[str, Any]] = {}
        self.func_defs: Dict[str, str] = {}
        self.func_ids: Dict[str, str] = {}
        self.extra_funcs: Dict[str, Dict[str, Any]] = {}
        self._tmp_id = 0
        self._in_func = False
        self._loop_depth = 0

    def reset(self):
        """Forgets user functions; plugin registrations are kept."""
        self.func_defs = {}
        self.func_ids = {}
        for key in [k for k, v in self.funclist.items() if v.get('user')]:
            del self.funclist[key]
        # User functions may have shadowed plugin entries
        for p in self.plugins.values():
            for key, entry in p['obj'].items():
                self.funclist.setdefault(key, dict(entry))
        for key, entry in self.extra_funcs.items():
            self.funclist.setdefault(key, dict(entry))
        self._tmp_id = 0

    # --- plugin catalogue ---

    def _register_plugin(self, po: Dict[str, Any]):
        # Copies, so set_func never touches the plugin module's own mapping
        for key, entry in po.items():
            self.funclist[key] = dict(entry)

    def add_plugin_object(self, obj_name: str, po: Dict[str, Any]):
        self.plugins[obj_name] = {'path': None, 'obj': po}
        self._register_plugin(po)

    def add_plugin_file(self, obj_name: str, path: str, po: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        if po is None:
            po = load_plugin(path, obj_name)
        self.plugins[obj_name] = {'path': path, 'obj': po}
        self._register_plugin(po)
        return po

    def add_func(self, key: str, josi: List[List[str]], fn: Callable):
        entry = {'type': 'func', 'josi': josi, 'fn': fn}
        self.funclist[key] = entry
        self.extra_funcs[key] = dict(entry)

    def set_func(self, key: str, fn: Callable):
        """Replaces the implementation of a registered plugin function."""
        entry = self.funclist.get(key)
        if entry is None:
            raise NakoGenError(f'関数『{key}』は登録されていません')
        if entry.get('user'):
            # User functions are rebound from their definition on every run
            raise NakoGenError(f'『{key}』は●で定義された関数なので差し替えられません')
        entry['fn'] = fn

    def get_func(self, key: str) -> Optional[Dict[str, Any]]:
        return self.funclist.get(key)

    def get_vars_list(self) -> Tuple[Dict[str, Any], Dict[str, Any]]:
        """Defaults for the persistent and system tiers."""
        l0 = {VERSION_KEY: NAKO_VERSION, LOG_KEY: '', LINE_KEY: -1}
        plugin_l0, l1 = plugin_default_levels(self.funclist)
        l0.update(plugin_l0)
        return l0, l1

    # Name used by the compiler's lazy seeding
    get_default_vars_levels = get_vars_list

    @staticmethod
    def get_header_text() -> str:
        return _renderer.render(HEADER_TEMPLATE, {'version': NAKO_VERSION})

    def get_vars_code(self) -> str:
        """Python text that seeds __env from every plugin registered by module path."""
        markers = {VERSION_KEY: NAKO_VERSION, LOG_KEY: '', LINE_KEY: -1}
        plugins = [{'name': repr(name), 'path': repr(p['path'])}
                   for name, p in self.plugins.items() if p['path']]
        unbound = [{'name': name} for name, p in self.plugins.items() if not p['path']]
        unbound += [{'name': key} for key in self.extra_funcs]
        return _renderer.render(BOOTSTRAP_TEMPLATE, {
            'markers': repr(markers),
            'plugins': plugins,
            'unbound': unbound,
        })

    # --- user functions ---

    def register_function(self, ast: Node):
        defs = [n for n in ast.children if n.type == 'def_func']
        for node in defs:
            self.funclist[node.name] = {
                'type': 'func', 'josi': node.josi_pattern, 'fn': None, 'user': True,
            }
        for node in defs:
            self.func_defs[node.name] = self._gen_def_func(node)

    def get_def_func_code(self) -> str:
        return ''.join(self.func_defs.values())

    get_definitions_text = get_def_func_code

    def _py_func_name(self, name: str) -> str:
        if name not in self.func_ids:
            self.func_ids[name] = f"__nako_fn_{len(self.func_ids)}"
        return self.func_ids[name]

    def _gen_def_func(self, node: Node) -> str:
        params = node.value or []
        args = [f"__a{i}" for i in range(len(params))]
        local_init = "{'それ': None" + ''.join(f", {p!r}: {a}" for p, a in zip(params, args)) + "}"
        saved = (self._in_func, self._loop_depth)
        self._in_func, self._loop_depth = True, 0
        try:
            body = self._gen_block(node.children[0], 1)
        finally:
            self._in_func, self._loop_depth = saved
        py_name = self._py_func_name(node.name)
        return _renderer.render(DEF_FUNC_TEMPLATE, {
            'py_name': py_name,
            'args': ', '.join(args + ['__self']),
            'local_init': local_init,
            'body': '\n'.join(body),
            'key': repr(node.name),
        })

    # --- body ---

    def conv_gen(self, ast: Node) -> str:
        self._in_func = False
        self._loop_depth = 0
        lines = ["__vars.setdefault('それ', None)"]
        for node in ast.children:
            lines.extend(self._gen_stmt(node, 0, top=True))
        return '\n'.join(lines) + '\n'

    convert = conv_gen

    def _new_tmp(self) -> str:
        name = f"__nako_i{self._tmp_id}"
        self._tmp_id += 1
        return name

    def _gen_block(self, block: Optional[Node], indent: int) -> List[str]:
        lines: List[str] = []
        if block is not None:
            for node in block.children:
                lines.extend(self._gen_stmt(node, indent))
        return lines or [INDENT * indent + 'pass']

    def _gen_loop_block(self, block: Node, indent: int) -> List[str]:
        self._loop_depth += 1
        try:
            return self._gen_block(block, indent)
        finally:
            self._loop_depth -= 1

    def _gen_stmt(self, node: Node, indent: int, top: bool = False) -> List[str]:
        pad = INDENT * indent
        if node.type == 'def_func':
            if not top:
                raise NakoGenError('関数の中や制御構文の中で関数は定義できません', node.line)
            # Hoisted into the definitions text
            return []

        lines = [f"{pad}__env.persistent['line'] = {node.line}"]
        match node.type:
            case 'let':
                lines.append(f"{pad}__vars[{node.name!r}] = {self._gen_expr(node.children[0])}")
            case 'stmt':
                lines.append(f"{pad}__vars['それ'] = {self._gen_expr(node.children[0])}")
            case 'if':
                cond, then_block, else_block = node.children
                lines.append(f"{pad}if __nako.to_bool({self._gen_expr(cond)}):")
                lines.extend(self._gen_block(then_block, indent + 1))
                if else_block is not None:
                    lines.append(f"{pad}else:")
                    lines.extend(self._gen_block(else_block, indent + 1))
            case 'repeat':
                count, body = node.children
                i = self._new_tmp()
                lines.append(f"{pad}for {i} in range(__nako.to_int({self._gen_expr(count)})):")
                lines.append(f"{pad}{INDENT}__vars['回数'] = {i} + 1")
                lines.extend(self._gen_loop_block(body, indent + 1))
            case 'for':
                start, end, body = node.children
                i = self._new_tmp()
                lines.append(f"{pad}for {i} in __nako.count_range({self._gen_expr(start)}, {self._gen_expr(end)}):")
                lines.append(f"{pad}{INDENT}__vars[{node.name!r}] = {i}")
                lines.extend(self._gen_loop_block(body, indent + 1))
            case 'return':
                if not self._in_func:
                    raise NakoGenError('関数の外では『戻る』を使えません', node.line)
                value = self._gen_expr(node.children[0]) if node.children else "__vars['それ']"
                lines.append(f"{pad}return {value}")
            case 'break' | 'continue':
                if self._loop_depth == 0:
                    word = '抜ける' if node.type == 'break' else '続ける'
                    raise NakoGenError(f'繰り返しの外では『{word}』を使えません', node.line)
                lines.append(f"{pad}{node.type}")
            case _:
                raise NakoGenError(f'未対応の文です: {node.type}', node.line)
        return lines

    def _gen_expr(self, node: Node) -> str:
        match node.type:
            case 'number' | 'string':
                return repr(node.value)
            case 'word':
                return f"__env.get({node.value!r}, __vars)"
            case 'op':
                left = self._gen_expr(node.children[0])
                right = self._gen_expr(node.children[1])
                op = node.value
                if op == '&':
                    return f"__nako.concat({left}, {right})"
                if op == '=':
                    op = '=='
                elif op == '^':
                    op = '**'
                return f"({left} {op} {right})"
            case 'neg':
                return f"(-{self._gen_expr(node.children[0])})"
            case 'not':
                return f"(not __nako.to_bool({self._gen_expr(node.children[0])}))"
            case 'call':
                args = [self._gen_expr(a) for a in node.children] + ['__self']
                return f"__env.get({node.name!r}, __vars)({', '.join(args)})"
        raise NakoGenError(f'未対応の式です: {node.type}', node.line)
