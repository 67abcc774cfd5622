"""
The three-tier variable environment seen by generated programs.

    persistent (L0)  lives as long as the owning compiler
    system     (L1)  rebuilt on every reset
    local      (L2)  per-run working variables, rebuilt on every reset
"""

from typing import Any, Dict, Optional

NAKO_VERSION = '0.1.0'

VERSION_KEY = 'ナデシコバージョン'
LOG_KEY = '表示ログ'
LINE_KEY = 'line'


class ScopeEnvironment:
    """Named tiers plus a reference to the compiler that owns them."""

    def __init__(self, owner: Any = None):
        self.persistent: Dict[str, Any] = {}
        self.system: Dict[str, Any] = {}
        self.local: Dict[str, Any] = {}
        self.owner = owner

    @property
    def levels(self) -> tuple:
        return (self.persistent, self.system, self.local)

    def find_level(self, name: str, local: Optional[Dict[str, Any]] = None) -> Optional[Dict[str, Any]]:
        """Returns the tier that binds `name`.

        A function frame passed as `local` is searched first; the session's
        local tier (the top level's variables) still comes before system and
        persistent.
        """
        levels = (self.local, self.system, self.persistent)
        if local is not None and local is not self.local:
            levels = (local,) + levels
        for level in levels:
            if name in level:
                return level
        return None

    def get(self, name: str, local: Optional[Dict[str, Any]] = None) -> Any:
        level = self.find_level(name, local)
        if level is None:
            raise NameError(f"『{name}』は定義されていません")
        return level[name]

    def __contains__(self, name: str) -> bool:
        return self.find_level(name) is not None

    def __repr__(self) -> str:
        return (f"<ScopeEnvironment persistent={len(self.persistent)} "
                f"system={len(self.system)} local={len(self.local)}>")


class ScopeManager:
    """Owns the ScopeEnvironment of one compiler instance."""

    def __init__(self, owner: Any = None):
        self.owner = owner
        self.env: Optional[ScopeEnvironment] = None

    @property
    def initialized(self) -> bool:
        return self.env is not None

    def initialize(self):
        """Allocates empty tiers. Runs once, from the first reset."""
        self.env = ScopeEnvironment(owner=self.owner)

    def reset(self):
        # The persistent tier keeps its identity across resets
        if self.env is None:
            self.initialize()
        else:
            self.env.system = {}
            self.env.local = {}
        self.clear_log()

    def has_version_marker(self) -> bool:
        return VERSION_KEY in self.env.persistent

    def materialize_defaults(self, defaults_l0: Dict[str, Any], defaults_l1: Dict[str, Any]):
        """Merges generator-supplied defaults into L0 and L1.

        Callers guard this with has_version_marker(); it is not idempotent
        on its own and would overwrite values a program already changed.
        """
        self.env.persistent.update(defaults_l0)
        self.env.system.update(defaults_l1)

    def current_line(self) -> int:
        return self.env.persistent.get(LINE_KEY, -1)

    def set_current_line(self, line: int):
        self.env.persistent[LINE_KEY] = line

    def clear_log(self):
        self.env.persistent[LOG_KEY] = ''

    def append_log(self, text: str):
        self.env.persistent[LOG_KEY] = self.env.persistent.get(LOG_KEY, '') + text

    @property
    def log(self) -> str:
        return str(self.env.persistent.get(LOG_KEY, '')).rstrip()
