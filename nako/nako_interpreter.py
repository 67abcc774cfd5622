"""
Runs generated program text.

The compiler only depends on ProgramEvaluator; PythonEvaluator is the
default and executes the text as Python source.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict


class ProgramEvaluator(ABC):
    """Executes program text against a namespace holding __env, __vars, __self and __nako."""

    @abstractmethod
    def evaluate(self, program: str, namespace: Dict[str, Any], filename: str = 'inline') -> None:
        ...


class PythonEvaluator(ProgramEvaluator):
    def evaluate(self, program: str, namespace: Dict[str, Any], filename: str = 'inline') -> None:
        code = compile(program, f'<nako:{filename}>', 'exec')
        exec(code, namespace)
