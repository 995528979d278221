from dataclasses import dataclass, field
import typing as tp
from enum import Enum

from py_util import *
from py_tokenizer import SourceLocation

class DiagnosticKind(str,Enum):
    PARSE_FAILURE="parse-failure"
    " malformed #define, reported by the extractor "
    ARGUMENT_COUNT_MISMATCH="argument-count-mismatch"
    CIRCULAR_REFERENCE="circular-reference"
    MAX_DEPTH_EXCEEDED="max-depth-exceeded"

    UNDEFINED_IDENTIFIER="undefined-identifier"
    REDEFINITION="redefinition"

ERROR_KINDS=frozenset([
    DiagnosticKind.PARSE_FAILURE,
    DiagnosticKind.ARGUMENT_COUNT_MISMATCH,
    DiagnosticKind.CIRCULAR_REFERENCE,
    DiagnosticKind.MAX_DEPTH_EXCEEDED,
])
" kinds that make an expansion erroneous, the others are informational "

@dataclass
class Diagnostic:
    kind:DiagnosticKind
    message:str

    macro:str|None=None
    " macro the diagnostic is about, if any "
    src_loc:SourceLocation|None=None

    chain:list[str]=field(default_factory=list)
    " expansion chain of a circular reference, in discovery order "
    suggestions:list[str]=field(default_factory=list)
    " similarly spelled names for an undefined identifier "

    @property
    def is_error(self)->bool:
        return self.kind in ERROR_KINDS

    def located(self,src_loc:SourceLocation)->"Diagnostic":
        " return a copy of this diagnostic attached to src_loc "
        return Diagnostic(self.kind,self.message,self.macro,src_loc,list(self.chain),list(self.suggestions))

    def describe(self)->str:
        ret=self.message
        if len(self.suggestions)>0:
            ret+=f" (did you mean {', '.join(repr(s) for s in self.suggestions)}?)"
        return ret

    @tp.override
    def __str__(self):
        if self.src_loc is not None:
            return f"{self.src_loc}: {self.describe()}"
        return self.describe()

    def colored(self)->str:
        color=RED if self.is_error else ORANGE
        severity="error" if self.is_error else "note"
        location=f"{LIGHT_GRAY}{self.src_loc}:{RESET} " if self.src_loc is not None else ""
        return f"{location}{color}{severity}:{RESET} {self.describe()}"
