from dataclasses import dataclass, field
import typing as tp
from enum import Enum

from py_util import *
from py_tokenizer import SourceLocation
from py_diagnostics import *

class MacroKind(str,Enum):
    OBJECT_LIKE="object-like"
    FUNCTION_LIKE="function-like"

@dataclass(frozen=True)
class MacroDefinition:
    name:str
    kind:MacroKind
    body:str
    " unexpanded replacement text, comments stripped and whitespace runs collapsed "
    src_loc:SourceLocation=field(default_factory=SourceLocation.placeholder,compare=False)

    params:tuple[str,...]=()
    " parameter names in order, a trailing ... is bound as __VA_ARGS__ "
    is_variadic:bool=False

    @property
    def is_function_like(self)->bool:
        return self.kind==MacroKind.FUNCTION_LIKE

    @property
    def file(self)->str:
        return self.src_loc.filename

    @property
    def line(self)->int:
        " 1-based line of the #define "
        return self.src_loc.line+1

    @property
    def variadic_param(self)->str|None:
        if not self.is_variadic:
            return None
        return self.params[-1]

    @property
    def fixed_param_count(self)->int:
        if self.is_variadic:
            return len(self.params)-1
        return len(self.params)

    def param_for_argument(self,index:int)->str|None:
        " parameter receiving the argument at index, None for a surplus argument "
        if index<self.fixed_param_count:
            return self.params[index]
        if self.is_variadic:
            return self.params[-1]
        return None

    def signature(self)->str:
        if not self.is_function_like:
            return self.name

        params=list(self.params)
        if self.is_variadic:
            if params[-1]==MACRO_VARARG_ARGNAME:
                params[-1]="..."
            else:
                params[-1]+="..."

        return f"{self.name}({', '.join(params)})"

    @tp.override
    def __str__(self):
        if len(self.body)==0:
            return f"#define {self.signature()}"
        return f"#define {self.signature()} {self.body}"

class MacroTable:
    """
    in-memory table of macro definitions and known type names

    a name keeps every definition seen for it, in load order. the active definition is the
    most recent one unless it has been overridden with select().
    """

    def __init__(self):
        self.definitions:dict[str,list[MacroDefinition]]={}
        self.type_names:dict[str,set[str]]={}
        " known type name -> files declaring it "
        self.diagnostics:list[Diagnostic]=[]
        " parse diagnostics of all loaded files "
        self.selected:dict[str,int]={}

    def __len__(self)->int:
        return sum(len(defs) for defs in self.definitions.values())

    def __contains__(self,name:str)->bool:
        return self.is_defined(name)

    def add(self,definition:MacroDefinition):
        self.definitions.setdefault(definition.name,[]).append(definition)

    def add_type_name(self,name:str,filename:str=""):
        self.type_names.setdefault(name,set()).add(filename)

    def add_diagnostic(self,diagnostic:Diagnostic):
        self.diagnostics.append(diagnostic)

    def load(self,extraction:"Extraction"):
        " add everything extracted from one file, replacing what was previously loaded from it "
        self.remove_file(extraction.filename)

        for definition in extraction.definitions:
            self.add(definition)
        for name in extraction.type_names:
            self.add_type_name(name,extraction.filename)
        for diagnostic in extraction.diagnostics:
            self.add_diagnostic(diagnostic)

    def remove_file(self,filename:str):
        " forget all definitions, type names and diagnostics that came from filename "
        for name in list(self.definitions.keys()):
            remaining=[d for d in self.definitions[name] if d.file!=filename]
            if len(remaining)==len(self.definitions[name]):
                continue

            if len(remaining)==0:
                del self.definitions[name]
            else:
                self.definitions[name]=remaining

            # index no longer refers to the same definition
            self.selected.pop(name,None)

        for name in list(self.type_names.keys()):
            self.type_names[name].discard(filename)
            if len(self.type_names[name])==0:
                del self.type_names[name]

        self.diagnostics=[d for d in self.diagnostics if d.src_loc is None or d.src_loc.filename!=filename]

    def lookup(self,name:str)->list[MacroDefinition]:
        " all definitions of name, oldest first, empty if undefined "
        return list(self.definitions.get(name,[]))

    def active(self,name:str)->MacroDefinition|None:
        definitions=self.definitions.get(name)
        if not definitions:
            return None

        return definitions[self.selected.get(name,-1)]

    def select(self,name:str,index:int):
        " make definition number index (as ordered by lookup) the active one "
        definitions=self.definitions.get(name)
        if not definitions:
            raise KeyError(f"macro '{name}' is not defined")
        if not -len(definitions)<=index<len(definitions):
            raise IndexError(f"macro '{name}' has {len(definitions)} definition(s), cannot select {index}")

        self.selected[name]=index

    def clear_selection(self,name:str):
        self.selected.pop(name,None)

    def is_defined(self,name:str)->bool:
        return name in self.definitions

    def is_known_type(self,name:str)->bool:
        return name in self.type_names

    def names(self)->set[str]:
        return set(self.definitions.keys())

    def parse_failures(self,name:str,definition:MacroDefinition|None=None)->list[Diagnostic]:
        " parse failures reported for name, only those of the #define of definition if given "
        ret=[d for d in self.diagnostics if d.kind==DiagnosticKind.PARSE_FAILURE and d.macro==name]
        if definition is None:
            return ret

        # a malformed redefinition elsewhere does not affect this one
        src_loc=definition.src_loc
        return [d for d in ret if d.src_loc is not None and d.src_loc.filename==src_loc.filename and d.src_loc.line==src_loc.line]

    def redefinitions(self)->dict[str,list[MacroDefinition]]:
        " names with more than one definition "
        return {name:list(defs) for name,defs in self.definitions.items() if len(defs)>1}

    def redefinition_diagnostic(self,name:str)->Diagnostic|None:
        definitions=self.definitions.get(name,[])
        if len(definitions)<2:
            return None

        locations=", ".join(f"{d.file}:{d.line}" for d in definitions)
        return Diagnostic(
            DiagnosticKind.REDEFINITION,
            f"Macro '{name}' has {len(definitions)} definitions ({locations})",
            macro=name,
        )

if tp.TYPE_CHECKING:
    from py_extractor import Extraction
