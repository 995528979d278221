from dataclasses import dataclass, field
import typing as tp
from enum import Enum
import functools

from py_util import *
from py_tokenizer import *
from py_diagnostics import *
from py_macro_table import *
from py_parens import normalize
from py_suggest import suggest, MAX_SUGGESTIONS

class ExpansionMode(str,Enum):
    SINGLE_MACRO="single-macro"
    " innermost invocation first, one macro per step "
    SINGLE_LAYER="single-layer"
    " all invocations of the deepest nesting level in one pass "

MIN_MAX_DEPTH=5
MAX_MAX_DEPTH=100
DEFAULT_MAX_DEPTH=30

@dataclass
class ExpansionConfig:
    mode:ExpansionMode=ExpansionMode.SINGLE_LAYER
    max_depth:int=DEFAULT_MAX_DEPTH
    " number of rescan passes after which expansion is cut off "
    strip_parens:bool=False
    " remove redundant parentheses from the final text "

    def __post_init__(self):
        self.mode=ExpansionMode(self.mode)

        if isinstance(self.max_depth,bool) or not isinstance(self.max_depth,int):
            raise ValueError(f"max_depth must be an integer, got {self.max_depth!r}")
        if not MIN_MAX_DEPTH<=self.max_depth<=MAX_MAX_DEPTH:
            raise ValueError(f"max_depth must be between {MIN_MAX_DEPTH} and {MAX_MAX_DEPTH}, got {self.max_depth}")

    @staticmethod
    def from_args(args:dict)->"ExpansionConfig":
        " build from the values returned by the command line parser "
        return ExpansionConfig(
            mode=args.get("mode") or ExpansionMode.SINGLE_LAYER,
            max_depth=args.get("max_depth") or DEFAULT_MAX_DEPTH,
            strip_parens=bool(args.get("strip_parens")),
        )

@dataclass
class ExpansionStep:
    depth:int
    macro:str
    before:str
    " invocation text that was replaced "
    after:str
    " replacement text "

    @tp.override
    def __str__(self):
        return f"{self.before} -> {self.after}"

@dataclass
class ExpansionResult:
    final_text:str
    steps:list[ExpansionStep]=field(default_factory=list)
    undefined_macros:set[str]=field(default_factory=set)
    concatenated_tokens:dict[str,str]=field(default_factory=dict)
    " token produced by ## -> macro whose body pasted it "
    diagnostics:list[Diagnostic]=field(default_factory=list)

    @property
    def errors(self)->list[Diagnostic]:
        return [d for d in self.diagnostics if d.is_error]

    @property
    def has_errors(self)->bool:
        return len(self.errors)>0

    @property
    def error_message(self)->str|None:
        errors=self.errors
        if len(errors)==0:
            return None
        return "\n".join(d.describe() for d in errors)

    def describe(self)->list[str]:
        " one line per step, indented by step depth "
        return [f"{'  '*step.depth}{step.macro}: {step.before} -> {step.after}" for step in self.steps]

@dataclass
class Invocation:
    definition:MacroDefinition
    name_token:Token
    start:int
    end:int
    " index after the last token of the invocation (the closing paren for function-like macros) "
    nesting:int
    " parenthesis nesting level of the macro name "

    args:list[list[Token]]|None=None
    arg_spans:list[tuple[int,int]]=field(default_factory=list)

    @property
    def name(self)->str:
        return self.definition.name

def find_invocations(tokens:list[Token],table:MacroTable)->list[Invocation]:
    """
    find all macro invocations in tokens, including those nested in arguments of other invocations

    a function-like macro name that is not followed by an argument list is not an invocation.
    """

    invocations:list[Invocation]=[]

    nesting=0
    for i,tok in enumerate(tokens):
        if is_punct(tok,"("):
            nesting+=1
            continue
        if is_punct(tok,")"):
            nesting=max(0,nesting-1)
            continue

        if tok.token_type!=TokenType.SYMBOL:
            continue

        definition=table.active(tok.s)
        if definition is None:
            continue

        if not definition.is_function_like:
            invocations.append(Invocation(definition,tok,i,i+1,nesting))
            continue

        open_index=next_significant(tokens,i+1)
        if open_index is None or not is_punct(tokens[open_index],"("):
            continue

        close_index=find_matching_paren(tokens,open_index)
        if close_index is None:
            continue

        args,arg_spans=split_arguments(tokens,open_index,close_index)
        invocations.append(Invocation(definition,tok,i,close_index+1,nesting,args,arg_spans))

    return invocations

@functools.lru_cache(maxsize=4096)
def param_usage(definition:MacroDefinition)->tuple[frozenset[str],frozenset[str]]:
    " parameters used as operand of # or ##, and parameters used anywhere else in the body "
    if not definition.is_function_like:
        return frozenset(),frozenset()

    body=tokenize(definition.body)
    params=set(definition.params)
    raw:set[str]=set()
    plain:set[str]=set()
    for i,tok in enumerate(body):
        if tok.token_type!=TokenType.SYMBOL or tok.s not in params:
            continue

        prev_index=prev_significant(body,i-1)
        next_index=next_significant(body,i+1)
        follows_operator=prev_index is not None and (is_punct(body[prev_index],"#") or is_punct(body[prev_index],"##"))
        precedes_operator=next_index is not None and is_punct(body[next_index],"##")
        if follows_operator or precedes_operator:
            raw.add(tok.s)
        else:
            plain.add(tok.s)

    return frozenset(raw),frozenset(plain)

def stringify(arg:list[Token])->Token:
    " the # operator: spell the unexpanded argument as a string literal "
    parts:list[str]=[]
    for tok in arg:
        if tok.is_whitespace:
            if len(parts)>0 and parts[-1]!=" ":
                parts.append(" ")
            continue
        if tok.token_type==TokenType.PLACEMARKER:
            continue

        if tok.is_literal:
            parts.append(tok.s.replace("\\","\\\\").replace('"','\\"'))
        else:
            parts.append(tok.s)

    return Token('"'+"".join(parts).strip()+'"',token_type=TokenType.LITERAL_STRING)

def placemarker()->Token:
    return Token("",token_type=TokenType.PLACEMARKER)

class Expansion:
    """
    state of a single expansion request

    tokens remember which macros produced them, that chain serves as the call stack for
    cycle detection. the depth counter advances once per rescan pass.
    """

    def __init__(self,table:MacroTable,config:ExpansionConfig,symbol_names:tp.Iterable[str]=()):
        self.table=table
        self.config=config
        self.symbol_names=set(symbol_names)

        self.steps:list[ExpansionStep]=[]
        self.diagnostics:list[Diagnostic]=[]
        self.undefined_macros:set[str]=set()
        self.concatenated_tokens:dict[str,str]={}

        self.depth=0
        self.cut_off=False
        self.last_expanded:str|None=None
        self.invoked_macros:set[str]=set()
        self.unbound_params:set[str]=set()

        self.reported_cycles:set[tuple[str,...]]=set()
        self.reported_parse_failures:set[str]=set()

    def run(self,name:str,args:list[str]|None)->ExpansionResult:
        definition=self.table.active(name)
        if definition is None:
            if not is_builtin_identifier(name) and not self.table.is_known_type(name):
                self.report_undefined(name)
            return self.result(tokenize(name))

        if definition.is_function_like and args is None:
            tokens=self.expand_unbound(definition)
        elif args is None:
            tokens=tokenize(name)
        else:
            tokens=tokenize(f"{name}({', '.join(args)})")

        tokens=self.rescan(tokens)
        return self.result(tokens)

    def expand_unbound(self,definition:MacroDefinition)->list[Token]:
        " expand a function-like macro asked for without arguments, each parameter standing for itself "
        self.surface_parse_failures(definition)

        self.unbound_params=set(definition.params)
        bindings={param:[Token(param,blocked=True)] for param in definition.params}
        replacement=self.substitute(definition,bindings,[definition.name],set())

        self.steps.append(ExpansionStep(self.depth,definition.name,definition.signature(),tokens_into_str(replacement).strip()))
        self.invoked_macros.add(definition.name)
        self.last_expanded=definition.name
        self.depth+=1

        return replacement

    def rescan(self,tokens:list[Token])->list[Token]:
        " expand invocations until none are left, or the depth limit cuts expansion off "
        while not self.cut_off:
            candidates=self.candidates(tokens)
            if len(candidates)==0:
                break

            if self.depth>=self.config.max_depth:
                self.report_depth_exceeded(candidates[0])
                break

            depth=self.depth
            self.depth+=1

            # replacements are computed left to right, so steps appear in reading order
            replacements=[(invocation,self.apply(invocation,tokens,depth)) for invocation in self.select(candidates)]
            for invocation,replacement in reversed(replacements):
                tokens=tokens[:invocation.start]+replacement+tokens[invocation.end:]

        return tokens

    def candidates(self,tokens:list[Token])->list[Invocation]:
        " invocations that may be expanded now, in order of appearance "
        invocations=find_invocations(tokens,self.table)

        # arguments that are stringified, pasted or dropped must stay as written
        frozen:list[tuple[int,int]]=[]
        for invocation in invocations:
            if invocation.name_token.blocked or self.is_cycle(invocation.name_token):
                continue
            frozen.extend(self.frozen_spans(invocation))

        ret:list[Invocation]=[]
        for invocation in invocations:
            tok=invocation.name_token
            if tok.blocked:
                continue
            if any(start<=invocation.start<end for start,end in frozen):
                continue

            if self.is_cycle(tok):
                self.report_cycle(tok)
                tok.blocked=True
                continue

            ret.append(invocation)

        return ret

    def frozen_spans(self,invocation:Invocation)->list[tuple[int,int]]:
        if invocation.args is None:
            return []

        raw,plain=param_usage(invocation.definition)
        spans:list[tuple[int,int]]=[]
        for index,span in enumerate(invocation.arg_spans):
            param=invocation.definition.param_for_argument(index)
            if param is None or param in raw or param not in plain:
                spans.append(span)

        return spans

    def select(self,candidates:list[Invocation])->list[Invocation]:
        deepest=max(invocation.nesting for invocation in candidates)
        innermost=[invocation for invocation in candidates if invocation.nesting==deepest]

        match self.config.mode:
            case ExpansionMode.SINGLE_MACRO:
                return innermost[:1]
            case ExpansionMode.SINGLE_LAYER:
                return innermost
            case _other:
                raise ValueError(f"unknown expansion mode {_other}")

    @staticmethod
    def is_cycle(tok:Token)->bool:
        return tok.is_expanded_from(tok.s)

    def apply(self,invocation:Invocation,tokens:list[Token],depth:int)->list[Token]:
        " expand a single invocation and record the step "
        definition=invocation.definition
        self.surface_parse_failures(definition)

        chain=list(invocation.name_token.expanded_from_macros or [])+[definition.name]

        bindings:dict[str,list[Token]]={}
        expand_params:set[str]=set()
        if invocation.args is not None:
            bindings=self.bind_arguments(invocation)
            raw,plain=param_usage(definition)
            expand_params=set(raw&plain)

        # the step shows arguments as written, the steps expanding them follow it
        shown=self.substitute(definition,bindings,chain,set())
        before=tokens_into_str(tokens[invocation.start:invocation.end])
        self.steps.append(ExpansionStep(depth,definition.name,before,tokens_into_str(shown).strip()))
        self.invoked_macros.add(definition.name)
        self.last_expanded=definition.name

        if len(expand_params)==0:
            return shown

        return self.substitute(definition,bindings,chain,expand_params)

    def bind_arguments(self,invocation:Invocation)->dict[str,list[Token]]:
        " map parameter names to argument tokens, reporting an argument count mismatch "
        definition=invocation.definition
        args=invocation.args
        assert args is not None

        # F() passes a single empty argument, which a macro without parameters accepts
        if len(definition.params)==0 and len(args)==1 and len(args[0])==0:
            args=[]

        fixed=definition.fixed_param_count
        if definition.is_variadic:
            if len(args)<fixed:
                self.report_argument_count(definition,len(args))
        elif len(args)!=len(definition.params):
            self.report_argument_count(definition,len(args))

        bindings:dict[str,list[Token]]={}
        for index,param in enumerate(definition.params):
            if param==definition.variadic_param:
                bindings[param]=self.join_arguments(args[fixed:])
            elif index<len(args):
                bindings[param]=args[index]
            else:
                bindings[param]=[]

        return bindings

    @staticmethod
    def join_arguments(args:list[list[Token]])->list[Token]:
        " the arguments absorbed by the variadic parameter, commas included "
        ret:list[Token]=[]
        for index,arg in enumerate(args):
            if index>0:
                ret.append(Token(",",token_type=TokenType.OPERATOR_PUNCTUATION))
                ret.append(Token(" ",token_type=TokenType.WHITESPACE))
            ret.extend(arg)

        return ret

    def substitute(self,definition:MacroDefinition,bindings:dict[str,list[Token]],chain:list[str],expand_params:set[str])->list[Token]:
        """
        replace parameters in the body of definition

        expand_params holds parameters whose argument was left unexpanded for # or ## but that
        are also used plainly, their argument is expanded here once per plain use, each use
        recording its own steps.
        """

        body=tokenize(definition.body)
        out:list[Token]=[]

        i=0
        while i<len(body):
            tok=body[i]

            if is_punct(tok,"##"):
                i=self.paste(definition,body,i,out,bindings)
                continue

            if is_punct(tok,"#") and definition.is_function_like:
                param_index=next_significant(body,i+1)
                if param_index is not None and body[param_index].token_type==TokenType.SYMBOL and body[param_index].s in bindings:
                    out.append(stringify(bindings[body[param_index].s]))
                    i=param_index+1
                    continue

            if tok.token_type==TokenType.SYMBOL and tok.s in bindings:
                arg=bindings[tok.s]
                next_index=next_significant(body,i+1)
                if next_index is not None and is_punct(body[next_index],"##"):
                    if len(arg)==0:
                        out.append(placemarker())
                    else:
                        out.extend(t.copy() for t in arg)
                elif tok.s in expand_params:
                    out.extend(self.rescan([t.copy() for t in arg]))
                else:
                    out.extend(t.copy() for t in arg)

                i+=1
                continue

            out.append(tok)
            i+=1

        ret:list[Token]=[]
        for tok in out:
            if tok.token_type==TokenType.PLACEMARKER:
                continue
            tok.expand_from(chain)
            ret.append(tok)

        return ret

    def paste(self,definition:MacroDefinition,body:list[Token],index:int,out:list[Token],bindings:dict[str,list[Token]])->int:
        " the ## operator at body[index], glues the last emitted token to the next one. returns the index to continue at "
        while len(out)>0 and out[-1].is_whitespace:
            out.pop()
        lhs=out.pop() if len(out)>0 else None

        rhs:list[Token]=[]
        rhs_param:str|None=None
        next_index=len(body)

        rhs_index=next_significant(body,index+1)
        if rhs_index is not None:
            rhs_tok=body[rhs_index]
            next_index=rhs_index+1

            stringified_index=next_significant(body,rhs_index+1) if is_punct(rhs_tok,"#") else None
            if rhs_tok.token_type==TokenType.SYMBOL and rhs_tok.s in bindings:
                rhs_param=rhs_tok.s
                rhs=[t.copy() for t in bindings[rhs_tok.s]]
            elif definition.is_function_like and stringified_index is not None and body[stringified_index].s in bindings:
                rhs=[stringify(bindings[body[stringified_index].s])]
                next_index=stringified_index+1
            else:
                rhs=[rhs_tok]

        # , ## __VA_ARGS__ drops the comma when there are no variadic arguments
        if lhs is not None and is_punct(lhs,",") and rhs_param is not None and rhs_param==definition.variadic_param:
            if len(rhs)>0:
                out.append(lhs)
                out.extend(rhs)
            return next_index

        if lhs is None or lhs.token_type==TokenType.PLACEMARKER:
            if len(rhs)==0:
                out.append(placemarker())
            else:
                out.extend(rhs)
        elif len(rhs)==0:
            out.append(lhs)
        else:
            out.append(self.paste_tokens(lhs,rhs[0],definition.name))
            out.extend(rhs[1:])

        return next_index

    def paste_tokens(self,lhs:Token,rhs:Token,macro_name:str)->Token:
        s=lhs.s+rhs.s

        # the glued text is one token if it lexes as one, otherwise it keeps the type of its left part
        relexed=tokenize(s)
        token_type=relexed[0].token_type if len(relexed)==1 else lhs.token_type

        self.concatenated_tokens[s]=macro_name
        return Token(s,src_loc=lhs.src_loc,token_type=token_type)

    def surface_parse_failures(self,definition:MacroDefinition):
        if definition.name in self.reported_parse_failures:
            return
        self.reported_parse_failures.add(definition.name)

        for diagnostic in self.table.parse_failures(definition.name,definition):
            self.diagnostics.append(diagnostic)

    def report_argument_count(self,definition:MacroDefinition,num_provided:int):
        fixed=definition.fixed_param_count
        if definition.is_variadic:
            expected=f"at least {fixed} argument(s)"
        else:
            expected=f"exactly {fixed} argument(s)"

        self.diagnostics.append(Diagnostic(
            DiagnosticKind.ARGUMENT_COUNT_MISMATCH,
            f"Macro '{definition.name}' requires {expected}, but {num_provided} provided",
            macro=definition.name,
        ))

    def report_cycle(self,tok:Token):
        chain=list(tok.expanded_from_macros or [])+[tok.s]
        if tuple(chain) in self.reported_cycles:
            return
        self.reported_cycles.add(tuple(chain))

        self.diagnostics.append(Diagnostic(
            DiagnosticKind.CIRCULAR_REFERENCE,
            f"Circular macro reference detected: {' -> '.join(chain)}",
            macro=tok.s,
            chain=chain,
        ))

    def report_depth_exceeded(self,pending:Invocation):
        self.cut_off=True

        last=self.last_expanded or pending.name
        self.diagnostics.append(Diagnostic(
            DiagnosticKind.MAX_DEPTH_EXCEEDED,
            f"Maximum expansion depth ({self.config.max_depth}) exceeded at macro '{last}', '{pending.name}' was left unexpanded",
            macro=last,
        ))

    def report_undefined(self,name:str):
        if name in self.undefined_macros:
            return
        self.undefined_macros.add(name)

        suggestions=suggest(name,self.table.names()|self.symbol_names,limit=MAX_SUGGESTIONS)
        self.diagnostics.append(Diagnostic(
            DiagnosticKind.UNDEFINED_IDENTIFIER,
            f"Undefined macro or identifier '{name}'",
            macro=name,
            suggestions=suggestions,
        ))

    def result(self,tokens:list[Token])->ExpansionResult:
        # identifiers that look like macros but resolve to nothing
        for tok in tokens:
            if tok.token_type!=TokenType.SYMBOL or not looks_like_macro(tok.s):
                continue
            if tok.s in self.invoked_macros or tok.s in self.unbound_params:
                continue
            if self.table.is_defined(tok.s) or self.table.is_known_type(tok.s) or is_builtin_identifier(tok.s):
                continue

            self.report_undefined(tok.s)

        final_text=tokens_into_str(tokens).strip()
        if self.config.strip_parens:
            final_text=normalize(final_text)

        return ExpansionResult(
            final_text=final_text,
            steps=self.steps,
            undefined_macros=self.undefined_macros,
            concatenated_tokens=self.concatenated_tokens,
            diagnostics=self.diagnostics,
        )

def expand(
    name:str,
    args:list[str]|None,
    table:MacroTable,
    config:ExpansionConfig|None=None,
    symbol_names:tp.Iterable[str]=(),
)->ExpansionResult:
    """
    expand the macro name, invoked with args (raw argument texts), or without an argument list if args is None

    symbol_names are extra names offered as suggestions for undefined identifiers.
    """
    return Expansion(table,config or ExpansionConfig(),symbol_names).run(name,args)

def parse_invocation(text:str)->tuple[str,list[str]|None]:
    " split a call such as 'ADD(1, (2, 3))' into name and raw argument texts "
    tokens=tokenize(text)

    name_index=next_significant(tokens,0)
    if name_index is None or tokens[name_index].token_type!=TokenType.SYMBOL:
        raise ValueError(f"expected a macro name in '{text}'")
    name=tokens[name_index].s

    open_index=next_significant(tokens,name_index+1)
    if open_index is None:
        return name,None
    if not is_punct(tokens[open_index],"("):
        raise ValueError(f"expected ( after '{name}' in '{text}'")

    close_index=find_matching_paren(tokens,open_index)
    if close_index is None:
        raise ValueError(f"unbalanced parentheses in '{text}'")
    if next_significant(tokens,close_index+1) is not None:
        raise ValueError(f"unexpected text after the argument list in '{text}'")

    args,_=split_arguments(tokens,open_index,close_index)
    return name,[tokens_into_str(arg) for arg in args]
