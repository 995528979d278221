import typing as tp

from py_util import *
from py_tokenizer import *
from py_diagnostics import *
from py_macro_table import *
from py_extractor import Extractor
from py_expander import *
from py_suggest import suggest, MAX_SUGGESTIONS

def check_source(
    source:str,
    filename:str,
    table:MacroTable,
    config:ExpansionConfig|None=None,
    symbol_names:tp.Iterable[str]=(),
)->list[Diagnostic]:
    """
    diagnose macro use in the code of one source file (directives and comments excluded)

    reports argument count mismatches, undefined uppercase identifiers, macros with several
    definitions, and the errors of expanding each distinct invocation.
    """

    config=config or ExpansionConfig()
    symbol_names=set(symbol_names)

    code_lines=Extractor(source,filename).code_lines()
    tokens=tokenize("\n".join(line.s for line in code_lines),filename)

    def loc(tok:Token)->SourceLocation:
        # tokens count logical lines, map back to the physical line each one starts on
        return SourceLocation(filename,code_lines[tok.src_loc.line].line,tok.src_loc.col)

    diagnostics:list[Diagnostic]=[]
    reported_undefined:set[str]=set()
    reported_redefinitions:set[str]=set()
    expanded_calls:set[str]=set()

    local_names=declared_names(tokens)

    invocations={invocation.start:invocation for invocation in find_invocations(tokens,table)}
    for i,tok in enumerate(tokens):
        if tok.token_type!=TokenType.SYMBOL:
            continue

        invocation=invocations.get(i)
        if invocation is None:
            name=tok.s
            if name in reported_undefined or not looks_like_macro(name):
                continue
            if table.is_defined(name) or table.is_known_type(name) or is_builtin_identifier(name) or name in local_names:
                continue

            reported_undefined.add(name)
            diagnostics.append(Diagnostic(
                DiagnosticKind.UNDEFINED_IDENTIFIER,
                f"Undefined macro or identifier '{name}'",
                macro=name,
                src_loc=loc(tok),
                suggestions=suggest(name,table.names()|symbol_names,limit=MAX_SUGGESTIONS),
            ))
            continue

        definition=invocation.definition

        if definition.name not in reported_redefinitions:
            reported_redefinitions.add(definition.name)
            redefinition=table.redefinition_diagnostic(definition.name)
            if redefinition is not None:
                diagnostics.append(redefinition.located(loc(tok)))

        if invocation.args is not None:
            diagnostic=argument_count_diagnostic(definition,invocation.args)
            if diagnostic is not None:
                diagnostics.append(diagnostic.located(loc(tok)))
                continue

        # expansion errors, once per distinct call text
        call_text=tokens_into_str(tokens[invocation.start:invocation.end])
        if call_text in expanded_calls:
            continue
        expanded_calls.add(call_text)

        args=None if invocation.args is None else [tokens_into_str(arg) for arg in invocation.args]
        result=expand(definition.name,args,table,config,symbol_names)
        for error in result.errors:
            if error.kind==DiagnosticKind.PARSE_FAILURE:
                continue
            diagnostics.append(error.located(loc(tok)))

    return diagnostics

def argument_count_diagnostic(definition:MacroDefinition,args:list[list[Token]])->Diagnostic|None:
    # arguments forwarded from a variadic macro cannot be counted here
    if any(tok.s==MACRO_VARARG_ARGNAME for arg in args for tok in arg):
        return None

    num_args=len(args)
    if len(definition.params)==0 and num_args==1 and len(args[0])==0:
        num_args=0

    fixed=definition.fixed_param_count
    if definition.is_variadic:
        if num_args>=fixed:
            return None
        expected=f"at least {fixed} argument(s)"
    else:
        if num_args==fixed:
            return None
        expected=f"exactly {fixed} argument(s)"

    return Diagnostic(
        DiagnosticKind.ARGUMENT_COUNT_MISMATCH,
        f"Macro '{definition.name}' requires {expected}, but {num_args} provided",
        macro=definition.name,
    )

def declared_names(tokens:list[Token])->set[str]:
    " uppercase names declared in the code itself, e.g. variables, functions and labels "
    names:set[str]=set()
    significant=[tok for tok in tokens if not tok.is_whitespace]
    for i in range(1,len(significant)):
        tok=significant[i]
        prev=significant[i-1]
        if tok.token_type!=TokenType.SYMBOL:
            continue

        # preceded by a type name or pointer declarator
        if prev.token_type==TokenType.SYMBOL and prev.s not in ("return","case","sizeof","goto","else"):
            names.add(tok.s)
        elif prev.s=="*" and i>=2 and significant[i-2].token_type==TokenType.SYMBOL and significant[i-2].s in KEYWORDS:
            names.add(tok.s)

    return names
