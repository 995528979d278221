import io
from dataclasses import dataclass, field
import typing as tp
import re

from py_util import *
from py_tokenizer import *
from py_diagnostics import *
from py_macro_table import *

DEFINE_DIRECTIVE=re.compile(r"^\s*#\s*define\b(.*)$")
DEFINE_NAME=re.compile(r"^\s+([A-Za-z_]\w*)(.*)$")
DIRECTIVE=re.compile(r"^\s*#")

@dataclass
class LogicalLine:
    line:int
    " 0-based physical line the logical line starts on "
    s:str

def logical_lines(source:str)->list[LogicalLine]:
    """
    split source into logical lines: comments are removed (a block comment counts as one space)
    and lines ending in a backslash are joined with the following line.

    quotes open a literal, inside which comment delimiters have no meaning.
    """

    lines:list[LogicalLine]=[]
    current:list[str]=[]
    start_line=0
    line=0

    quote:str|None=None
    i=0
    n=len(source)
    while i<n:
        c=source[i]

        # line continuation, trailing blanks after the backslash are tolerated
        if c=="\\":
            j=i+1
            while j<n and source[j] in " \t\r":
                j+=1
            if j>=n or source[j]=="\n":
                if j<n:
                    line+=1
                i=j+1
                continue

        if c=="\n":
            quote=None
            lines.append(LogicalLine(start_line,"".join(current)))
            current=[]
            line+=1
            start_line=line
            i+=1
            continue

        if c=="\r":
            i+=1
            continue

        if quote is not None:
            current.append(c)
            if c=="\\" and i+1<n and source[i+1] not in "\r\n":
                current.append(source[i+1])
                i+=2
                continue
            if c==quote:
                quote=None
            i+=1
            continue

        if c=='"' or (c=="'" and not (len(current)>0 and current[-1].isdigit())):
            quote=c
            current.append(c)
            i+=1
            continue

        if source.startswith("//",i):
            while i<n and source[i]!="\n":
                if source[i]=="\\" and source[i+1:i+2]=="\n":
                    # a continued line comment swallows the next line
                    line+=1
                    i+=2
                    continue
                i+=1
            continue

        if source.startswith("/*",i):
            end=source.find("*/",i+2)
            end=n if end==-1 else end+2
            line+=source.count("\n",i,end)
            current.append(" ")
            i=end
            continue

        current.append(c)
        i+=1

    if len(current)>0:
        lines.append(LogicalLine(start_line,"".join(current)))

    return lines

def strip_comments(source:str)->str:
    " source with comments removed and continued lines joined "
    return "\n".join(line.s for line in logical_lines(source))

def normalize_body(tokens:list[Token])->str:
    return collapse_whitespace(tokens)

@dataclass
class Extraction:
    " everything extracted from one source file "
    filename:str
    definitions:list[MacroDefinition]=field(default_factory=list)
    type_names:set[str]=field(default_factory=set)
    diagnostics:list[Diagnostic]=field(default_factory=list)

class Extractor:
    " scans source text for #define directives and type declarations "

    def __init__(self,source:str,filename:str="<source>"):
        self.filename=filename
        self.lines=logical_lines(source)

        self.type_names:set[str]=set()
        self.diagnostics:list[Diagnostic]=[]

    @staticmethod
    def from_file(filename:str)->"Extractor":
        with io.open(filename,errors="replace") as file:
            return Extractor(file.read(),filename)

    def loc(self,line:LogicalLine,col:int=0)->SourceLocation:
        return SourceLocation(self.filename,line.line,col)

    def fail(self,name:str|None,src_loc:SourceLocation,message:str):
        self.diagnostics.append(Diagnostic(DiagnosticKind.PARSE_FAILURE,message,macro=name,src_loc=src_loc))

    def extract(self)->tp.Iterator[MacroDefinition]:
        " lazily yield the macro definitions in source order "
        for line in self.lines:
            directive=DEFINE_DIRECTIVE.match(line.s)
            if directive is None:
                continue

            src_loc=self.loc(line)

            name_match=DEFINE_NAME.match(directive.group(1))
            if name_match is None:
                self.fail(None,src_loc,f"#define without a valid macro name: '{line.s.strip()}'")
                continue

            yield self.parse_define(name_match.group(1),name_match.group(2),src_loc)

    def parse_define(self,name:str,rest:str,src_loc:SourceLocation)->MacroDefinition:
        tokens=tokenize(rest,self.filename)

        # a ( directly after the name, without whitespace, opens the parameter list
        if len(tokens)==0 or not is_punct(tokens[0],"("):
            return self.make_definition(name,MacroKind.OBJECT_LIKE,tokens,src_loc)

        close_index=find_matching_paren(tokens,0)
        if close_index is None:
            self.fail(name,src_loc,f"unbalanced parentheses in parameter list of macro '{name}'")
            return MacroDefinition(name,MacroKind.OBJECT_LIKE,normalize_body(tokens),src_loc)

        params,is_variadic=self.parse_params(name,tokens[1:close_index],src_loc)
        return self.make_definition(name,MacroKind.FUNCTION_LIKE,tokens[close_index+1:],src_loc,params,is_variadic)

    def parse_params(self,name:str,tokens:list[Token],src_loc:SourceLocation)->tuple[tuple[str,...],bool]:
        param_texts:list[str]=[]
        current:list[Token]=[]
        for tok in tokens:
            if is_punct(tok,","):
                param_texts.append(collapse_whitespace(current))
                current=[]
            else:
                current.append(tok)
        param_texts.append(collapse_whitespace(current))

        if param_texts==[""]:
            return (),False

        params:list[str]=[]
        is_variadic=False
        for param in param_texts:
            if param=="":
                self.fail(name,src_loc,f"empty parameter name in macro '{name}'")
                continue

            if is_variadic:
                self.fail(name,src_loc,f"variadic parameter must be the last parameter of macro '{name}'")
                break

            variadic=param.endswith("...")
            if variadic:
                param=param[:-3].strip() or MACRO_VARARG_ARGNAME

            if SYMBOL_PATTERN.fullmatch(param) is None:
                self.fail(name,src_loc,f"invalid parameter name '{param}' in macro '{name}'")
                continue

            if param in params:
                self.fail(name,src_loc,f"duplicate parameter name '{param}' in macro '{name}'")
                continue

            params.append(param)
            is_variadic=variadic

        return tuple(params),is_variadic

    def make_definition(
        self,
        name:str,
        kind:MacroKind,
        body_tokens:list[Token],
        src_loc:SourceLocation,
        params:tuple[str,...]=(),
        is_variadic:bool=False,
    )->MacroDefinition:
        if not parens_balanced(body_tokens):
            self.fail(name,src_loc,f"unbalanced parentheses in body of macro '{name}'")

        return MacroDefinition(name,kind,normalize_body(body_tokens),src_loc,params,is_variadic)

    def code_lines(self)->list[LogicalLine]:
        " logical lines with every preprocessor directive blanked out "
        return [LogicalLine(line.line,"" if DIRECTIVE.match(line.s) else line.s) for line in self.lines]

    def extract_type_names(self)->set[str]:
        """
        collect names declared by typedef, struct, union and enum, including enum constants

        multi line declarations are handled since the code is scanned as one token stream.
        """

        code="\n".join(line.s for line in self.code_lines())
        tokens=[tok for tok in tokenize(code,self.filename) if not tok.is_whitespace]

        def is_name(i:int)->bool:
            return i<len(tokens) and tokens[i].token_type==TokenType.SYMBOL and tokens[i].s not in KEYWORDS

        i=0
        while i<len(tokens):
            s=tokens[i].s
            if s=="typedef":
                self.type_names|=self.typedef_names(tokens,i+1)

            elif s in ("struct","union","enum"):
                body_index=i+1
                if is_name(i+1):
                    self.type_names.add(tokens[i+1].s)
                    body_index=i+2

                if s=="enum" and body_index<len(tokens) and is_punct(tokens[body_index],"{"):
                    self.type_names|=self.enum_constants(tokens,body_index)

            i+=1

        return self.type_names

    @staticmethod
    def typedef_names(tokens:list[Token],start:int)->set[str]:
        " declarator names of the typedef starting at start, up to ; at brace depth 0 "
        names:set[str]=set()
        brace_depth=0
        for i in range(start,len(tokens)):
            tok=tokens[i]
            if is_punct(tok,"{"):
                brace_depth+=1
            elif is_punct(tok,"}"):
                brace_depth-=1
            elif is_punct(tok,";") and brace_depth<=0:
                break
            elif brace_depth==0 and tok.token_type==TokenType.SYMBOL and tok.s not in KEYWORDS:
                following=tokens[i+1].s if i+1<len(tokens) else ";"
                if following in (",",";","[",")"):
                    names.add(tok.s)

        return names

    @staticmethod
    def enum_constants(tokens:list[Token],open_index:int)->set[str]:
        " enumerator names inside the braces opening at open_index "
        constants:set[str]=set()
        nesting_depth=0
        expect_name=True
        for i in range(open_index,len(tokens)):
            tok=tokens[i]
            if tok.s in ("{","(","["):
                nesting_depth+=1
                if nesting_depth==1:
                    expect_name=True
                continue
            if tok.s in ("}",")","]"):
                nesting_depth-=1
                if nesting_depth==0:
                    break
                continue

            if nesting_depth!=1:
                continue

            if is_punct(tok,","):
                expect_name=True
            elif expect_name:
                if tok.token_type==TokenType.SYMBOL:
                    constants.add(tok.s)
                expect_name=False

        return constants

    def run(self)->Extraction:
        definitions=list(self.extract())
        self.extract_type_names()
        return Extraction(self.filename,definitions,set(self.type_names),list(self.diagnostics))

def extract_source(source:str,filename:str="<source>")->Extraction:
    return Extractor(source,filename).run()

def extract_file(filename:str)->Extraction:
    return Extractor.from_file(filename).run()
