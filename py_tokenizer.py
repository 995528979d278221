from dataclasses import dataclass, field
import typing as tp
from enum import Enum
import re

from py_util import *

@dataclass
class SourceLocation:
    filename:str
    line:int
    col:int

    @tp.override
    def __str__(self):
        return f"{self.filename}:{self.line+1}:{self.col+1}"

    @staticmethod
    def placeholder()->"SourceLocation":
        return SourceLocation("",0,0)

class TokenType(int,Enum):
    WHITESPACE=1
    COMMENT=2

    SYMBOL=3
    OPERATOR_PUNCTUATION=4

    LITERAL_STRING=0x10
    LITERAL_CHAR=0x11
    LITERAL_NUMBER=0x12

    PLACEMARKER=0x20
    " stands in for an empty operand of ## while a macro body is substituted "

@dataclass
class Token:
    s:str
    src_loc:SourceLocation=field(default_factory=SourceLocation.placeholder)
    token_type:TokenType=TokenType.SYMBOL

    expanded_from_macros:list[str]|None=None
    " names of the macros whose expansion produced this token, outermost first "
    blocked:bool=False
    " set once the token named a macro that was already being expanded, the token then stays literal "

    def copy(self)->"Token":
        return Token(
            s=self.s,
            src_loc=self.src_loc,
            token_type=self.token_type,
            expanded_from_macros=[i for i in self.expanded_from_macros] if self.expanded_from_macros is not None else None,
            blocked=self.blocked,
        )

    def expand_from(self,macro_names:list[str]):
        " prepend the chain of an expansion to the chain this token already carries "
        own=self.expanded_from_macros or []
        self.expanded_from_macros=list(macro_names)+[m for m in own if m not in macro_names]

    def is_expanded_from(self,macro_name:str)->bool:
        if self.expanded_from_macros is None:
            return False

        return macro_name in self.expanded_from_macros

    @property
    def is_whitespace(self)->bool:
        return self.token_type in (TokenType.WHITESPACE,TokenType.COMMENT)

    @property
    def is_literal(self)->bool:
        return self.token_type in (TokenType.LITERAL_STRING,TokenType.LITERAL_CHAR)

SYMBOL_PATTERN=re.compile(r"[A-Za-z_][A-Za-z_0-9]*")

WHITESPACE_NONEWLINE_CHARS=set(" \t\v\f")
WHITESPACE_NEWLINE_CHARS=set("\r\n")|WHITESPACE_NONEWLINE_CHARS
def is_whitespace(c:str,newline_allowed:bool=True):
    assert len(c)==1, f"{len(c) = } ; {c = }"
    if newline_allowed:
        return c in WHITESPACE_NEWLINE_CHARS
    else:
        return c in WHITESPACE_NONEWLINE_CHARS

NUMERIC_CHARS_SET=set("0123456789")
def is_numeric(c:str):
    return len(c)==1 and c in NUMERIC_CHARS_SET

def is_symbol_char(c:str,leading:bool=False)->bool:
    if len(c)!=1:
        return False
    if c=="_" or c.isascii() and c.isalpha():
        return True
    return not leading and is_numeric(c)

LITERAL_PREFIXES=set(["L","u","U","u8"])
" encoding prefixes that belong to the string or char literal directly following them "

SPECIAL_COMPOUND_SYMBOLS=sorted([
    "->",
    "++","--",
    "||","&&",
    "==","!=","<=",">=",
    "*=","/=","%=","-=","+=","|=","&=","^=",
    "<<",">>",
    "<<=",">>=",
    "...",
    "##",
    "::",
],key=len,reverse=True)
"special compound symbols, e.g. arrow operator ->, longest first so that <<= wins over <<"

class Tokenizer:
    " utility class to convert source text into tokens, never fails on malformed input "

    def __init__(self,text:str,filename:str="<text>"):
        self.filename:str=filename
        self.text:str=text
        self.index:int=0

        self.line_index:int=0
        self.col_index:int=0

        self.tokens:list[Token]=[]

    @property
    def c(self)->str:
        " return character at current pointer location, empty at the end of the text "
        return self.c_fut(0)

    def c_fut(self,n:int)->str:
        " return character n positions in advance of current pointer "
        i=self.index+n
        if i<len(self.text):
            return self.text[i]
        return ""

    @property
    def remaining(self)->bool:
        " return True if any characters are remaining "
        return self.index<len(self.text)

    def adv(self,n:int=1):
        " advance the pointer by n characters "
        for _ in range(n):
            if not self.remaining:
                return

            if self.c=="\n":
                self.line_index+=1
                self.col_index=0
            else:
                self.col_index+=1

            self.index+=1

    def current_loc(self)->SourceLocation:
        return SourceLocation(self.filename,self.line_index,self.col_index)

    def scan_terminated_literal(self,end_char:str):
        " consume a literal starting at the current opening quote, escape sequences are kept as written "
        self.adv()
        while self.remaining:
            if self.c=="\\":
                self.adv(2)
                continue

            # unterminated literal ends with its line
            if self.c=="\n":
                return

            if self.c==end_char:
                self.adv()
                return

            self.adv()

    def scan_number(self):
        " consume a preprocessing number, i.e. digits with suffixes, exponents and separators "
        self.adv()
        while self.remaining:
            c=self.c
            if c in "eEpP" and self.c_fut(1) in ("+","-"):
                self.adv(2)
            elif c=="'" and is_symbol_char(self.c_fut(1)):
                self.adv()
            elif c=="." or is_symbol_char(c):
                self.adv()
            else:
                return

    def scan_token(self)->TokenType:
        " consume one token starting at the current pointer and return its type "
        c=self.c

        if is_whitespace(c):
            while self.remaining and is_whitespace(self.c):
                self.adv()
            return TokenType.WHITESPACE

        if c=="/" and self.c_fut(1)=="/":
            while self.remaining and self.c!="\n":
                self.adv()
            return TokenType.COMMENT

        if c=="/" and self.c_fut(1)=="*":
            self.adv(2)
            while self.remaining and not (self.c=="*" and self.c_fut(1)=="/"):
                self.adv()
            self.adv(2)
            return TokenType.COMMENT

        if c=='"':
            self.scan_terminated_literal('"')
            return TokenType.LITERAL_STRING

        if c=="'":
            self.scan_terminated_literal("'")
            return TokenType.LITERAL_CHAR

        if is_numeric(c) or (c=="." and is_numeric(self.c_fut(1))):
            self.scan_number()
            return TokenType.LITERAL_NUMBER

        if is_symbol_char(c,leading=True):
            start=self.index
            while self.remaining and is_symbol_char(self.c):
                self.adv()

            if self.text[start:self.index] in LITERAL_PREFIXES and self.c in ("'",'"'):
                quote=self.c
                self.scan_terminated_literal(quote)
                return TokenType.LITERAL_STRING if quote=='"' else TokenType.LITERAL_CHAR

            return TokenType.SYMBOL

        for compound_symbol in SPECIAL_COMPOUND_SYMBOLS:
            if self.text.startswith(compound_symbol,self.index):
                self.adv(len(compound_symbol))
                return TokenType.OPERATOR_PUNCTUATION

        self.adv()
        return TokenType.OPERATOR_PUNCTUATION

    def parse_tokens(self)->list[Token]:
        self.tokens=[]

        while self.remaining:
            start=self.index
            src_loc=self.current_loc()
            token_type=self.scan_token()
            self.tokens.append(Token(self.text[start:self.index],src_loc=src_loc,token_type=token_type))

        return self.tokens

def tokenize(text:str,filename:str="<text>")->list[Token]:
    return Tokenizer(text,filename).parse_tokens()

def tokens_into_str(tokens:list[Token])->str:
    " serialize tokens back into text, keeping the whitespace between them "
    return "".join(tok.s for tok in tokens)

def strip_whitespace(tokens:list[Token])->list[Token]:
    " remove leading and trailing whitespace tokens "
    start=0
    end=len(tokens)
    while start<end and tokens[start].is_whitespace:
        start+=1
    while end>start and tokens[end-1].is_whitespace:
        end-=1
    return tokens[start:end]

def next_significant(tokens:list[Token],index:int)->int|None:
    " index of the first non-whitespace token at or after index "
    while index<len(tokens):
        if not tokens[index].is_whitespace:
            return index
        index+=1
    return None

def prev_significant(tokens:list[Token],index:int)->int|None:
    " index of the last non-whitespace token at or before index "
    while index>=0:
        if not tokens[index].is_whitespace:
            return index
        index-=1
    return None

def is_punct(tok:Token,s:str)->bool:
    return tok.token_type==TokenType.OPERATOR_PUNCTUATION and tok.s==s

def find_matching_paren(tokens:list[Token],open_index:int)->int|None:
    " index of the ) closing the ( at open_index, None if there is none "
    assert is_punct(tokens[open_index],"("), f"{tokens[open_index] = }"

    nesting_depth=0
    for i in range(open_index,len(tokens)):
        tok=tokens[i]
        if is_punct(tok,"("):
            nesting_depth+=1
        elif is_punct(tok,")"):
            nesting_depth-=1
            if nesting_depth==0:
                return i

    return None

def parens_balanced(tokens:list[Token])->bool:
    nesting_depth=0
    for tok in tokens:
        if is_punct(tok,"("):
            nesting_depth+=1
        elif is_punct(tok,")"):
            nesting_depth-=1
            if nesting_depth<0:
                return False

    return nesting_depth==0

def split_arguments(tokens:list[Token],open_index:int,close_index:int)->tuple[list[list[Token]],list[tuple[int,int]]]:
    """
    split the tokens between a ( and its matching ) on top level commas

    returns the arguments with surrounding whitespace removed, and for each argument the
    [start,end) index range it occupies in tokens. an empty list still holds one empty argument.
    """

    args:list[list[Token]]=[]
    spans:list[tuple[int,int]]=[]

    nesting_depth=0
    arg_start=open_index+1
    for i in range(open_index+1,close_index):
        tok=tokens[i]
        if is_punct(tok,"("):
            nesting_depth+=1
        elif is_punct(tok,")"):
            nesting_depth-=1
        elif is_punct(tok,",") and nesting_depth==0:
            args.append(strip_whitespace(tokens[arg_start:i]))
            spans.append((arg_start,i))
            arg_start=i+1

    args.append(strip_whitespace(tokens[arg_start:close_index]))
    spans.append((arg_start,close_index))

    return args,spans

def collapse_whitespace(tokens:list[Token])->str:
    " serialize tokens with every whitespace run (and comment) turned into a single space, trimmed "
    parts:list[str]=[]
    for tok in tokens:
        if tok.is_whitespace:
            if len(parts)>0 and parts[-1]!=" ":
                parts.append(" ")
            continue
        parts.append(tok.s)

    return "".join(parts).strip()
