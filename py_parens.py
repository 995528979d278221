import re

from py_util import *

OPERATOR_CHARS=frozenset("+-*/%<>=&|^!?:~")
IDENTIFIER=re.compile(r"(?<![\w.])[A-Za-z_]\w*")
" identifier-like token, the lookbehind rejects number suffixes such as 10UL or 1e5 "
SYMBOL=re.compile(r"[A-Za-z_]\w*")
TYPEDEF_CAST_NAME=re.compile(r"[A-Z][A-Z0-9_]*|[A-Z][a-zA-Z0-9]*|\w+_[tT]")
" spellings of user defined type names that are recognized as casts "

OPERAND_START=frozenset("(\"'{-+!~*&.")
" characters besides identifiers and digits that can start the operand of a cast "

def skip_literal(text:str,i:int)->int:
    " index after the string or char literal whose opening quote is at i "
    quote=text[i]
    i+=1
    while i<len(text):
        if text[i]=="\\":
            i+=2
            continue
        if text[i]==quote:
            return i+1
        i+=1
    return len(text)

def blank_literals(text:str)->str:
    " text with the contents of string and char literals replaced by spaces "
    out:list[str]=[]
    i=0
    while i<len(text):
        if text[i] in "\"'":
            end=skip_literal(text,i)
            out.append(text[i]+" "*(end-i-2)+text[end-1] if end-i>=2 else text[i:end])
            i=end
            continue
        out.append(text[i])
        i+=1
    return "".join(out)

def match_paren(text:str,open_index:int)->int|None:
    nesting_depth=0
    i=open_index
    while i<len(text):
        c=text[i]
        if c in "\"'":
            i=skip_literal(text,i)
            continue
        if c=="(":
            nesting_depth+=1
        elif c==")":
            nesting_depth-=1
            if nesting_depth==0:
                return i
        i+=1
    return None

def is_balanced(text:str)->bool:
    " whether every ) outside literals closes an earlier ( and none is left open "
    nesting_depth=0
    for c in blank_literals(text):
        if c=="(":
            nesting_depth+=1
        elif c==")":
            nesting_depth-=1
            if nesting_depth<0:
                return False
    return nesting_depth==0

def is_fully_wrapped(text:str)->bool:
    return text.startswith("(") and match_paren(text,0)==len(text)-1

def has_operator(text:str)->bool:
    return any(c in OPERATOR_CHARS for c in blank_literals(text))

def mixes_operators_and_identifiers(text:str)->bool:
    code=blank_literals(text)
    return any(c in OPERATOR_CHARS for c in code) and IDENTIFIER.search(code) is not None

def has_top_level_comma(text:str)->bool:
    nesting_depth=0
    for c in blank_literals(text):
        if c in "([{":
            nesting_depth+=1
        elif c in ")]}":
            nesting_depth-=1
        elif c=="," and nesting_depth==0:
            return True
    return False

def is_cast(inner:str,following:str)->bool:
    " whether (inner) reads as a cast applied to following "
    following=following.lstrip()
    if len(following)==0:
        return False

    words=inner.replace("*"," * ").split()
    names=[w for w in words if w!="*" and w not in TYPE_QUALIFIERS]
    if len(names)==0 or not all(SYMBOL.fullmatch(w) for w in names):
        return False

    operand_follows=following[0]=="_" or following[0].isalnum()
    if all(w in TYPE_KEYWORDS for w in names) or len(names)<len(words)-words.count("*"):
        # builtin types (or struct/union/enum types) cannot be an expression, anything operand-like may follow
        return operand_follows or following[0] in OPERAND_START

    if not all(w in TYPE_KEYWORDS or TYPEDEF_CAST_NAME.fullmatch(w) for w in names):
        return False

    # compound literals such as (POINT){0, 0} count as casts
    return operand_follows or following[0] in "(\"'{"

def strip_outer(text:str)->tuple[str,bool]:
    """
    remove parentheses spanning the whole text

    also returns whether any removed layer wrapped an expression mixing operators and identifiers
    """
    s=text.strip()
    outer_kept=False
    while is_fully_wrapped(s):
        s=s[1:-1].strip()
        if mixes_operators_and_identifiers(s):
            outer_kept=True
    return s,outer_kept

def keep_group(prefix:str,inner:str,following:str)->bool:
    # call syntax, subscript, or call on a call result
    if len(prefix)>0 and (prefix[-1]=="_" or prefix[-1].isalnum() or prefix[-1] in "[)]"):
        return True
    if len(inner)==0:
        return True
    if is_cast(inner,following):
        return True
    return has_operator(inner) or has_top_level_comma(inner)

def normalize_groups(text:str)->str:
    out:list[str]=[]
    i=0
    while i<len(text):
        c=text[i]
        if c in "\"'":
            end=skip_literal(text,i)
            out.append(text[i:end])
            i=end
            continue

        if c!="(":
            out.append(c)
            i+=1
            continue

        close_index=match_paren(text,i)
        if close_index is None:
            # unbalanced, keep the remainder as written
            out.append(text[i:])
            break

        inner=normalize_inner(text[i+1:close_index])
        prefix="".join(out).rstrip()
        if keep_group(prefix,inner,text[close_index+1:]):
            out.append("("+inner+")")
        else:
            out.append(inner)

        i=close_index+1

    return "".join(out)

def normalize_inner(text:str)->str:
    s,_=strip_outer(text)
    return normalize_groups(s)

def normalize(text:str)->str:
    """
    remove redundant parentheses from an expanded expression

    a sub-group keeps its parentheses when it is called or subscripted, is a cast, or
    contains an operator or a top level comma. an expression mixing operators and
    identifiers ends up wrapped in exactly one layer. normalize(normalize(s))==normalize(s).
    """

    # unbalanced text is returned as written
    if not is_balanced(text):
        return text

    s,outer_kept=strip_outer(text)
    s=normalize_groups(s)

    if mixes_operators_and_identifiers(s) and (outer_kept or not s.startswith("(")):
        s="("+s+")"

    return s
