import pytest

from py_tokenizer import *

def token_strs(text:str)->list[str]:
    return [tok.s for tok in tokenize(text) if not tok.is_whitespace]

def test_compound_symbols_match_longest_first()->None:
    assert token_strs("a<<=b")==["a","<<=","b"]
    assert token_strs("x ## y # z")==["x","##","y","#","z"]
    assert token_strs("p->q...")==["p","->","q","..."]

def test_literals_keep_raw_spelling()->None:
    tokens=tokenize('"a\\"b" \'\\n\'')
    assert tokens[0].s=='"a\\"b"'
    assert tokens[0].token_type==TokenType.LITERAL_STRING
    assert tokens[2].s=="'\\n'"
    assert tokens[2].token_type==TokenType.LITERAL_CHAR

def test_literal_prefixes_belong_to_the_literal()->None:
    tokens=tokenize('L"wide" u8"narrow" U\'c\'')
    significant=[tok for tok in tokens if not tok.is_whitespace]
    assert [tok.s for tok in significant]==['L"wide"','u8"narrow"',"U'c'"]
    assert [tok.token_type for tok in significant]==[TokenType.LITERAL_STRING,TokenType.LITERAL_STRING,TokenType.LITERAL_CHAR]

def test_unterminated_literal_ends_with_its_line()->None:
    tokens=tokenize('"abc\nx')
    assert tokens[0].s=='"abc'
    assert tokens[0].token_type==TokenType.LITERAL_STRING
    assert tokens[-1].s=="x"

@pytest.mark.parametrize("number",["42","1.5e+10f","0x1F","10UL","1'000",".5"])
def test_numbers_are_single_tokens(number:str)->None:
    tokens=tokenize(number)
    assert len(tokens)==1
    assert tokens[0].token_type==TokenType.LITERAL_NUMBER

def test_comments()->None:
    tokens=tokenize("a /* b */ c // d")
    comments=[tok.s for tok in tokens if tok.token_type==TokenType.COMMENT]
    assert comments==["/* b */","// d"]

def test_serialization_preserves_text()->None:
    source='#define X(a, b) ((a) + (b)) /* sum */\nint y = X(1, "two");\n'
    assert tokens_into_str(tokenize(source))==source

def test_source_locations()->None:
    last=tokenize("a\n  b","f.h")[-1]
    assert last.s=="b"
    assert (last.src_loc.line,last.src_loc.col)==(1,2)
    assert str(last.src_loc)=="f.h:2:3"

def test_split_arguments_respects_nesting_and_literals()->None:
    tokens=tokenize('F(a, (b, c), "d,e", \',\')')
    close_index=find_matching_paren(tokens,1)
    assert close_index==len(tokens)-1

    args,spans=split_arguments(tokens,1,close_index)
    assert [tokens_into_str(arg) for arg in args]==["a","(b, c)",'"d,e"',"','"]
    assert len(spans)==4

def test_split_arguments_of_empty_list()->None:
    tokens=tokenize("F( )")
    args,_=split_arguments(tokens,1,3)
    assert args==[[]]

def test_unmatched_paren()->None:
    tokens=tokenize("(a")
    assert find_matching_paren(tokens,0) is None
    assert not parens_balanced(tokens)
    assert parens_balanced(tokenize("f(a, (b))"))
    assert not parens_balanced(tokenize(")("))

def test_collapse_whitespace()->None:
    assert collapse_whitespace(tokenize("  a   +\t b /* c */  ")) == "a + b"

def test_expansion_chain()->None:
    tok=Token("x",expanded_from_macros=["B"])
    tok.expand_from(["A","B"])
    assert tok.expanded_from_macros==["A","B"]
    assert tok.is_expanded_from("B")
    assert not tok.is_expanded_from("C")

    copied=tok.copy()
    copied.expand_from(["Z"])
    assert tok.expanded_from_macros==["A","B"]
