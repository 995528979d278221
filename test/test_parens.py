import pytest

from py_parens import *

@pytest.mark.parametrize("text,expected",[
    ("((100))","100"),
    ("(x)","x"),
    ("((x) * (y))","(x * y)"),
    ("((a + b))","(a + b)"),
    ("(a) + (b)","(a + b)"),
    ("((a + b) * c)","((a + b) * c)"),
    ("(a ? b : c)","(a ? b : c)"),
    ("((1) * (1))","1 * 1"),
    ("foo(x)","foo(x)"),
    ("f((x), (y))","f(x, y)"),
    ("a[(i)]","a[(i)]"),
    ("(f)(x)","f(x)"),
    ("g()","g()"),
    ('"(a)"','"(a)"'),
    ('s("(" + (x))','(s("(" + x))'),
    ("(1 + 2","(1 + 2"),
    ("",""),
])
def test_normalize(text:str,expected:str)->None:
    assert normalize(text)==expected

@pytest.mark.parametrize("text",[
    "(int)(x)",
    "(char *)p",
    "(const unsigned long)-1",
    "(struct node *)ptr",
    "(size_t)len",
    "(POINT){0, 0}",
    "(Handle)h",
])
def test_casts_keep_parentheses(text:str)->None:
    assert normalize(text)==text

def test_parenthesized_name_is_not_a_cast_without_operand()->None:
    assert normalize("(uint32_t)")=="uint32_t"
    assert normalize("(FOO) + 1")=="(FOO + 1)"

@pytest.mark.parametrize("text",[
    "((x) * (y))",
    "((((1) + (2))) * (((1) + (2))))",
    "((X) > LIMIT ? LIMIT : (X))",
    "(char *)p",
    "f((x), (y))",
    "((a + b) * c)",
])
def test_normalize_is_idempotent(text:str)->None:
    once=normalize(text)
    assert normalize(once)==once

def test_strip_outer()->None:
    assert strip_outer("((1))")==("1",False)
    assert strip_outer(" ((a + b)) ")==("a + b",True)
    assert strip_outer("(a) + (b)")==("(a) + (b)",False)

def test_literals_are_opaque()->None:
    assert not has_operator('"a + b"')
    assert not has_top_level_comma('"a, b"')
    assert not has_top_level_comma("f(a, b)")
    assert has_top_level_comma('"a", b')
    assert blank_literals('x + "a\\"b"')=='x + "    "'

@pytest.mark.parametrize("text",[
    "(a",
    "((a",
    "(((a)) + (b)",
    "func((a), (b)",
    "((x) * 2",
    "((((((",
    "()()(",
    "((a) + (b))(",
    "((a + b) * ((c)",
    "a)",
    "a))",
    "(a))",
    "(((a)) + (b)))",
    ")a(",
    "))))))",
    "()())",
    ")((a) + (b))",
    "a)*(b",
    "x + y)",
    "a)*(a]+,[",
])
def test_unbalanced_text_is_unchanged(text:str)->None:
    assert not is_balanced(text)
    assert normalize(text)==text
    assert normalize(normalize(text))==normalize(text)

def test_parentheses_in_literals_do_not_count()->None:
    assert is_balanced('f(")")')
    assert is_balanced("c == '('")
    assert normalize('((s(")")))')=='s(")")'
