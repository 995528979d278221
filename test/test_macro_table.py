import pytest

from py_diagnostics import DiagnosticKind
from py_extractor import extract_source
from py_macro_table import *

def make_table()->MacroTable:
    table=MacroTable()
    table.load(extract_source("#define X 1\n#define ONLY_A 10\ntypedef int A_TYPE;\n","a.h"))
    table.load(extract_source("\n#define X 2\n","b.h"))
    return table

def test_lookup_keeps_all_definitions()->None:
    table=make_table()

    definitions=table.lookup("X")
    assert [d.body for d in definitions]==["1","2"]
    assert [(d.file,d.line) for d in definitions]==[("a.h",1),("b.h",2)]

    assert table.lookup("UNDEFINED")==[]
    assert table.active("UNDEFINED") is None

def test_most_recent_definition_is_active()->None:
    table=make_table()

    active=table.active("X")
    assert active is not None
    assert active.body=="2"

def test_select_overrides_active_definition()->None:
    table=make_table()

    table.select("X",0)
    active=table.active("X")
    assert active is not None and active.body=="1"

    table.clear_selection("X")
    active=table.active("X")
    assert active is not None and active.body=="2"

    with pytest.raises(IndexError):
        table.select("X",2)
    with pytest.raises(KeyError):
        table.select("UNDEFINED",0)

def test_reload_replaces_definitions_of_file()->None:
    table=make_table()
    table.select("X",0)

    table.load(extract_source("#define Y 3\n","a.h"))

    assert [d.body for d in table.lookup("X")]==["2"]
    assert not table.is_defined("ONLY_A")
    assert table.is_defined("Y")
    assert not table.is_known_type("A_TYPE")

    # selection no longer refers to a valid definition
    active=table.active("X")
    assert active is not None and active.body=="2"

def test_remove_file()->None:
    table=make_table()
    assert table.is_known_type("A_TYPE")

    table.remove_file("b.h")
    assert [d.body for d in table.lookup("X")]==["1"]

    table.remove_file("a.h")
    assert len(table)==0
    assert table.names()==set()
    assert not table.is_known_type("A_TYPE")

def test_type_name_shared_by_files()->None:
    table=MacroTable()
    table.add_type_name("SHARED","a.h")
    table.add_type_name("SHARED","b.h")

    table.remove_file("a.h")
    assert table.is_known_type("SHARED")
    table.remove_file("b.h")
    assert not table.is_known_type("SHARED")

def test_parse_failures_by_name()->None:
    table=MacroTable()
    table.load(extract_source("#define BROKEN (1\n#define FINE 1\n","bad.h"))

    failures=table.parse_failures("BROKEN")
    assert len(failures)==1
    assert failures[0].kind==DiagnosticKind.PARSE_FAILURE
    assert table.parse_failures("FINE")==[]

    table.remove_file("bad.h")
    assert table.parse_failures("BROKEN")==[]

def test_parse_failures_of_one_definition()->None:
    table=MacroTable()
    table.load(extract_source("#define F(x 1\n","a.h"))
    table.load(extract_source("#define F 2\n","b.h"))

    malformed,wellformed=table.lookup("F")
    assert len(table.parse_failures("F"))==1
    assert len(table.parse_failures("F",malformed))==1
    assert table.parse_failures("F",wellformed)==[]

def test_redefinitions()->None:
    table=make_table()

    assert list(table.redefinitions().keys())==["X"]

    diagnostic=table.redefinition_diagnostic("X")
    assert diagnostic is not None
    assert diagnostic.kind==DiagnosticKind.REDEFINITION
    assert not diagnostic.is_error
    assert diagnostic.message=="Macro 'X' has 2 definitions (a.h:1, b.h:2)"

    assert table.redefinition_diagnostic("ONLY_A") is None

def test_definition_is_immutable()->None:
    definition=MacroDefinition("N",MacroKind.OBJECT_LIKE,"1")
    with pytest.raises(AttributeError):
        definition.body="2" # type: ignore
    assert str(definition)=="#define N 1"
