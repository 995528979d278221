import pytest

from libcli import *
import macroscope

def test_argparser_values()->None:
    argparser=ArgParser("test",positional_key="paths")
    argparser.add(name="--call",short="-c",key="calls",arg_store_op=ArgStore.append_value)
    argparser.add(name="--depth",key="depth",default=30,type=int)
    argparser.add(name="--mode",key="mode",default="a",options=["a","b"])
    argparser.add(name="--flag",arg_store_op=ArgStore.presence_flag)

    args=argparser.parse(["x.h","--call=EQ(a==b)","-c=F()","dir","--depth=12","--flag"])
    assert args["paths"]==["x.h","dir"]
    assert args["calls"]==["EQ(a==b)","F()"]
    assert args["depth"]==12
    assert args["mode"]=="a"
    assert args["flag"] is True

    defaults=argparser.parse([])
    assert defaults["calls"]==[]
    assert defaults["flag"] is False

@pytest.mark.parametrize("argv",[
    ["--unknown"],
    ["--mode=c"],
    ["--call"],
])
def test_argparser_rejects(argv:list[str])->None:
    argparser=ArgParser("test")
    argparser.add(name="--call",key="calls",arg_store_op=ArgStore.append_value)
    argparser.add(name="--mode",key="mode",default="a",options=["a","b"])

    with pytest.raises(ValueError):
        argparser.parse(argv)

def test_positional_rejected_without_key()->None:
    with pytest.raises(ValueError):
        ArgParser("test").parse(["file.h"])

def test_run_pooled_keeps_order()->None:
    items=list(range(20))
    assert run_pooled(lambda i:i*i,items,num_threads=4,show_progress=False)==[i*i for i in items]
    assert run_pooled(lambda i:i+1,items,num_threads=1,show_progress=False)==[i+1 for i in items]

HEADER="""#define ADD(a, b) ((a) + (b))
#define A B
#define B A
"""

@pytest.fixture
def header(tmp_path)->str:
    path=tmp_path/"macros.h"
    path.write_text(HEADER)
    return str(path)

def test_expand_call(header:str,capsys)->None:
    assert macroscope.main([header,"--call=ADD(1, 2)","--show-steps","-j=1"])==0

    out=capsys.readouterr().out
    assert "((1) + (2))" in out
    assert "3 definition(s)" in out

def test_strip_parens(header:str,capsys)->None:
    assert macroscope.main([header,"--call=ADD(x, y)","--strip-parens"])==0
    assert "(x + y)" in capsys.readouterr().out

def test_expansion_error_sets_exit_code(header:str,capsys)->None:
    assert macroscope.main([header,"--call=A"])==1
    assert "A -> B -> A" in capsys.readouterr().out

def test_profile(header:str,capsys)->None:
    assert macroscope.main([header,"--call=ADD(1, 2)","--profile"])==0

    out=capsys.readouterr().out
    assert "((1) + (2))" in out
    assert "function calls" in out

def test_directory_scan(tmp_path,capsys)->None:
    (tmp_path/"sub").mkdir()
    (tmp_path/"sub"/"a.h").write_text("#define VERSION 42\n")
    (tmp_path/"notes.txt").write_text("#define IGNORED 1\n")

    assert macroscope.main([str(tmp_path),"--call=VERSION","--list"])==0
    out=capsys.readouterr().out
    assert "1 definition(s)" in out
    assert "#define VERSION 42" in out
    assert "IGNORED" not in out

def test_check(tmp_path,capsys)->None:
    path=tmp_path/"main.c"
    path.write_text("#define ADD(a, b) ((a) + (b))\nint x = ADD(1);\n")

    assert macroscope.main([str(path),"--check"])==1
    assert "requires exactly 2 argument(s), but 1 provided" in capsys.readouterr().out

def test_missing_path_is_fatal(tmp_path)->None:
    with pytest.raises(SystemExit):
        macroscope.main([str(tmp_path/"missing.h")])

def test_invalid_max_depth_is_fatal(header:str)->None:
    with pytest.raises(SystemExit):
        macroscope.main([header,"--max-depth=2"])
