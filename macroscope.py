#!/usr/bin/env python3

import sys
import time
import typing as tp
from pathlib import Path

from libcli import *
from py_util import *
from py_diagnostics import *
from py_extractor import *
from py_macro_table import *
from py_expander import *
from py_checker import check_source

SOURCE_SUFFIXES=[".c",".h",".cc",".cpp",".cxx",".hh",".hpp",".hxx"]
" files searched for definitions when a directory is given "

def make_argparser()->ArgParser:
    argparser=ArgParser("expand C/C++ macros defined in the given files and directories",positional_key="paths",positional_help="source files or directories to scan for #define")

    argparser.add(name="--call",short="-c",help="macro invocation to expand, e.g. --call=\"ADD(1, 2)\"",key="calls",arg_store_op=ArgStore.append_value)
    argparser.add(name="--mode",short="-m",help="order in which nested invocations are expanded",key="mode",default=ExpansionMode.SINGLE_LAYER.value,options=[m.value for m in ExpansionMode])
    argparser.add(name="--max-depth",help=f"number of rescan passes before expansion is cut off ({MIN_MAX_DEPTH}..{MAX_MAX_DEPTH})",key="max_depth",default=DEFAULT_MAX_DEPTH,type=int)
    argparser.add(name="--strip-parens",help="remove redundant parentheses from expansions",key="strip_parens",arg_store_op=ArgStore.presence_flag)
    argparser.add(name="--show-steps",short="-s",help="print every expansion step",key="show_steps",arg_store_op=ArgStore.presence_flag)
    argparser.add(name="--check",help="report macro diagnostics for every scanned file",key="check",arg_store_op=ArgStore.presence_flag)
    argparser.add(name="--list",short="-l",help="list all macro definitions found",key="list",arg_store_op=ArgStore.presence_flag)
    argparser.add(name="--symbols",help="comma separated names offered as suggestions for undefined identifiers",key="symbols",default="")
    argparser.add(name="--num-threads",short="-j",help="number of threads used to scan files",key="num_threads",default=get_num_cores(),type=int)
    argparser.add(name="--profile",help="profile the run and print statistics",key="profile",arg_store_op=ArgStore.presence_flag)
    argparser.add(name="--help",short="-h",help="Prints this help message",key="show_help",arg_store_op=ArgStore.presence_flag)

    return argparser

def collect_files(paths:list[str])->list[str]:
    files:list[str]=[]
    for path_str in paths:
        path=Path(path_str)
        if path.is_dir():
            files.extend(sorted(str(p) for p in path.rglob("*") if p.is_file() and p.suffix in SOURCE_SUFFIXES))
        elif path.is_file():
            files.append(str(path))
        else:
            fatal(f"no such file or directory: {path_str}")

    return files

def scan_files(files:list[str],num_threads:int=1,show_progress:bool=True)->tuple[MacroTable,list[Extraction]]:
    " extract all files in parallel, then load them into a table in the given order "
    extractions=run_pooled(extract_file,files,num_threads=num_threads,desc="scanning",unit="file",show_progress=show_progress)

    table=MacroTable()
    loaded:list[Extraction]=[]
    for extraction in extractions:
        assert extraction is not None
        table.load(extraction)
        loaded.append(extraction)

    return table,loaded

def print_definitions(table:MacroTable):
    for name in sorted(table.names()):
        definitions=table.lookup(name)
        active=table.active(name)
        for definition in definitions:
            marker=f"{GREEN}*{RESET}" if len(definitions)>1 and definition is active else " "
            print(f"{marker} {LIGHT_GRAY}{definition.file}:{definition.line}{RESET} {definition}")

def print_result(call_text:str,result:ExpansionResult,show_steps:bool=False):
    print(f"{BOLD}{call_text}{RESET}")

    if show_steps:
        for step in result.steps:
            print(f"  {ind(step.depth)}{ORANGE}{step.macro}{RESET}: {step.before} {LIGHT_GRAY}->{RESET} {step.after}")

    print(f"  {GREEN}{result.final_text}{RESET}")

    for diagnostic in result.diagnostics:
        print(f"  {diagnostic.colored()}")

def main(argv:list[str]|None=None)->int:
    argparser=make_argparser()
    args=argparser.parse(sys.argv[1:] if argv is None else argv)

    if args.get("show_help",False):
        argparser.print_help()
        return 0

    if not args["profile"]:
        return run(args)

    import cProfile

    with cProfile.Profile() as pr:
        exit_code=run(args)

        pr.print_stats(sort="tottime")

    return exit_code

def run(args:dict[str,tp.Any])->int:
    try:
        config=ExpansionConfig.from_args(args)
    except ValueError as e:
        fatal(str(e))

    symbol_names=[s for s in args["symbols"].split(",") if len(s)>0]

    start_time=time.perf_counter()

    files=collect_files(args["paths"])
    table,extractions=scan_files(files,num_threads=max(1,args["num_threads"]),show_progress=len(files)>1)

    scan_time=time.perf_counter()-start_time
    print(f"{LIGHT_GRAY}scanned {len(files)} file(s), {len(table)} definition(s) in {scan_time*1e3:.3f}ms{RESET}")

    for extraction in extractions:
        for diagnostic in extraction.diagnostics:
            print(diagnostic.colored())

    if args["list"]:
        print_definitions(table)

    any_errors=False

    for call_text in args["calls"]:
        try:
            name,call_args=parse_invocation(call_text)
        except ValueError as e:
            fatal(str(e))

        result=expand(name,call_args,table,config,symbol_names)
        print_result(call_text,result,show_steps=args["show_steps"])
        any_errors|=result.has_errors

    if args["check"]:
        for extraction in extractions:
            with open(extraction.filename,errors="replace") as file:
                source=file.read()

            for diagnostic in check_source(source,extraction.filename,table,config,symbol_names):
                print(diagnostic.colored())
                any_errors|=diagnostic.is_error

    return 1 if any_errors else 0

if __name__=="__main__":
    sys.exit(main())
