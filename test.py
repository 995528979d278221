#!/usr/bin/env python3

from dataclasses import dataclass
import typing as tp
import sys
from enum import Enum

from libcli import *
from py_extractor import extract_file
from py_macro_table import MacroTable
from py_expander import *

argparser=ArgParser("run the macro expansion fixture tests")

argparser.add(name="--target",short="-t",help="run specific target",key="target",arg_store_op=ArgStore.store_value,type=str)
argparser.add(name="--num-threads",short="-j",help="number of test threads",key="num_threads",arg_store_op=ArgStore.store_value,default=1,type=int)
argparser.add(name="--verbose",short="-v",help="print the expansion of failed tests",key="verbose",arg_store_op=ArgStore.presence_flag)
argparser.add(name="--help",short="-h",help="Prints this help message",key="show_help",arg_store_op=ArgStore.presence_flag)

class TestResult(str,Enum):
    SUCCESS="SUCCESS"
    FAILURE="FAILURE"
    TIMEOUT="TIMEOUT"

@dataclass(unsafe_hash=True,order=True)
class Test:
    file: str
    call: str
    " invocation to expand with the definitions from file "
    expected: tp.Optional[str] = None
    " expected final text, None to only check for errors "

    goal: tp.Optional[str] = None
    should_fail: bool = False

    mode: ExpansionMode = ExpansionMode.SINGLE_LAYER
    strip_parens: bool = False

    result:tp.Optional[TestResult]=None
    output:tp.Optional[str]=None
    error_message:tp.Optional[str]=None

    @property
    def command(self)->str:
        return f"{self.file}: {self.call}"

    def run(self):
        extraction=extract_file(self.file)
        table=MacroTable()
        table.load(extraction)

        name,args=parse_invocation(self.call)
        expansion=expand(name,args,table,ExpansionConfig(mode=self.mode,strip_parens=self.strip_parens))

        self.output=expansion.final_text
        self.error_message=expansion.error_message

        did_fail=expansion.has_errors
        output_matches=self.expected is None or self.expected==expansion.final_text

        test_succeeded=output_matches and did_fail==self.should_fail
        self.result=TestResult.SUCCESS if test_succeeded else TestResult.FAILURE

TEST_FILES=[
    Test(file="test/test001.c", call="VERSION", expected="42", goal="object-like macro"),
    Test(file="test/test002.c", call="ADD(1, 2)", expected="((1) + (2))", goal="function-like macro"),
    Test(file="test/test003.c", call="SQUARE(ADD(1, 2))", expected="((((1) + (2))) * (((1) + (2))))", goal="nested invocation in argument"),
    Test(file="test/test004.c", call="STR(hello   world)", expected='"hello world"', goal="stringification operator"),
    Test(file="test/test004.c", call="XSTR(VERSION)", expected='"42"', goal="stringification of an expanded argument"),
    Test(file="test/test005.c", call="CONCAT(foo, bar)", expected="foobar", goal="token concatenation"),
    Test(file="test/test005.c", call="MAKE_ID(counter)", expected="id_counter", goal="token concatenation with a body token"),
    Test(file="test/test006.c", call='LOG("%d %d", 1, 2)', expected='printf("%d %d", 1, 2)', goal="variadic macro"),
    Test(file="test/test006.c", call='EPRINTF("done")', expected='fprintf(stderr, "done")', goal="comma before empty __VA_ARGS__ is dropped"),
    Test(file="test/test006.c", call="CALL(run, 1, 2)", expected="run(1, 2)", goal="named variadic parameter"),
    Test(file="test/test007.c", call="MAX(1, 2)", expected="((1) > (2) ? (1) : (2))", goal="line continuation and comments in definition"),
    Test(file="test/test002.c", call="ADD(1, 2)", expected="1 + 2", goal="redundant parentheses removed", strip_parens=True),
    Test(file="test/test003.c", call="SQUARE(ADD(1, 2))", expected="((((1) + (2))) * (((1) + (2))))", goal="nested invocation, one macro per step", mode=ExpansionMode.SINGLE_MACRO),
    Test(file="test/test008.c", call="ORIGIN", expected="((POINT){0, 0})", goal="typedef names are known types"),

    Test(file="test/test009.c", call="A", goal="circular reference", should_fail=True),
    Test(file="test/test002.c", call="ADD(1)", goal="too few arguments", should_fail=True),
    Test(file="test/test002.c", call="ADD(1, 2, 3)", goal="too many arguments", should_fail=True),
    Test(file="test/test010.c", call="M1", expected="M31", goal="expansion depth limit", should_fail=True),
    Test(file="test/test011.c", call="BROKEN", goal="unbalanced parentheses in macro body", should_fail=True),
]

tests=[
    *TEST_FILES,
]

def run_test(test:Test)->Test:
    test.run()
    return test

def main()->int:
    args=argparser.parse(sys.argv[1:])

    if args.get("show_help",False):
        argparser.print_help()
        return 0

    selected_tests=tests

    test_target=args.get("target")
    if test_target is not None:
        if len(tests)<int(test_target)+1:
            print(f"{RED}error: test target {test_target} out of range{RESET}")
            return 1

        selected_tests=[test for i,test in enumerate(tests) if i==int(test_target)]

    num_test_workers=args.get("num_threads") or get_num_cores()

    print(f"{BOLD}running tests...{RESET}")

    run_pooled(run_test,selected_tests,num_threads=num_test_workers,desc="running tests",unit="test",timeout=10.0)

    failed_tests:tp.List[Test]=[]
    timeout_tests:tp.List[Test]=[]

    results={res:0 for res in TestResult}

    for test in selected_tests:
        if test.result is None:
            test.result=TestResult.TIMEOUT
        if test.result==TestResult.FAILURE:
            failed_tests.append(test)
        if test.result==TestResult.TIMEOUT:
            timeout_tests.append(test)
        results[test.result]+=1

    num_total=len(selected_tests)

    num_succeeded=results[TestResult.SUCCESS]
    num_failed=results[TestResult.FAILURE]
    num_timed_out=results[TestResult.TIMEOUT]

    perc_success=num_succeeded/num_total*100
    perc_failed=num_failed/num_total*100
    perc_timed_out=num_timed_out/num_total*100

    print(f"{BOLD}Test Results:{RESET}")
    print(f"Total: {num_total}")
    max_num_tests_len=max(len(str(n)) for n in [num_succeeded,num_failed,num_timed_out])
    def pad_to(s,n:int,fmt_str:str="{s}")->str:
        s_str=fmt_str.format(s=s)
        return (" "*(n-len(s_str)))+s_str
    num_succeeded_str=pad_to(num_succeeded,max_num_tests_len)
    num_failed_str=pad_to(num_failed,max_num_tests_len)
    num_timed_out_str=pad_to(num_timed_out,max_num_tests_len)
    perc_success_str=pad_to(perc_success,6,fmt_str="{s:.2f}")
    perc_failed_str=pad_to(perc_failed,6,fmt_str="{s:.2f}")
    perc_timed_out_str=pad_to(perc_timed_out,6,fmt_str="{s:.2f}")
    print(f"{GREEN  }Succeeded : {num_succeeded_str} ({perc_success_str  } %){RESET}")
    print(f"{RED    }Failed    : {num_failed_str   } ({perc_failed_str   } %){RESET}")
    for test in failed_tests:
        if test.should_fail:
            extra_info=" (expected to fail)"
        else:
            extra_info=f" (expected '{test.expected}', got '{test.output}')"
        print(f"{RED}Failed test: '{test.command}'{RESET} {extra_info}")
        if args["verbose"] and test.error_message is not None:
            print(f"  {LIGHT_GRAY}{test.error_message}{RESET}")
    print(f"{ORANGE }Timed out : {num_timed_out_str} ({perc_timed_out_str} %){RESET}")
    for test in timeout_tests:
        print(f"{ORANGE}Timed out test: '{test.command}'{RESET}")

    return 0 if num_succeeded==num_total else 1

if __name__=="__main__":
    sys.exit(main())
