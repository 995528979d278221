import sys
import typing as tp
import inspect
import re

from libcli import RED,GREEN,RESET,LIGHT_GRAY,ORANGE,BOLD

def ind(n:int)->str:
    # U+FF5C ｜
    # U+007C |
    return LIGHT_GRAY+("｜"*n)+RESET

def fatal(message:str="",exit_code:int=-1)->tp.NoReturn:
    current_frame=inspect.currentframe()
    assert current_frame is not None

    frames=[current_frame]

    while (current_frame:=current_frame.f_back) is not None:
        frames.append(current_frame)

    # omit bottom of stack (which is this function) and top of stack (which is the module)
    # and reverse to print lowest stack information last
    frames=reversed(frames[1:-1])

    print()

    _=sys.stdout.write("FATAL >>>\n")

    for current_frame in frames:
        lineno=current_frame.f_lineno
        filename=current_frame.f_code.co_filename
        func_name=current_frame.f_code.co_qualname

        _=sys.stdout.write(f" {LIGHT_GRAY}{filename}:{lineno} -{RESET} {func_name}\n")

    if len(message)>0:
        _=sys.stdout.write(f" >>> {RED}{message}{RESET}\n")
    else:
        _=sys.stdout.write(f" >>> \n")

    _=sys.stdout.flush()

    sys.exit(exit_code)

MACRO_VARARG_ARGNAME="__VA_ARGS__"

BUILTIN_IDENTIFIERS=frozenset([
    "__VA_ARGS__","__VA_OPT__",
    "__FILE__","__LINE__","__DATE__","__TIME__","__TIMESTAMP__","__COUNTER__",
    "__STDC__","__STDC_VERSION__","__STDC_HOSTED__","__cplusplus",
    "__func__","__FUNCTION__","__PRETTY_FUNCTION__",
    "__GNUC__","__GNUC_MINOR__","__GNUC_PATCHLEVEL__",
    "__clang__","__clang_major__","__clang_minor__","__clang_patchlevel__",
    "_MSC_VER","_MSC_FULL_VER",
    "__APPLE__","__linux__","__unix__","__MINGW32__","__MINGW64__","_WIN32","_WIN64",
    "__x86_64__","__i386__","__arm__","__aarch64__",
    "__attribute__","__declspec",
])
" identifiers predefined by compilers, never reported as undefined "

TYPE_KEYWORDS=frozenset([
    "void","char","short","int","long","float","double","signed","unsigned",
    "_Bool","bool","_Complex","_Imaginary",
    "size_t","ssize_t","ptrdiff_t","intptr_t","uintptr_t",
    "int8_t","int16_t","int32_t","int64_t","uint8_t","uint16_t","uint32_t","uint64_t",
    "wchar_t","char8_t","char16_t","char32_t",
])
" builtin and standard library type names, as far as casts are concerned "

TYPE_QUALIFIERS=frozenset(["const","volatile","restrict","struct","union","enum"])

KEYWORDS=frozenset([
    "auto","break","case","const","continue","default","do","else","enum","extern",
    "for","goto","if","inline","register","restrict","return","sizeof","static",
    "struct","switch","typedef","union","volatile","while",
    "_Alignas","_Alignof","_Atomic","_Generic","_Noreturn","_Static_assert","_Thread_local",
    "alignas","alignof","constexpr","false","nullptr","static_assert","thread_local","true","typeof",
    # c++
    "class","namespace","template","typename","this","new","delete","operator",
    "public","private","protected","virtual","friend","using","try","catch","throw",
    "NULL",
])|TYPE_KEYWORDS

MACRO_NAME_PATTERN=re.compile(r"[A-Z_][A-Z0-9_]*")
" conventional spelling of a macro name, used only to decide which unknown identifiers get reported "

def is_builtin_identifier(name:str)->bool:
    return name in BUILTIN_IDENTIFIERS or name in KEYWORDS

def looks_like_macro(name:str)->bool:
    return MACRO_NAME_PATTERN.fullmatch(name) is not None and any(c.isalpha() for c in name)
